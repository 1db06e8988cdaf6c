"""RSVP ORM models.

Registered and guest responses live in two tables on purpose: a registered
RSVP is unique per (event, user) while guest submissions are never
deduplicated. They are merged only when listed.
"""
import enum

from sqlalchemy import (
    Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text,
    UniqueConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship

from rsvp_app.database import Base
from rsvp_app.models.user import utcnow


class RSVPStatus(str, enum.Enum):
    pending = "pending"
    confirmed = "confirmed"
    declined = "declined"


class RSVPKind(str, enum.Enum):
    registered = "registered"
    guest = "guest"


class RSVP(Base):
    __tablename__ = "rsvps"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_rsvps_event_user"),
        Index("idx_rsvps_event", "event_id"),
        Index("idx_rsvps_user", "user_id"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(SAEnum(RSVPStatus), nullable=False, default=RSVPStatus.pending)
    dietary_restrictions = Column(String(500), nullable=True)
    plus_one = Column(Boolean, nullable=False, default=False)
    plus_one_name = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="rsvps")
    user = relationship("User", back_populates="rsvps")


class GuestRSVP(Base):
    __tablename__ = "event_guests"
    __table_args__ = (Index("idx_event_guests_event", "event_id"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False)
    name = Column(String(100), nullable=False)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    status = Column(SAEnum(RSVPStatus), nullable=False, default=RSVPStatus.confirmed)
    dietary_restrictions = Column(String(500), nullable=True)
    plus_one = Column(Boolean, nullable=False, default=False)
    plus_one_name = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    event = relationship("Event", back_populates="guests")
