"""Event ORM model."""
import enum

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Index, Integer, String, Text, Enum as SAEnum
from sqlalchemy.orm import relationship

from rsvp_app.database import Base
from rsvp_app.models.user import utcnow


class EventStatus(str, enum.Enum):
    active = "active"
    cancelled = "cancelled"
    completed = "completed"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (Index("idx_events_date", "event_date"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    event_date = Column(DateTime(timezone=True), nullable=False)
    location = Column(String(200), nullable=True)
    max_attendees = Column(Integer, nullable=True)
    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(SAEnum(EventStatus), nullable=False, default=EventStatus.active)
    is_public = Column(Boolean, nullable=False, default=True)
    allow_comments = Column(Boolean, nullable=False, default=True)
    dietary_tracking = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    creator = relationship("User", back_populates="events")
    # Cancelling is a status change; rows below are never cascaded away.
    rsvps = relationship("RSVP", back_populates="event")
    guests = relationship("GuestRSVP", back_populates="event")

    @property
    def is_active(self) -> bool:
        return self.status == EventStatus.active
