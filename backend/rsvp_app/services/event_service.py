"""Event service — lifecycle, listings and attendance aggregates.

Owner-scoped writes (update, cancel) go through ``ensure_can_manage_event``.
Cancelling is a status transition; RSVP rows of a cancelled event stay put.
"""
import logging
from typing import Any, Optional

from sqlalchemy import case, func, or_, select
from sqlalchemy.orm import Session

from rsvp_app.errors import InvalidState, NotFound, ValidationError
from rsvp_app.models.event import Event, EventStatus
from rsvp_app.models.rsvp import RSVP, GuestRSVP, RSVPStatus
from rsvp_app.models.user import User
from rsvp_app.schemas.common import Page, Pagination
from rsvp_app.schemas.event import EventCreate, EventDetailOut, EventOut, EventSummaryOut
from rsvp_app.services.permissions import ensure_can_manage_event

logger = logging.getLogger(__name__)

_NOT_NULLABLE = {"title", "event_date", "status", "is_public", "allow_comments", "dietary_tracking"}


def _count_responses(model, status: Optional[RSVPStatus] = None):
    query = select(func.count(model.id)).where(model.event_id == Event.id)
    if status is not None:
        query = query.where(model.status == status)
    return query.correlate(Event).scalar_subquery()


def _summary_query(db: Session):
    """Events joined with creator name and response counts over both relations."""
    return (
        db.query(
            Event,
            User.username.label("creator_name"),
            (
                _count_responses(RSVP, RSVPStatus.confirmed)
                + _count_responses(GuestRSVP, RSVPStatus.confirmed)
            ).label("confirmed_count"),
            (_count_responses(RSVP) + _count_responses(GuestRSVP)).label("total_rsvps"),
        )
        .outerjoin(User, Event.created_by == User.id)
    )


def _to_summary(row) -> EventSummaryOut:
    event, creator_name, confirmed_count, total_rsvps = row
    return EventSummaryOut(
        **EventOut.model_validate(event).model_dump(),
        creator_name=creator_name,
        confirmed_count=confirmed_count or 0,
        total_rsvps=total_rsvps or 0,
    )


def _paginate(query, page: int, limit: int) -> tuple[list, Pagination]:
    total = query.order_by(None).count()
    rows = query.order_by(Event.event_date.asc(), Event.id.asc()).offset((page - 1) * limit).limit(limit).all()
    return rows, Pagination.build(page, limit, total)


def get_event_or_404(db: Session, event_id: int) -> Event:
    event = db.query(Event).filter(Event.id == event_id).first()
    if not event:
        raise NotFound("Event not found")
    return event


def create_event(db: Session, payload: EventCreate, owner: User) -> Event:
    """Insert a new active event owned by ``owner``."""
    event = Event(**payload.model_dump(), created_by=owner.id, status=EventStatus.active)
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created event '%s' (%s) by user %s", event.title, event.id, owner.id)
    return event


def list_events(
    db: Session,
    page: int,
    limit: int,
    status: Optional[EventStatus] = None,
    search: Optional[str] = None,
) -> Page[EventSummaryOut]:
    query = _summary_query(db)
    if status:
        query = query.filter(Event.status == status)
    if search:
        pattern = f"%{search}%"
        query = query.filter(or_(
            Event.title.ilike(pattern),
            Event.description.ilike(pattern),
            Event.location.ilike(pattern),
        ))
    rows, pagination = _paginate(query, page, limit)
    return Page[EventSummaryOut](items=[_to_summary(r) for r in rows], pagination=pagination)


def list_owned_events(db: Session, owner: User, page: int, limit: int) -> Page[EventSummaryOut]:
    query = _summary_query(db).filter(Event.created_by == owner.id)
    rows, pagination = _paginate(query, page, limit)
    return Page[EventSummaryOut](items=[_to_summary(r) for r in rows], pagination=pagination)


def attendance_summary(db: Session, event_id: int) -> dict[str, int]:
    """Confirmed/total counts over registered and guest responses.

    ``confirmed_guest_count`` and ``guest_count`` break out the guest share.
    """
    confirmed, total = (
        db.query(
            func.count(case((RSVP.status == RSVPStatus.confirmed, 1))),
            func.count(RSVP.id),
        )
        .filter(RSVP.event_id == event_id)
        .one()
    )
    confirmed_guests, guests = (
        db.query(
            func.count(case((GuestRSVP.status == RSVPStatus.confirmed, 1))),
            func.count(GuestRSVP.id),
        )
        .filter(GuestRSVP.event_id == event_id)
        .one()
    )
    return {
        "confirmed_count": (confirmed or 0) + (confirmed_guests or 0),
        "total_rsvps": (total or 0) + (guests or 0),
        "confirmed_guest_count": confirmed_guests or 0,
        "guest_count": guests or 0,
    }


def get_event_detail(db: Session, event_id: int) -> EventDetailOut:
    event = get_event_or_404(db, event_id)
    return EventDetailOut(
        **EventOut.model_validate(event).model_dump(),
        creator_name=event.creator.username if event.creator else None,
        **attendance_summary(db, event_id),
    )


def update_event(db: Session, event_id: int, actor: User, updates: dict[str, Any]) -> Event:
    """Partial update of an event (owner or admin only)."""
    event = get_event_or_404(db, event_id)
    ensure_can_manage_event(event, actor, "update")

    if not updates:
        raise ValidationError("No fields to update")
    null_fields = sorted(f for f, v in updates.items() if v is None and f in _NOT_NULLABLE)
    if null_fields:
        raise ValidationError(f"{', '.join(null_fields)} cannot be null")
    for field, value in updates.items():
        setattr(event, field, value)

    db.commit()
    db.refresh(event)
    logger.info("Updated event %s fields %s by user %s", event_id, sorted(updates), actor.id)
    return event


def cancel_event(db: Session, event_id: int, actor: User) -> Event:
    """Soft-delete: move the event to ``cancelled``; RSVP rows are kept."""
    event = get_event_or_404(db, event_id)
    ensure_can_manage_event(event, actor, "delete")

    if event.status == EventStatus.cancelled:
        raise InvalidState("Event is already cancelled")

    event.status = EventStatus.cancelled
    db.commit()
    db.refresh(event)
    logger.info("Cancelled event %s by user %s", event_id, actor.id)
    return event
