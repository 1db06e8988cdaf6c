"""RSVP ledger — registered and guest attendance responses.

Registered RSVPs are unique per (event, user). The uniqueness is enforced by
the ``uq_rsvps_event_user`` constraint and writes go through an
``INSERT ... ON CONFLICT DO UPDATE``, so two racing submissions for the same
pair always end up as one row. Guest RSVPs are plain inserts.

None of these functions touch the attendance mirror; routers dispatch the
mirror refresh after a write has committed.
"""
import logging
from typing import Union

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from rsvp_app.errors import InvalidState, NotFound
from rsvp_app.models.event import Event
from rsvp_app.models.rsvp import RSVP, GuestRSVP, RSVPKind
from rsvp_app.models.user import User, utcnow
from rsvp_app.schemas.common import Page, Pagination
from rsvp_app.schemas.rsvp import (
    GuestAttendee, GuestRSVPOut, GuestRSVPSubmit, MyRSVPItem, RSVPModerate,
    RSVPOut, RSVPSubmit, RegisteredAttendee,
)
from rsvp_app.services.event_service import get_event_or_404
from rsvp_app.services.permissions import ensure_can_manage_event

logger = logging.getLogger(__name__)

_MUTABLE_FIELDS = ("status", "dietary_restrictions", "plus_one", "plus_one_name", "notes")
_KIND_ORDER = {RSVPKind.registered: 0, RSVPKind.guest: 1}

Attendee = Union[RegisteredAttendee, GuestAttendee]


def _get_open_event(db: Session, event_id: int) -> Event:
    """Event that accepts new responses: it must exist and be active."""
    event = get_event_or_404(db, event_id)
    if not event.is_active:
        raise InvalidState("Event is not active")
    return event


def _upsert_insert(dialect_name: str):
    if dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
        return insert
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
        return insert
    return None


def _write_registered(db: Session, values: dict) -> bool:
    """Insert or update the (event, user) row in one statement.

    Returns True when this call inserted the row. An insert stamps both
    timestamps with the same value; the update branch only moves
    ``updated_at``.
    """
    insert = _upsert_insert(db.get_bind().dialect.name)
    if insert is not None:
        stmt = insert(RSVP).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[RSVP.event_id, RSVP.user_id],
            set_={f: stmt.excluded[f] for f in _MUTABLE_FIELDS + ("updated_at",)},
        ).returning(RSVP.created_at, RSVP.updated_at)
        created_at, updated_at = db.execute(stmt).one()
        db.commit()
        return created_at == updated_at

    # Dialects without ON CONFLICT: rely on the unique constraint and retry as update.
    try:
        db.add(RSVP(**values))
        db.commit()
        return True
    except IntegrityError:
        db.rollback()
        row = (
            db.query(RSVP)
            .filter(RSVP.event_id == values["event_id"], RSVP.user_id == values["user_id"])
            .with_for_update()
            .one()
        )
        for field in _MUTABLE_FIELDS + ("updated_at",):
            setattr(row, field, values[field])
        db.commit()
        return False


def submit_rsvp(db: Session, payload: RSVPSubmit, user: User) -> tuple[RSVP, Event, bool]:
    """Create or update the caller's RSVP for an active event.

    Returns the stored row, its event and whether this call created the row.
    """
    event = _get_open_event(db, payload.event_id)

    now = utcnow()
    values = {
        "event_id": event.id,
        "user_id": user.id,
        "status": payload.status,
        "dietary_restrictions": payload.dietary_restrictions,
        "plus_one": payload.plus_one,
        "plus_one_name": payload.plus_one_name,
        "notes": payload.notes,
        "created_at": now,
        "updated_at": now,
    }
    created = _write_registered(db, values)

    rsvp = (
        db.query(RSVP)
        .filter(RSVP.event_id == event.id, RSVP.user_id == user.id)
        .populate_existing()
        .one()
    )
    logger.info(
        "%s RSVP %s for event %s by user %s: %s",
        "Created" if created else "Updated", rsvp.id, event.id, user.id, rsvp.status.value,
    )
    return rsvp, event, created


def submit_guest_rsvp(db: Session, payload: GuestRSVPSubmit) -> tuple[GuestRSVP, Event]:
    """Record an anonymous response. Guest submissions are never deduplicated."""
    event = _get_open_event(db, payload.event_id)
    guest = GuestRSVP(**payload.model_dump(exclude={"event_id"}), event_id=event.id)
    db.add(guest)
    db.commit()
    db.refresh(guest)
    logger.info("Created guest RSVP %s for event %s: %s", guest.id, event.id, guest.status.value)
    return guest, event


def moderate_rsvp(
    db: Session,
    rsvp_id: int,
    payload: RSVPModerate,
    actor: User,
    kind: RSVPKind = RSVPKind.registered,
) -> tuple[Union[RSVP, GuestRSVP], Event]:
    """Owner/admin status change on a single response of either kind."""
    model = RSVP if kind == RSVPKind.registered else GuestRSVP
    row = db.query(model).filter(model.id == rsvp_id).first()
    if not row:
        raise NotFound("RSVP not found")

    event = row.event
    ensure_can_manage_event(event, actor, "update RSVPs for")

    row.status = payload.status
    row.notes = payload.notes
    row.updated_at = utcnow()
    db.commit()
    db.refresh(row)
    logger.info(
        "Moderated %s RSVP %s on event %s by user %s: %s",
        kind.value, row.id, event.id, actor.id, row.status.value,
    )
    return row, event


def event_attendees(db: Session, event_id: int) -> list[Attendee]:
    """Registered and guest responses for one event, oldest submission first.

    Not access-controlled; owner checks belong to the caller.
    """
    registered = (
        db.query(RSVP, User.username, User.email)
        .join(User, RSVP.user_id == User.id)
        .filter(RSVP.event_id == event_id)
        .all()
    )
    guests = db.query(GuestRSVP).filter(GuestRSVP.event_id == event_id).all()

    attendees: list[Attendee] = [
        RegisteredAttendee(
            **RSVPOut.model_validate(rsvp).model_dump(),
            display_name=username,
            email=email,
        )
        for rsvp, username, email in registered
    ]
    attendees.extend(
        GuestAttendee(**GuestRSVPOut.model_validate(g).model_dump(), display_name=g.name)
        for g in guests
    )
    attendees.sort(key=lambda a: (a.created_at, _KIND_ORDER[RSVPKind(a.kind)], a.id))
    return attendees


def list_event_rsvps(db: Session, event_id: int, actor: User) -> list[Attendee]:
    event = get_event_or_404(db, event_id)
    ensure_can_manage_event(event, actor, "view RSVPs for")
    return event_attendees(db, event.id)


def list_user_rsvps(db: Session, user: User, page: int, limit: int) -> Page[MyRSVPItem]:
    """The caller's registered RSVPs with event summary fields, by event date."""
    query = (
        db.query(RSVP, Event)
        .join(Event, RSVP.event_id == Event.id)
        .filter(RSVP.user_id == user.id)
    )
    total = query.count()
    rows = (
        query.order_by(Event.event_date.asc(), RSVP.id.asc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )
    items = [
        MyRSVPItem(
            **RSVPOut.model_validate(rsvp).model_dump(),
            event_title=event.title,
            event_date=event.event_date,
            location=event.location,
            event_status=event.status,
        )
        for rsvp, event in rows
    ]
    return Page[MyRSVPItem](items=items, pagination=Pagination.build(page, limit, total))
