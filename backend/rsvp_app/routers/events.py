"""Event API routes — delegates to event_service for ownership and lifecycle rules."""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from rsvp_app.database import get_db
from rsvp_app.dependencies import PageParams, get_mirror, page_params
from rsvp_app.models.event import EventStatus
from rsvp_app.models.user import User
from rsvp_app.schemas.common import MessageOut, Page
from rsvp_app.schemas.event import EventCreate, EventDetailOut, EventOut, EventSummaryOut, EventUpdate
from rsvp_app.security import get_current_user
from rsvp_app.services import event_service
from rsvp_app.services.mirror import AttendanceMirror

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(
    payload: EventCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    mirror: AttendanceMirror = Depends(get_mirror),
):
    """Create an event owned by the caller and queue its mirror workspace."""
    event = event_service.create_event(db, payload, current_user)
    mirror.schedule_workspace(event.id, event.title)
    return event


@router.get("", response_model=Page[EventSummaryOut])
def list_events(
    status_filter: Optional[EventStatus] = Query(None, alias="status"),
    search: Optional[str] = Query(None, max_length=200),
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
):
    """List events with attendance counts, optionally filtered by status or text."""
    return event_service.list_events(db, paging.page, paging.limit, status=status_filter, search=search)


@router.get("/my-events", response_model=Page[EventSummaryOut])
def my_events(
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return event_service.list_owned_events(db, current_user, paging.page, paging.limit)


@router.get("/{event_id}", response_model=EventDetailOut)
def get_event(event_id: int, db: Session = Depends(get_db)):
    """Fetch a single event with its attendance counts."""
    return event_service.get_event_detail(db, event_id)


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: int,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    mirror: AttendanceMirror = Depends(get_mirror),
):
    """Update an event (owner or admin)."""
    updates = payload.model_dump(exclude_unset=True)
    event = event_service.update_event(db, event_id, current_user, updates)
    if "title" in updates:
        # The title heads the mirrored attendee file.
        mirror.schedule_refresh(event.id, event.title)
    return event


@router.delete("/{event_id}", response_model=MessageOut)
def delete_event(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Cancel an event (soft delete, owner or admin). RSVPs are kept."""
    event_service.cancel_event(db, event_id, current_user)
    return MessageOut(message="Event deleted successfully")
