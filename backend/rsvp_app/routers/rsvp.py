"""RSVP API routes.

Every successful write queues a refresh of the event's mirrored attendee
file. The refresh runs in the mirror's worker pool; the response does not
wait for it and never sees its errors.
"""
import logging

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.orm import Session

from rsvp_app.database import get_db
from rsvp_app.dependencies import PageParams, get_mirror, page_params
from rsvp_app.models.rsvp import RSVPKind
from rsvp_app.models.user import User
from rsvp_app.schemas.common import Page
from rsvp_app.schemas.rsvp import (
    EventRSVPList, GuestRSVPOut, GuestRSVPSubmit, MyRSVPItem, RSVPModerate, RSVPOut,
    RSVPSubmit, SubmitResult,
)
from rsvp_app.security import get_current_user
from rsvp_app.services import rsvp_service
from rsvp_app.services.mirror import AttendanceMirror

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/submit", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
def submit_rsvp(
    payload: RSVPSubmit,
    response: Response,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    mirror: AttendanceMirror = Depends(get_mirror),
):
    """Create the caller's RSVP, or update it in place if one already exists."""
    rsvp, event, created = rsvp_service.submit_rsvp(db, payload, current_user)
    mirror.schedule_refresh(event.id, event.title)
    if not created:
        response.status_code = status.HTTP_200_OK
    return SubmitResult(
        message="RSVP submitted successfully" if created else "RSVP updated successfully",
        status=rsvp.status,
        rsvp=RSVPOut.model_validate(rsvp),
    )


@router.post("/guest", response_model=SubmitResult, status_code=status.HTTP_201_CREATED)
def submit_guest_rsvp(
    payload: GuestRSVPSubmit,
    db: Session = Depends(get_db),
    mirror: AttendanceMirror = Depends(get_mirror),
):
    """Anonymous RSVP. Every submission is stored as a new row."""
    guest, event = rsvp_service.submit_guest_rsvp(db, payload)
    mirror.schedule_refresh(event.id, event.title)
    return SubmitResult(
        message="Guest RSVP submitted successfully",
        status=guest.status,
        rsvp=GuestRSVPOut.model_validate(guest),
    )


@router.get("/my-rsvps", response_model=Page[MyRSVPItem])
def my_rsvps(
    paging: PageParams = Depends(page_params),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return rsvp_service.list_user_rsvps(db, current_user, paging.page, paging.limit)


@router.get("/event/{event_id}", response_model=EventRSVPList)
def event_rsvps(
    event_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """All registered and guest RSVPs for an event (owner or admin)."""
    items = rsvp_service.list_event_rsvps(db, event_id, current_user)
    return EventRSVPList(event_id=event_id, items=items)


@router.put("/{rsvp_id}", response_model=SubmitResult)
def moderate_rsvp(
    rsvp_id: int,
    payload: RSVPModerate,
    kind: RSVPKind = Query(RSVPKind.registered),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    mirror: AttendanceMirror = Depends(get_mirror),
):
    """Change the status of one RSVP (owner or admin)."""
    row, event = rsvp_service.moderate_rsvp(db, rsvp_id, payload, current_user, kind=kind)
    mirror.schedule_refresh(event.id, event.title)
    out = RSVPOut.model_validate(row) if kind == RSVPKind.registered else GuestRSVPOut.model_validate(row)
    return SubmitResult(message="RSVP updated successfully", status=row.status, rsvp=out)
