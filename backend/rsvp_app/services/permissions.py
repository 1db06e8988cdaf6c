"""Owner-or-admin gate shared by every owner-scoped operation."""
from rsvp_app.errors import Forbidden
from rsvp_app.models.event import Event
from rsvp_app.models.user import User, UserRole


def can_manage_event(event: Event, identity: User) -> bool:
    """True when ``identity`` created ``event`` or is an administrator."""
    return event.created_by == identity.id or identity.role == UserRole.admin


def ensure_can_manage_event(event: Event, identity: User, action: str = "manage") -> None:
    if not can_manage_event(event, identity):
        raise Forbidden(f"Not authorized to {action} this event")
