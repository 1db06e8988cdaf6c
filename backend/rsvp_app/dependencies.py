"""Shared FastAPI dependencies."""
from dataclasses import dataclass

from fastapi import Query, Request

from rsvp_app.config import settings
from rsvp_app.services.mirror import AttendanceMirror


def get_mirror(request: Request) -> AttendanceMirror:
    """The process-wide attendance mirror created at startup."""
    return request.app.state.mirror


@dataclass
class PageParams:
    page: int
    limit: int


def page_params(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_LIMIT, ge=1, le=settings.MAX_PAGE_LIMIT),
) -> PageParams:
    return PageParams(page=page, limit=limit)
