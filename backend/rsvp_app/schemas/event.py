"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from rsvp_app.models.event import EventStatus


class EventCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    event_date: datetime
    location: Optional[str] = Field(None, max_length=200)
    max_attendees: Optional[int] = Field(None, ge=1)
    is_public: bool = True
    allow_comments: bool = True
    dietary_tracking: bool = False

    model_config = {"str_strip_whitespace": True}


class EventUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, max_length=1000)
    event_date: Optional[datetime] = None
    location: Optional[str] = Field(None, max_length=200)
    max_attendees: Optional[int] = Field(None, ge=1)
    status: Optional[EventStatus] = None
    is_public: Optional[bool] = None
    allow_comments: Optional[bool] = None
    dietary_tracking: Optional[bool] = None

    model_config = {"str_strip_whitespace": True}


class EventOut(BaseModel):
    id: int
    title: str
    description: Optional[str] = None
    event_date: datetime
    location: Optional[str] = None
    max_attendees: Optional[int] = None
    created_by: int
    status: EventStatus
    is_public: bool
    allow_comments: bool
    dietary_tracking: bool
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class EventSummaryOut(EventOut):
    """An event with its attendance aggregates, as shown in listings."""

    creator_name: Optional[str] = None
    confirmed_count: int = 0
    total_rsvps: int = 0


class EventDetailOut(EventSummaryOut):
    guest_count: int = 0
    confirmed_guest_count: int = 0
