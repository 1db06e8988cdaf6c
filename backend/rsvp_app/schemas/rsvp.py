"""Pydantic schemas for registered and guest RSVPs."""
from __future__ import annotations
from datetime import datetime
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field

from rsvp_app.models.event import EventStatus
from rsvp_app.models.rsvp import RSVPStatus


class _RSVPFields(BaseModel):
    status: RSVPStatus
    dietary_restrictions: Optional[str] = Field(None, max_length=500)
    plus_one: bool = False
    plus_one_name: Optional[str] = Field(None, max_length=100)
    notes: Optional[str] = Field(None, max_length=1000)

    model_config = {"str_strip_whitespace": True}


class RSVPSubmit(_RSVPFields):
    event_id: int = Field(ge=1)


class GuestRSVPSubmit(_RSVPFields):
    event_id: int = Field(ge=1)
    name: str = Field(min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    phone: Optional[str] = Field(None, max_length=20)


class RSVPModerate(BaseModel):
    status: RSVPStatus
    notes: Optional[str] = Field(None, max_length=1000)

    model_config = {"str_strip_whitespace": True}


class RSVPOut(BaseModel):
    id: int
    event_id: int
    user_id: int
    status: RSVPStatus
    dietary_restrictions: Optional[str] = None
    plus_one: bool
    plus_one_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class GuestRSVPOut(BaseModel):
    id: int
    event_id: int
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    status: RSVPStatus
    dietary_restrictions: Optional[str] = None
    plus_one: bool
    plus_one_name: Optional[str] = None
    notes: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class SubmitResult(BaseModel):
    message: str
    status: RSVPStatus
    rsvp: Union[RSVPOut, GuestRSVPOut]


class RegisteredAttendee(RSVPOut):
    kind: Literal["registered"] = "registered"
    display_name: str
    email: Optional[str] = None


class GuestAttendee(GuestRSVPOut):
    kind: Literal["guest"] = "guest"
    display_name: str


EventRSVPItem = Annotated[Union[RegisteredAttendee, GuestAttendee], Field(discriminator="kind")]


class EventRSVPList(BaseModel):
    event_id: int
    items: list[EventRSVPItem]


class MyRSVPItem(RSVPOut):
    event_title: str
    event_date: datetime
    location: Optional[str] = None
    event_status: EventStatus
