# backend/app/schemas/slot.py
"""
Slot schemas for the Medtik platform.

Slots are stored as UTC instants; ``date`` is the calendar day the doctor
published the slot under.
"""

import datetime as dt
from typing import List, Optional

from pydantic import ConfigDict, Field, model_validator

from ..core.constants import MAX_NOTES_LENGTH
from ._strict_base import StrictModel, StrictRequestModel


class SlotCreate(StrictRequestModel):
    """Doctor publishes a new slot."""

    date: dt.date = Field(..., description="Calendar day of the slot")
    start_time: dt.datetime = Field(..., description="Slot start (timezone-aware)")
    end_time: dt.datetime = Field(..., description="Slot end (timezone-aware)")
    chat: bool = Field(default=False, description="Offer the slot for chat consultations")
    voice: bool = Field(default=False, description="Offer the slot for voice consultations")
    video: bool = Field(default=False, description="Offer the slot for video consultations")
    notes: Optional[str] = Field(None, max_length=MAX_NOTES_LENGTH)

    @model_validator(mode="after")
    def _at_least_one_service(self) -> "SlotCreate":
        if not (self.chat or self.voice or self.video):
            raise ValueError("At least one of chat, voice or video must be offered")
        return self


class SlotResponse(StrictModel):
    """Slot as stored."""

    model_config = ConfigDict(from_attributes=True, extra="forbid", validate_assignment=True)

    id: int
    doctor_id: int
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    chat: bool
    voice: bool
    video: bool
    notes: Optional[str] = None
    status: str


class BookableSlotResponse(StrictModel):
    """Available slot with service flags limited to what the doctor prices."""

    model_config = ConfigDict(from_attributes=True, extra="forbid", validate_assignment=True)

    id: int
    doctor_id: int
    date: dt.date
    start_time: dt.datetime
    end_time: dt.datetime
    chat: bool
    voice: bool
    video: bool
    notes: Optional[str] = None
    services: List[str] = Field(default_factory=list, description="Bookable service types")


class SlotListResponse(StrictModel):
    doctor_id: int
    slots: List[BookableSlotResponse]
