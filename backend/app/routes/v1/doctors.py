# backend/app/routes/v1/doctors.py
"""
Doctor slot routes - API v1

Versioned slot endpoints under /api/v1/doctors.

Endpoints:
    GET /{doctor_id}/slots        → Bookable slots of a doctor in a time range
    POST /me/slots                → Current doctor publishes a slot
    DELETE /me/slots/{slot_id}    → Current doctor removes a non-reserved slot
"""

import asyncio
from datetime import datetime, timedelta, timezone
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, Response, status

from ...api.dependencies.auth import get_current_doctor
from ...api.dependencies.services import get_slot_service
from ...core.exceptions import DomainException
from ...models.doctor import Doctor
from ...schemas.slot import BookableSlotResponse, SlotCreate, SlotListResponse, SlotResponse
from ...services.slot_service import SlotService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["doctors-v1"])

DEFAULT_LISTING_DAYS = 14


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


@router.get("/{doctor_id}/slots", response_model=SlotListResponse)
async def list_doctor_slots(
    doctor_id: int = Path(..., ge=1),
    start: Optional[datetime] = Query(None, description="Range start; defaults to now"),
    end: Optional[datetime] = Query(None, description="Range end; defaults to two weeks out"),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotListResponse:
    """
    List available slots a patient can book.

    Service flags are limited to the services the doctor prices.
    """
    range_start = start or datetime.now(timezone.utc)
    range_end = end or range_start + timedelta(days=DEFAULT_LISTING_DAYS)
    try:
        slots = await asyncio.to_thread(
            slot_service.list_bookable, doctor_id, range_start, range_end
        )
    except DomainException as e:
        handle_domain_exception(e)
    return SlotListResponse(
        doctor_id=doctor_id,
        slots=[BookableSlotResponse.model_validate(slot) for slot in slots],
    )


@router.post(
    "/me/slots",
    response_model=SlotResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Invalid or past time range"},
        409: {"description": "Overlaps an existing slot"},
    },
)
async def create_slot(
    payload: SlotCreate = Body(...),
    doctor: Doctor = Depends(get_current_doctor),
    slot_service: SlotService = Depends(get_slot_service),
) -> SlotResponse:
    try:
        slot = await asyncio.to_thread(
            slot_service.create_slot,
            doctor.id,
            payload.date,
            payload.start_time,
            payload.end_time,
            chat=payload.chat,
            voice=payload.voice,
            video=payload.video,
            notes=payload.notes,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return SlotResponse.model_validate(slot)


@router.delete(
    "/me/slots/{slot_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    responses={
        404: {"description": "Slot not found"},
        409: {"description": "Slot is reserved"},
    },
)
async def delete_slot(
    slot_id: int = Path(..., ge=1),
    doctor: Doctor = Depends(get_current_doctor),
    slot_service: SlotService = Depends(get_slot_service),
) -> Response:
    try:
        await asyncio.to_thread(slot_service.delete_slot, doctor.id, slot_id)
    except DomainException as e:
        handle_domain_exception(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
