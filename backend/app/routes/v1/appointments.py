# backend/app/routes/v1/appointments.py
"""
Appointment routes - API v1

Versioned appointment endpoints under /api/v1/appointments.

Endpoints:
    POST /reserve                      → Hold a slot and start checkout
    GET /me                            → Current patient's appointments
    GET /{appointment_id}/checkout     → Persisted checkout for a held appointment
    POST /{appointment_id}/cancel      → Patient cancels, refund when eligible
"""

import asyncio
import logging
from typing import NoReturn, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Path, Query, status

from ...api.dependencies.auth import get_current_patient
from ...api.dependencies.services import (
    get_cancellation_service,
    get_history_service,
    get_reservation_service,
)
from ...core.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from ...core.exceptions import DomainException
from ...models.patient import Patient
from ...schemas.appointment import (
    AppointmentHistoryItem,
    AppointmentListResponse,
    AppointmentResponse,
    CancelAppointmentRequest,
    CancellationResponse,
    PaymentSummary,
    ReservationResponse,
    ReserveSlotRequest,
)
from ...services.cancellation_service import CancellationService
from ...services.history_service import HistoryService
from ...services.reservation_service import ReservationResult, ReservationService

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["appointments-v1"])


def handle_domain_exception(exc: DomainException) -> NoReturn:
    """Convert domain exceptions to HTTP exceptions."""
    if hasattr(exc, "to_http_exception"):
        raise exc.to_http_exception()
    raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))


def _reservation_response(result: ReservationResult) -> ReservationResponse:
    return ReservationResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        payment=PaymentSummary.model_validate(result.payment),
        checkout_url=result.checkout_url,
    )


@router.post(
    "/reserve",
    response_model=ReservationResponse,
    status_code=status.HTTP_201_CREATED,
    responses={
        400: {"description": "Unknown service type or no price for it"},
        404: {"description": "Slot not found"},
        409: {"description": "Slot is no longer available"},
        502: {"description": "Payment gateway unavailable; retry later"},
    },
)
async def reserve_slot(
    payload: ReserveSlotRequest = Body(...),
    patient: Patient = Depends(get_current_patient),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    """
    Reserve a slot for the current patient.

    The appointment stays PENDING_PAYMENT until the gateway confirms the
    payment; unpaid holds are released automatically after the grace period.
    """
    try:
        result = await asyncio.to_thread(
            reservation_service.reserve_slot,
            patient.id,
            payload.slot_id,
            payload.service_type,
            payload.patient_country,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _reservation_response(result)


@router.get(
    "/me",
    response_model=AppointmentListResponse,
    responses={400: {"description": "Unknown status filter"}},
)
async def list_my_appointments(
    status_filter: Optional[str] = Query(None, alias="status", description="e.g. CONFIRMED"),
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    patient: Patient = Depends(get_current_patient),
    history_service: HistoryService = Depends(get_history_service),
) -> AppointmentListResponse:
    """The current patient's appointments, latest first."""
    try:
        appointments = await asyncio.to_thread(
            history_service.list_patient_appointments, patient.id, status_filter, limit
        )
    except DomainException as e:
        handle_domain_exception(e)
    items = [AppointmentHistoryItem.model_validate(a) for a in appointments]
    return AppointmentListResponse(appointments=items, total=len(items))


@router.get(
    "/{appointment_id}/checkout",
    response_model=ReservationResponse,
    responses={404: {"description": "Appointment or checkout not found"}},
)
async def get_checkout(
    appointment_id: int = Path(..., ge=1),
    patient: Patient = Depends(get_current_patient),
    reservation_service: ReservationService = Depends(get_reservation_service),
) -> ReservationResponse:
    try:
        result = await asyncio.to_thread(
            reservation_service.get_checkout, patient.id, appointment_id
        )
    except DomainException as e:
        handle_domain_exception(e)
    return _reservation_response(result)


@router.post(
    "/{appointment_id}/cancel",
    response_model=CancellationResponse,
    responses={
        403: {"description": "Appointment belongs to another patient"},
        404: {"description": "Appointment not found"},
        422: {"description": "Appointment can no longer be cancelled"},
    },
)
async def cancel_appointment(
    appointment_id: int = Path(..., ge=1),
    payload: Optional[CancelAppointmentRequest] = Body(None),
    patient: Patient = Depends(get_current_patient),
    cancellation_service: CancellationService = Depends(get_cancellation_service),
) -> CancellationResponse:
    try:
        result = await asyncio.to_thread(
            cancellation_service.cancel_appointment,
            patient.id,
            appointment_id,
            payload.reason if payload is not None else None,
        )
    except DomainException as e:
        handle_domain_exception(e)
    return CancellationResponse(
        appointment=AppointmentResponse.model_validate(result.appointment),
        refund_status=result.refund_status,
    )
