# backend/app/routes/v1/payments.py
"""
Payment routes - API v1

Versioned payment endpoints under /api/v1/payments.

Endpoints:
    POST /callback?hmac=<signature>   → Paymob transaction callback
    GET /me                          → Payment history of the current patient or doctor
"""

import asyncio
import json
import logging
from typing import Any, Mapping, Optional, Union

from fastapi import APIRouter, Depends, HTTPException, Query, Request

from ...api.dependencies.auth import get_current_profile
from ...api.dependencies.services import get_history_service, get_payment_callback_service
from ...core.constants import DEFAULT_HISTORY_LIMIT, MAX_HISTORY_LIMIT
from ...core.exceptions import SignatureInvalidException
from ...models.doctor import Doctor
from ...models.patient import Patient
from ...schemas.payment_schemas import (
    PaymentHistoryItem,
    PaymentHistoryResponse,
    WebhookResponse,
)
from ...services.history_service import HistoryService
from ...services.payment_callback_service import (
    OUTCOME_IGNORED,
    PaymentCallbackService,
)

logger = logging.getLogger(__name__)

# V1 router - no prefix here, will be added when mounting in main.py
router = APIRouter(tags=["payments-v1"])


@router.post("/callback", response_model=WebhookResponse)
async def handle_paymob_callback(
    request: Request,
    hmac: Optional[str] = Query(None, description="Hex HMAC-SHA512 of the transaction fields"),
    callback_service: PaymentCallbackService = Depends(get_payment_callback_service),
) -> WebhookResponse:
    """
    Handle Paymob transaction callbacks.

    Returns:
        Acknowledgement (always 200 once the signature checks out, so the
        gateway stops retrying)

    Note:
        This endpoint has no authentication as it uses HMAC signature verification
    """
    try:
        try:
            payload: Any = json.loads(await request.body())
        except ValueError:
            logger.warning("Callback received with a non-JSON body")
            raise HTTPException(status_code=400, detail="Invalid payload")
        if not isinstance(payload, Mapping):
            raise HTTPException(status_code=400, detail="Invalid payload")

        if not hmac:
            logger.warning("Callback received without signature")
            raise HTTPException(status_code=400, detail="No signature")

        try:
            outcome = await asyncio.to_thread(callback_service.handle_callback, payload, hmac)
        except SignatureInvalidException as e:
            raise e.to_http_exception()

        return WebhookResponse(
            status="ignored" if outcome.outcome == OUTCOME_IGNORED else "success",
            event_type=outcome.outcome,
            message=(
                f"Payment {outcome.payment_id} processed"
                if outcome.payment_id is not None
                else None
            ),
        )

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Callback processing error: {str(e)}", exc_info=True)
        # Return 200 to prevent the gateway from retrying a payload we cannot apply
        return WebhookResponse(
            status="error",
            event_type="unknown",
            message="Callback received but processing failed",
        )


@router.get("/me", response_model=PaymentHistoryResponse)
async def list_my_payments(
    limit: int = Query(DEFAULT_HISTORY_LIMIT, ge=1, le=MAX_HISTORY_LIMIT),
    profile: Union[Patient, Doctor] = Depends(get_current_profile),
    history_service: HistoryService = Depends(get_history_service),
) -> PaymentHistoryResponse:
    """Payments made by the current patient, or taken by the current doctor."""
    if isinstance(profile, Doctor):
        payments = await asyncio.to_thread(history_service.list_doctor_payments, profile.id, limit)
    else:
        payments = await asyncio.to_thread(history_service.list_patient_payments, profile.id, limit)
    items = [PaymentHistoryItem.model_validate(p) for p in payments]
    return PaymentHistoryResponse(payments=items, total=len(items))
