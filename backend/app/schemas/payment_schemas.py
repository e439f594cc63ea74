"""
Payment-related Pydantic schemas for the Medtik platform.

Defines response models for the Paymob transaction callback and the
payment history listing.
"""

import datetime as dt
from decimal import Decimal
from typing import List, Optional

from pydantic import ConfigDict, Field

from ._strict_base import StrictModel

# ========== Response Models ==========


class WebhookResponse(StrictModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)
    """Response for webhook processing."""

    status: str = Field(..., description="Processing status (success, ignored, error)")
    event_type: str = Field(..., description="Callback outcome or event type")
    message: Optional[str] = Field(None, description="Additional information")


class PaymentHistoryItem(StrictModel):
    model_config = ConfigDict(from_attributes=True, extra="forbid", validate_assignment=True)

    id: int
    appointment_id: Optional[int] = None
    doctor_id: int
    patient_id: int
    amount: Decimal = Field(..., description="Amount in the settlement currency")
    currency: str
    original_amount: Optional[Decimal] = None
    original_currency: Optional[str] = None
    status: str
    created_at: dt.datetime
    paid_at: Optional[dt.datetime] = None
    refunded_at: Optional[dt.datetime] = None


class PaymentHistoryResponse(StrictModel):
    payments: List[PaymentHistoryItem]
    total: int
