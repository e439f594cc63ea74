# backend/app/api/dependencies/auth.py
"""
Authentication and authorization dependencies.

Tokens are verified by the gateway in front of this service, which
forwards the authenticated user as ``X-User-Id`` and ``X-User-Role``.
Profile lookups run through ``asyncio.to_thread`` so the sync session
never blocks the event loop.
"""

import asyncio
from dataclasses import dataclass
import logging
from typing import Optional, Union

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from ...models.doctor import Doctor
from ...models.patient import Patient
from ...repositories.factory import RepositoryFactory
from .database import get_db

logger = logging.getLogger(__name__)

ROLE_PATIENT = "patient"
ROLE_DOCTOR = "doctor"


@dataclass(frozen=True)
class CurrentUser:
    user_id: int
    role: str


async def get_current_user(
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> CurrentUser:
    """Authenticated caller forwarded by the upstream gateway."""
    if not x_user_id or not x_user_role:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    try:
        user_id = int(x_user_id)
    except ValueError:
        logger.warning("Rejected malformed X-User-Id header")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )
    return CurrentUser(user_id=user_id, role=x_user_role.strip().lower())


def _require_role(user: CurrentUser, role: str) -> None:
    if user.role != role:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"This action requires the {role} role",
        )


async def get_current_patient(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Patient:
    _require_role(current_user, ROLE_PATIENT)
    repository = RepositoryFactory.create_pricing_repository(db)
    patient = await asyncio.to_thread(repository.get_patient_by_user_id, current_user.user_id)
    if patient is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No patient profile for this user",
        )
    return patient


async def get_current_doctor(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Doctor:
    _require_role(current_user, ROLE_DOCTOR)
    repository = RepositoryFactory.create_pricing_repository(db)
    doctor = await asyncio.to_thread(repository.get_doctor_by_user_id, current_user.user_id)
    if doctor is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="No doctor profile for this user",
        )
    return doctor


async def get_current_profile(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> Union[Patient, Doctor]:
    """Patient or doctor profile of the caller, by role."""
    repository = RepositoryFactory.create_pricing_repository(db)
    if current_user.role == ROLE_PATIENT:
        lookup = repository.get_patient_by_user_id
    elif current_user.role == ROLE_DOCTOR:
        lookup = repository.get_doctor_by_user_id
    else:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="This action requires the patient or doctor role",
        )
    profile = await asyncio.to_thread(lookup, current_user.user_id)
    if profile is None:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"No {current_user.role} profile for this user",
        )
    return profile
