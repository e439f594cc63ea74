# backend/app/services/slot_service.py
"""
Slot Service for the Medtik platform

Doctor calendar management and patient-facing slot discovery.

Key behaviours:
- Overlap checking on creation, across every slot of the doctor
- Slots are listed only for channels the doctor actually prices
- RESERVED slots can never be deleted
"""

from dataclasses import dataclass
from datetime import date, datetime
import logging
from typing import List, Optional

from sqlalchemy.orm import Session

from ..core.exceptions import (
    AvailabilityOverlapException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import ensure_utc, format_range, utc_now
from ..models.doctor import ServiceType
from ..models.slot import DoctorSlot, SlotStatus
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BookableSlot:
    """A slot as shown to patients, with channels masked by the doctor's prices."""

    id: int
    doctor_id: int
    date: date
    start_time: datetime
    end_time: datetime
    chat: bool
    voice: bool
    video: bool
    notes: Optional[str]

    @property
    def services(self) -> List[str]:
        return [
            service.value
            for service in ServiceType
            if getattr(self, service.value.lower())
        ]


class SlotService(BaseService):
    """Service layer for doctor slots."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.slot_repository = RepositoryFactory.create_slot_repository(db)
        self.pricing_repository = RepositoryFactory.create_pricing_repository(db)

    @BaseService.measure_operation("find_available")
    def find_available(
        self, doctor_id: int, range_start: datetime, range_end: datetime
    ) -> List[DoctorSlot]:
        """AVAILABLE slots overlapping the range that have not started yet, ordered by start."""
        if ensure_utc(range_start) >= ensure_utc(range_end):
            raise ValidationException("Range start must be before range end")
        return self.slot_repository.find_available(
            doctor_id, range_start, range_end, starts_after=utc_now()
        )

    @BaseService.measure_operation("list_bookable")
    def list_bookable(
        self, doctor_id: int, range_start: datetime, range_end: datetime
    ) -> List[BookableSlot]:
        """
        Available slots a patient can actually book.

        A slot flag survives only if the doctor has at least one price row
        for that service; slots left with no channel are dropped.
        """
        offered = self.pricing_repository.offered_services(doctor_id)
        bookable: List[BookableSlot] = []
        for slot in self.find_available(doctor_id, range_start, range_end):
            chat = bool(slot.chat) and ServiceType.CHAT.value in offered
            voice = bool(slot.voice) and ServiceType.VOICE.value in offered
            video = bool(slot.video) and ServiceType.VIDEO.value in offered
            if not (chat or voice or video):
                continue
            bookable.append(
                BookableSlot(
                    id=slot.id,
                    doctor_id=slot.doctor_id,
                    date=slot.date,
                    start_time=ensure_utc(slot.start_time),
                    end_time=ensure_utc(slot.end_time),
                    chat=chat,
                    voice=voice,
                    video=video,
                    notes=slot.notes,
                )
            )
        return bookable

    def check_overlap(
        self,
        doctor_id: int,
        slot_date: date,
        start_time: datetime,
        end_time: datetime,
        exclude_slot_id: Optional[int] = None,
    ) -> None:
        """
        Validate a proposed slot window.

        Raises:
            ValidationException: start >= end, or start already in the past
            AvailabilityOverlapException: Intersects another slot of the doctor
        """
        start_utc = ensure_utc(start_time)
        end_utc = ensure_utc(end_time)
        if start_utc >= end_utc:
            raise ValidationException(
                "Start time must be before end time",
                code="INVALID_TIME_RANGE",
            )
        if start_utc < utc_now():
            raise ValidationException(
                "Cannot create a slot in the past",
                code="SLOT_IN_PAST",
            )

        conflict = self.slot_repository.find_overlap(
            doctor_id, start_utc, end_utc, exclude_slot_id=exclude_slot_id
        )
        if conflict is not None:
            raise AvailabilityOverlapException(
                specific_date=slot_date.isoformat(),
                new_range=format_range(start_utc, end_utc),
                conflicting_range=format_range(conflict.start_time, conflict.end_time),
            )

    @BaseService.measure_operation("create_slot")
    def create_slot(
        self,
        doctor_id: int,
        slot_date: date,
        start_time: datetime,
        end_time: datetime,
        *,
        chat: bool = False,
        voice: bool = False,
        video: bool = False,
        notes: Optional[str] = None,
    ) -> DoctorSlot:
        """Open a new AVAILABLE slot on the doctor's calendar."""
        self.check_overlap(doctor_id, slot_date, start_time, end_time)

        with self.transaction():
            slot = self.slot_repository.create(
                doctor_id=doctor_id,
                date=slot_date,
                start_time=ensure_utc(start_time),
                end_time=ensure_utc(end_time),
                chat=chat,
                voice=voice,
                video=video,
                notes=notes,
                status=SlotStatus.AVAILABLE.value,
            )

        self.log_operation("create_slot", doctor_id=doctor_id, slot_id=slot.id)
        return slot

    @BaseService.measure_operation("delete_slot")
    def delete_slot(self, doctor_id: int, slot_id: int) -> None:
        """
        Remove a slot the doctor owns.

        Raises:
            NotFoundException: Missing, or owned by another doctor
            ConflictException: The slot is currently RESERVED
        """
        slot = self.slot_repository.get_by_id(slot_id, load_relationships=False)
        if slot is None or slot.doctor_id != doctor_id:
            raise NotFoundException("Slot not found", code="SLOT_NOT_FOUND")
        if slot.status == SlotStatus.RESERVED.value:
            raise ConflictException(
                "Reserved slots cannot be deleted",
                code="SLOT_RESERVED",
                details={"slot_id": slot_id},
            )

        with self.transaction():
            # Conditional delete: a reservation may have landed since the read
            if not self.slot_repository.delete_unreserved(slot_id):
                raise ConflictException(
                    "Reserved slots cannot be deleted",
                    code="SLOT_RESERVED",
                    details={"slot_id": slot_id},
                )

        self.log_operation("delete_slot", doctor_id=doctor_id, slot_id=slot_id)
