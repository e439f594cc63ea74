# backend/app/repositories/slot_repository.py
"""
Slot Repository for the Medtik platform

Data access for doctor slots. All status changes are single conditional
UPDATE statements so concurrent workers can never both win a slot.
"""

from datetime import datetime
import logging
from typing import List, Optional

from sqlalchemy import and_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.exceptions import RepositoryException
from ..models.slot import DoctorSlot, SlotStatus
from .base_repository import BaseRepository

logger = logging.getLogger(__name__)


class SlotRepository(BaseRepository[DoctorSlot]):
    """Repository for doctor slot queries and status transitions."""

    def __init__(self, db: Session):
        super().__init__(db, DoctorSlot)

    def find_available(
        self,
        doctor_id: int,
        range_start: datetime,
        range_end: datetime,
        starts_after: Optional[datetime] = None,
    ) -> List[DoctorSlot]:
        """
        AVAILABLE slots of a doctor that intersect [range_start, range_end).

        With ``starts_after``, slots starting at or before it are left out.
        """
        query = self._build_query().filter(
            DoctorSlot.doctor_id == doctor_id,
            DoctorSlot.status == SlotStatus.AVAILABLE.value,
            DoctorSlot.start_time < range_end,
            DoctorSlot.end_time > range_start,
        )
        if starts_after is not None:
            query = query.filter(DoctorSlot.start_time > starts_after)
        query = query.order_by(DoctorSlot.start_time)
        return self._execute_query(query)

    def reserve(self, slot_id: int) -> bool:
        """
        Flip a slot AVAILABLE -> RESERVED.

        Returns:
            True when this call won the slot, False when it was already taken
            or does not exist.
        """
        try:
            updated = (
                self.db.query(DoctorSlot)
                .filter(
                    DoctorSlot.id == slot_id,
                    DoctorSlot.status == SlotStatus.AVAILABLE.value,
                )
                .update({DoctorSlot.status: SlotStatus.RESERVED.value}, synchronize_session="fetch")
            )
            return int(updated) == 1
        except SQLAlchemyError as exc:
            self.logger.error("Failed to reserve slot %s: %s", slot_id, str(exc))
            raise RepositoryException(f"Failed to reserve slot {slot_id}") from exc

    def release_by_id(self, slot_id: int) -> bool:
        """Flip a slot RESERVED -> AVAILABLE. Missing or already free slots are a no-op."""
        try:
            updated = (
                self.db.query(DoctorSlot)
                .filter(
                    DoctorSlot.id == slot_id,
                    DoctorSlot.status == SlotStatus.RESERVED.value,
                )
                .update(
                    {DoctorSlot.status: SlotStatus.AVAILABLE.value}, synchronize_session="fetch"
                )
            )
        except SQLAlchemyError as exc:
            self.logger.error("Failed to release slot %s: %s", slot_id, str(exc))
            raise RepositoryException(f"Failed to release slot {slot_id}") from exc
        if not updated:
            self.logger.info("No reserved slot %s to release", slot_id)
        return bool(updated)

    def release_by_window(self, doctor_id: int, start_time: datetime, end_time: datetime) -> bool:
        """Release the reserved slot matching a doctor's exact time window."""
        try:
            updated = (
                self.db.query(DoctorSlot)
                .filter(
                    DoctorSlot.doctor_id == doctor_id,
                    DoctorSlot.start_time == start_time,
                    DoctorSlot.end_time == end_time,
                    DoctorSlot.status == SlotStatus.RESERVED.value,
                )
                .update(
                    {DoctorSlot.status: SlotStatus.AVAILABLE.value}, synchronize_session="fetch"
                )
            )
        except SQLAlchemyError as exc:
            self.logger.error(
                "Failed to release slot for doctor %s at %s: %s", doctor_id, start_time, str(exc)
            )
            raise RepositoryException("Failed to release slot by window") from exc
        if not updated:
            self.logger.info(
                "No reserved slot for doctor %s between %s and %s", doctor_id, start_time, end_time
            )
        return bool(updated)

    def release_for_appointment(self, appointment) -> bool:
        """Release the slot an appointment holds, by link or by its time window."""
        if appointment.slot_id is not None:
            return self.release_by_id(appointment.slot_id)
        return self.release_by_window(
            appointment.doctor_id, appointment.start_time, appointment.end_time
        )

    def find_overlap(
        self,
        doctor_id: int,
        start_time: datetime,
        end_time: datetime,
        exclude_slot_id: Optional[int] = None,
    ) -> Optional[DoctorSlot]:
        """First slot of the doctor intersecting [start_time, end_time), any status."""
        query = self._build_query().filter(
            and_(
                DoctorSlot.doctor_id == doctor_id,
                DoctorSlot.start_time < end_time,
                DoctorSlot.end_time > start_time,
            )
        )
        if exclude_slot_id is not None:
            query = query.filter(DoctorSlot.id != exclude_slot_id)
        try:
            return query.order_by(DoctorSlot.start_time).first()
        except SQLAlchemyError as exc:
            self.logger.error("Overlap lookup failed for doctor %s: %s", doctor_id, str(exc))
            raise RepositoryException("Failed to check slot overlap") from exc

    def delete_unreserved(self, slot_id: int) -> bool:
        """Delete a slot only while it is not RESERVED."""
        try:
            deleted = (
                self.db.query(DoctorSlot)
                .filter(
                    DoctorSlot.id == slot_id,
                    DoctorSlot.status != SlotStatus.RESERVED.value,
                )
                .delete(synchronize_session="fetch")
            )
            return bool(deleted)
        except SQLAlchemyError as exc:
            self.logger.error("Failed to delete slot %s: %s", slot_id, str(exc))
            raise RepositoryException(f"Failed to delete slot {slot_id}") from exc

    def find_expired_unreserved_ids(self, now: datetime, limit: int) -> List[int]:
        rows = (
            self.db.query(DoctorSlot.id)
            .filter(
                DoctorSlot.end_time < now,
                DoctorSlot.status != SlotStatus.RESERVED.value,
            )
            .order_by(DoctorSlot.end_time)
            .limit(limit)
            .all()
        )
        return [row[0] for row in rows]
