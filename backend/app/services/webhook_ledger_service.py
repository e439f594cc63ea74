"""Service for logging gateway callbacks to the webhook ledger."""

from __future__ import annotations

from datetime import datetime, timezone
import time
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.exceptions import RepositoryException
from app.models.webhook_event import WebhookEvent
from app.repositories.factory import RepositoryFactory
from app.services.base import BaseService

_SENSITIVE_KEYS = {"hmac", "api_key", "token", "payment_token"}


def _now_utc() -> datetime:
    return datetime.now(timezone.utc)


class WebhookLedgerService(BaseService):
    """Business logic for webhook ledger entries."""

    def __init__(self, db: Session) -> None:
        super().__init__(db)
        self.repository = RepositoryFactory.create_webhook_event_repository(db)

    def _bump_retry(self, event: WebhookEvent, now: datetime) -> WebhookEvent:
        event.retry_count = (event.retry_count or 0) + 1
        event.last_retry_at = now
        self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.log_received")
    def log_received(
        self,
        *,
        source: str,
        event_type: str,
        payload: dict[str, Any],
        event_id: str | None = None,
    ) -> WebhookEvent:
        """
        Log a received callback before processing.

        A redelivered event_id bumps the retry counter on the existing row
        instead of creating a second one.
        """
        now = _now_utc()
        if event_id:
            existing = self.repository.find_by_source_and_event_id(source, event_id)
            if existing is not None:
                return self._bump_retry(existing, now)

        try:
            return self.repository.create(
                source=source,
                event_type=event_type or "unknown",
                event_id=event_id,
                payload=self._sanitize(payload),
                status="received",
                received_at=now,
                retry_count=0,
            )
        except RepositoryException as exc:
            # Race-safe fallback: DB uniqueness won in another worker.
            if isinstance(exc.__cause__, IntegrityError) and event_id:
                existing = self.repository.find_by_source_and_event_id(source, event_id)
                if existing is not None:
                    return self._bump_retry(existing, now)
            raise

    @BaseService.measure_operation("webhook_ledger.mark_processed")
    def mark_processed(
        self,
        event: WebhookEvent,
        *,
        related_entity_type: str | None = None,
        related_entity_id: str | None = None,
        duration_ms: int | None = None,
        status: str = "processed",
    ) -> WebhookEvent:
        """Mark webhook as handled; status may be processed, duplicate or ignored."""
        event.status = status
        event.processing_error = None
        event.processed_at = _now_utc()
        event.related_entity_type = related_entity_type
        event.related_entity_id = related_entity_id
        event.processing_duration_ms = duration_ms
        self.repository.flush()
        return event

    @BaseService.measure_operation("webhook_ledger.mark_failed")
    def mark_failed(
        self,
        event: WebhookEvent,
        *,
        error: str,
        duration_ms: int | None = None,
    ) -> WebhookEvent:
        """Mark webhook as failed."""
        event.status = "failed"
        event.processing_error = error
        event.processed_at = _now_utc()
        event.processing_duration_ms = duration_ms
        self.repository.flush()
        return event

    def _sanitize(self, payload: dict[str, Any]) -> dict[str, Any]:
        return {
            key: ("***" if key.lower() in _SENSITIVE_KEYS else value)
            for key, value in payload.items()
        }

    def elapsed_ms(self, start: float) -> int:
        return int((time.monotonic() - start) * 1000)
