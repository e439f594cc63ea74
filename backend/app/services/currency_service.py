# backend/app/services/currency_service.py
"""
Currency conversion into the settlement currency.

Rates are fetched relative to the settlement currency and kept in memory
for ``exchange_rate_cache_ttl_seconds``. The service is shared by all
requests in a process, so the cache is guarded by a lock.
"""

from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
import logging
import threading
import time
from typing import Callable, Dict, Iterable, Optional

from ..core.config import settings
from ..integrations.exchange_rate_client import ExchangeRateClient, ExchangeRateError
from .base import BaseService

logger = logging.getLogger(__name__)

_CENTS = Decimal("0.01")


class CurrencyConversionError(Exception):
    """Raised when an amount cannot be converted into the settlement currency."""


class CurrencyService:
    """Converts doctor prices into the currency the gateway settles in."""

    def __init__(
        self,
        client: ExchangeRateClient,
        *,
        settlement_currency: str = "EGP",
        supported_currencies: Iterable[str] = ("USD", "AED", "SAR"),
        ttl_seconds: int = 12 * 60 * 60,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.client = client
        self.settlement_currency = settlement_currency.upper()
        self.supported_currencies = frozenset(code.upper() for code in supported_currencies)
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._lock = threading.Lock()
        # source currency -> units of settlement currency per one unit of source
        self._factors: Optional[Dict[str, Decimal]] = None
        self._fetched_at: Optional[float] = None
        self.logger = logging.getLogger(self.__class__.__name__)

    @classmethod
    def from_settings(cls) -> "CurrencyService":
        client = ExchangeRateClient(
            base_url=settings.exchange_rate_url,
            api_key=settings.exchange_rate_api_key,
            timeout=settings.gateway_timeout_seconds,
        )
        return cls(
            client,
            settlement_currency=settings.settlement_currency,
            supported_currencies=settings.supported_source_currencies,
            ttl_seconds=settings.exchange_rate_cache_ttl_seconds,
        )

    @BaseService.measure_operation("convert_to_settlement")
    def convert_to_settlement(self, amount: Decimal, from_currency: str) -> Decimal:
        """
        Convert ``amount`` into the settlement currency, rounded to 2 decimals.

        Raises:
            CurrencyConversionError: Unsupported currency or rates unavailable
        """
        source = (from_currency or "").strip().upper()
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError) as exc:
            raise CurrencyConversionError(f"Invalid amount: {amount!r}") from exc

        if source == self.settlement_currency:
            return value.quantize(_CENTS, rounding=ROUND_HALF_UP)
        if source not in self.supported_currencies:
            raise CurrencyConversionError(f"Unsupported currency: {source or from_currency!r}")

        factors = self._current_factors()
        factor = factors.get(source)
        if factor is None:
            raise CurrencyConversionError(f"No exchange rate for {source}")
        return (value * factor).quantize(_CENTS, rounding=ROUND_HALF_UP)

    def invalidate(self) -> None:
        with self._lock:
            self._factors = None
            self._fetched_at = None

    def _current_factors(self) -> Dict[str, Decimal]:
        with self._lock:
            now = self._clock()
            if (
                self._factors is not None
                and self._fetched_at is not None
                and now - self._fetched_at < self.ttl_seconds
            ):
                return self._factors

            self.logger.info("Fetching fresh exchange rates for %s", self.settlement_currency)
            try:
                rates = self.client.latest(self.settlement_currency)
            except ExchangeRateError as exc:
                raise CurrencyConversionError(str(exc)) from exc

            factors: Dict[str, Decimal] = {}
            for code in self.supported_currencies:
                rate = rates.get(code)
                if not rate:
                    self.logger.warning("Exchange rate response has no usable rate for %s", code)
                    continue
                # Rates are quoted per one settlement unit, so invert them
                try:
                    factor = Decimal(1) / Decimal(str(rate))
                except (InvalidOperation, ValueError, ZeroDivisionError) as exc:
                    raise CurrencyConversionError(
                        f"Invalid exchange rate for {code}: {rate!r}"
                    ) from exc
                if not factor.is_finite() or factor <= 0:
                    raise CurrencyConversionError(f"Invalid exchange rate for {code}: {rate!r}")
                factors[code] = factor

            self._factors = factors
            self._fetched_at = now
            return factors
