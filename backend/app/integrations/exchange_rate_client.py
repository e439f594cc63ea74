"""Client for the exchange-rate API used to settle foreign prices in EGP."""

from __future__ import annotations

import logging
import math
from typing import Any, Dict

import httpx
from pydantic import SecretStr

logger = logging.getLogger(__name__)


class ExchangeRateError(RuntimeError):
    """Raised when rates cannot be fetched or the API reports a failure."""


class ExchangeRateClient:
    """Fetches ``latest`` rates relative to a base currency."""

    def __init__(
        self,
        *,
        base_url: str,
        api_key: str | SecretStr | None,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        self._api_key = secret_value or ""
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    def latest(self, base_currency: str) -> Dict[str, float]:
        """
        Return ``conversion_rates`` for ``base_currency``.

        One unit of the base currency buys ``rates[X]`` units of X.
        """
        if not self._api_key:
            raise ExchangeRateError("Exchange rate API key is not configured")

        url = f"{self._base_url}/{self._api_key}/latest/{base_currency}"
        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.get(url, headers={"Accept": "application/json"})
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                logger.error(
                    "Exchange rate API error %s for base %s",
                    exc.response.status_code,
                    base_currency,
                )
                raise ExchangeRateError(
                    f"Exchange rate API responded with status {exc.response.status_code}"
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Exchange rate request failure: %s", str(exc))
                raise ExchangeRateError("Failed to reach exchange rate API") from exc

        try:
            data: Any = response.json()
        except ValueError as exc:
            raise ExchangeRateError("Received malformed JSON from exchange rate API") from exc
        if not isinstance(data, dict):
            raise ExchangeRateError("Exchange rate response is not a JSON object")

        if data.get("result") != "success":
            raise ExchangeRateError(
                f"Exchange rate API reported failure: {data.get('error-type', 'unknown')}"
            )
        rates = data.get("conversion_rates")
        if not isinstance(rates, dict):
            raise ExchangeRateError("Exchange rate response has no conversion_rates")
        return {str(code).upper(): _parse_rate(code, value) for code, value in rates.items()}


def _parse_rate(code: Any, value: Any) -> float:
    if isinstance(value, bool):
        raise ExchangeRateError(f"Invalid exchange rate for {code}: {value!r}")
    try:
        rate = float(value)
    except (TypeError, ValueError) as exc:
        raise ExchangeRateError(f"Invalid exchange rate for {code}: {value!r}") from exc
    if not math.isfinite(rate) or rate <= 0:
        raise ExchangeRateError(f"Invalid exchange rate for {code}: {value!r}")
    return rate
