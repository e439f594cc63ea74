"""Minimal Paymob Accept API client for appointment checkouts and refunds."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional, cast
from uuid import uuid4

import httpx
from pydantic import SecretStr

from ..monitoring.prometheus_metrics import prometheus_metrics

logger = logging.getLogger(__name__)

# Paymob rejects payment keys without billing data; "NA" is its accepted placeholder.
_PLACEHOLDER_BILLING: Dict[str, str] = {
    "apartment": "NA",
    "email": "NA",
    "floor": "NA",
    "first_name": "NA",
    "street": "NA",
    "building": "NA",
    "phone_number": "NA",
    "shipping_method": "NA",
    "postal_code": "NA",
    "city": "NA",
    "country": "NA",
    "last_name": "NA",
    "state": "NA",
}


class PaymobError(RuntimeError):
    """Raised when the Paymob API responds with an error or cannot be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        *,
        operation: str | None = None,
        error_body: Any | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation
        self.error_body = error_body


class PaymobClient:
    """Thin client for the Paymob Accept REST API."""

    def __init__(
        self,
        *,
        api_key: str | SecretStr,
        integration_id: int | None,
        iframe_url: str,
        base_url: str = "https://accept.paymob.com/api",
        timeout: float = 15.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        secret_value = api_key.get_secret_value() if isinstance(api_key, SecretStr) else api_key
        if not secret_value:
            raise ValueError("Paymob API key must be provided")

        self._api_key = secret_value
        self._integration_id = integration_id
        self._iframe_url = iframe_url
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Any, **kwargs: Any) -> "PaymobClient":
        return cls(
            api_key=settings.paymob_api_key,
            integration_id=settings.paymob_integration_id,
            iframe_url=settings.paymob_iframe_url,
            base_url=settings.paymob_base_url,
            timeout=settings.gateway_timeout_seconds,
            **kwargs,
        )

    def get_auth_token(self) -> str:
        """Exchange the API key for a short-lived auth token."""
        data = self.request("POST", "/auth/tokens", json_body={"api_key": self._api_key})
        return str(self._require(data, "token", "auth"))

    def create_order(
        self,
        auth_token: str,
        *,
        amount_cents: int,
        currency: str,
        merchant_order_id: str,
    ) -> str:
        """Register an order and return Paymob's order id."""
        data = self.request(
            "POST",
            "/ecommerce/orders",
            json_body={
                "auth_token": auth_token,
                "delivery_needed": False,
                "merchant_order_id": merchant_order_id,
                "amount_cents": amount_cents,
                "currency": currency,
                "items": [],
            },
            auth_token=auth_token,
        )
        return str(self._require(data, "id", "create_order"))

    def get_payment_key(
        self,
        auth_token: str,
        *,
        order_id: str,
        amount_cents: int,
        currency: str,
        billing_data: Dict[str, str] | None = None,
        expiration_seconds: int = 3600,
    ) -> str:
        """Request the payment token the hosted checkout iframe is opened with."""
        if self._integration_id is None:
            raise PaymobError("Paymob integration id is not configured", operation="payment_key")
        data = self.request(
            "POST",
            "/acceptance/payment_keys",
            json_body={
                "auth_token": auth_token,
                "amount_cents": amount_cents,
                "expiration": expiration_seconds,
                "order_id": order_id,
                "billing_data": {**_PLACEHOLDER_BILLING, **(billing_data or {})},
                "currency": currency,
                "integration_id": self._integration_id,
            },
            auth_token=auth_token,
        )
        return str(self._require(data, "token", "payment_key"))

    def refund(self, auth_token: str, *, transaction_id: str, amount_cents: int) -> Dict[str, Any]:
        """Refund (part of) a captured transaction."""
        return self.request(
            "POST",
            "/acceptance/void_refund/refund",
            json_body={
                "auth_token": auth_token,
                "transaction_id": transaction_id,
                "amount_cents": amount_cents,
            },
            auth_token=auth_token,
        )

    def checkout_url(self, payment_token: str) -> str:
        return f"{self._iframe_url}?payment_token={payment_token}"

    @staticmethod
    def _require(data: Dict[str, Any], key: str, operation: str) -> Any:
        value = data.get(key)
        if value in (None, ""):
            raise PaymobError(
                f"Paymob {operation} response is missing '{key}'",
                operation=operation,
                error_body=data,
            )
        return value

    def request(
        self,
        method: str,
        path: str,
        *,
        json_body: Dict[str, Any] | None = None,
        auth_token: str | None = None,
    ) -> Dict[str, Any]:
        """Perform a raw Paymob API request and return the parsed JSON payload."""

        url = f"{self._base_url}{path}"
        operation = path.strip("/").replace("/", "_")
        headers = {"Accept": "application/json"}
        if auth_token:
            headers["Authorization"] = f"Bearer {auth_token}"

        with httpx.Client(timeout=self._timeout, transport=self._transport) as client:
            try:
                response = client.request(method, url, json=json_body, headers=headers)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                status = exc.response.status_code
                error_payload: Any | None
                try:
                    error_payload = exc.response.json()
                except json.JSONDecodeError:
                    error_payload = exc.response.text

                logger.error(
                    "Paymob API error %s for %s %s: %s",
                    status,
                    method,
                    path,
                    exc.response.text[:500],
                )
                prometheus_metrics.record_gateway_request(operation, "http_error")
                raise PaymobError(
                    f"Paymob API responded with status {status}",
                    status_code=status,
                    operation=operation,
                    error_body=error_payload,
                ) from exc
            except httpx.RequestError as exc:
                logger.error("Paymob request failure for %s %s: %s", method, path, str(exc))
                prometheus_metrics.record_gateway_request(operation, "unreachable")
                raise PaymobError("Failed to reach Paymob API", operation=operation) from exc

        try:
            payload = cast(Dict[str, Any], response.json())
        except json.JSONDecodeError as exc:
            logger.error("Invalid JSON from Paymob for %s %s", method, path)
            prometheus_metrics.record_gateway_request(operation, "bad_response")
            raise PaymobError("Received malformed JSON from Paymob", operation=operation) from exc

        prometheus_metrics.record_gateway_request(operation, "ok")
        return payload


class FakePaymobClient(PaymobClient):
    """Simple in-memory stand-in for Paymob used in local and test environments."""

    def __init__(self, iframe_url: str = "https://accept.paymob.com/api/acceptance/iframes/0"):
        super().__init__(api_key="fake-paymob-key", integration_id=0, iframe_url=iframe_url)
        self._logger = logging.getLogger(self.__class__.__name__)
        self.orders: Dict[str, Dict[str, Any]] = {}
        self.refunds: list[Dict[str, Any]] = []

    def get_auth_token(self) -> str:
        return f"fake-auth-{uuid4().hex}"

    def create_order(
        self,
        auth_token: str,
        *,
        amount_cents: int,
        currency: str,
        merchant_order_id: str,
    ) -> str:
        order_id = str(len(self.orders) + 1)
        self.orders[order_id] = {
            "merchant_order_id": merchant_order_id,
            "amount_cents": amount_cents,
            "currency": currency,
        }
        self._logger.debug("Fake order created", extra={"order_id": order_id})
        return order_id

    def get_payment_key(
        self,
        auth_token: str,
        *,
        order_id: str,
        amount_cents: int,
        currency: str,
        billing_data: Dict[str, str] | None = None,
        expiration_seconds: int = 3600,
    ) -> str:
        return f"fake-payment-key-{order_id}"

    def refund(self, auth_token: str, *, transaction_id: str, amount_cents: int) -> Dict[str, Any]:
        record = {
            "id": f"fake-refund-{uuid4().hex}",
            "transaction_id": transaction_id,
            "amount_cents": amount_cents,
            "success": True,
        }
        self.refunds.append(record)
        return record
