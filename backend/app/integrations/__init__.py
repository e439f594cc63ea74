"""External service integrations for the Medtik platform."""

from .exchange_rate_client import ExchangeRateClient, ExchangeRateError
from .paymob_client import FakePaymobClient, PaymobClient, PaymobError

__all__ = [
    "ExchangeRateClient",
    "ExchangeRateError",
    "FakePaymobClient",
    "PaymobClient",
    "PaymobError",
]
