# Overview: Exchange-rate lookup with an injectable TTL cache, currency conversion and symbols.

"""
Currency Service

Rates are USD-based (1 USD = rates[code]). They come from exchangerate-api
when EXCHANGE_RATE_API_KEY is configured, otherwise (or when the API fails)
from a static table of approximate rates.

CACHING:
One RateCache per application, holding {value, expires_at} against a
pluggable clock. Entries live for EXCHANGE_RATE_TTL_SECONDS (1 hour). Two
requests that both find the cache expired may both refresh it; the last
write wins, which is harmless for read-mostly rate data.
"""

from __future__ import annotations

import logging
import time
from decimal import Decimal
from typing import Callable

import httpx
from flask import current_app

from ..errors import ValidationError

logger = logging.getLogger(__name__)


EXCHANGE_RATE_API_URL = "https://v6.exchangerate-api.com/v6/{api_key}/latest/USD"
DEFAULT_TTL_SECONDS = 60 * 60

# Approximate, updated periodically
FALLBACK_RATES: dict[str, float] = {
    "USD": 1.0,
    "EUR": 0.92,
    "GBP": 0.79,
    "JPY": 149.5,
    "CNY": 7.24,
    "INR": 83.12,
    "KRW": 1319.5,
    "BRL": 4.97,
    "CAD": 1.36,
    "AUD": 1.53,
    "CHF": 0.88,
    "SEK": 10.63,
    "NOK": 10.87,
    "DKK": 6.86,
    "PLN": 4.02,
    "RUB": 92.5,
    "TRY": 32.15,
    "ZAR": 18.45,
    "MXN": 17.12,
    "SGD": 1.34,
    "HKD": 7.83,
    "NZD": 1.67,
    "GEL": 2.68,
}

CURRENCY_SYMBOLS: dict[str, str] = {
    "USD": "$",
    "EUR": "€",
    "GBP": "£",
    "JPY": "¥",
    "CNY": "¥",
    "INR": "₹",
    "KRW": "₩",
    "BRL": "R$",
    "CAD": "CA$",
    "AUD": "A$",
    "CHF": "CHF",
    "SEK": "kr",
    "NOK": "kr",
    "DKK": "kr",
    "PLN": "zł",
    "RUB": "₽",
    "TRY": "₺",
    "ZAR": "R",
    "MXN": "MX$",
    "SGD": "S$",
    "HKD": "HK$",
    "NZD": "NZ$",
    "GEL": "₾",
}


def get_currency_symbol(currency: str, provided_symbol: str | None = None) -> str:
    """Symbol for a currency code; an explicit non-blank symbol wins, unknown codes map to themselves."""
    if provided_symbol and provided_symbol.strip():
        return provided_symbol
    return CURRENCY_SYMBOLS.get(currency, currency)


class RateCache:
    """Single-value cache with an expiry measured on `clock` (seconds)."""

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.ttl_seconds = ttl_seconds
        self.clock = clock
        self._value: dict[str, float] | None = None
        self._expires_at = 0.0

    def get(self) -> dict[str, float] | None:
        if self._value is not None and self.clock() < self._expires_at:
            return self._value
        return None

    def set(self, value: dict[str, float]) -> None:
        self._value = value
        self._expires_at = self.clock() + self.ttl_seconds

    def clear(self) -> None:
        self._value = None
        self._expires_at = 0.0


class ExchangeRateService:

    def __init__(
        self,
        api_key: str | None = None,
        cache: RateCache | None = None,
        timeout: float = 15.0,
    ):
        self.api_key = api_key
        self.cache = cache or RateCache()
        self.timeout = timeout

    def fetch_live_rates(self) -> dict[str, float] | None:
        """Fetch USD-based rates from exchangerate-api. None on any failure."""
        url = EXCHANGE_RATE_API_URL.format(api_key=self.api_key)
        try:
            response = httpx.get(url, timeout=self.timeout)
        except httpx.HTTPError as exc:
            logger.error("Failed to fetch exchange rates from API: %s", exc)
            return None

        if response.is_error:
            logger.error("Exchange rate API returned %s", response.status_code)
            return None

        rates = response.json().get("conversion_rates")
        if not isinstance(rates, dict) or not rates:
            logger.error("Exchange rate API response missing conversion_rates")
            return None
        return rates

    def get_rates(self) -> dict[str, float]:
        cached = self.cache.get()
        if cached is not None:
            return cached

        rates = self.fetch_live_rates() if self.api_key else None
        if rates is None:
            rates = dict(FALLBACK_RATES)
        else:
            logger.info("Refreshed exchange rates (%d currencies)", len(rates))

        self.cache.set(rates)
        return rates

    def convert(self, amount: float, from_currency: str, to_currency: str) -> dict:
        """
        Convert via USD.

        Raises:
            ValidationError: Negative amount or unsupported currency
        """
        from_currency = from_currency.upper()
        to_currency = to_currency.upper()

        if amount < 0:
            raise ValidationError("Invalid amount")

        if from_currency == to_currency:
            return {
                "from": from_currency,
                "to": to_currency,
                "amount": amount,
                "converted": amount,
                "rate": 1,
            }

        rates = self.get_rates()
        for code in (from_currency, to_currency):
            if not rates.get(code):
                raise ValidationError(f"Unsupported currency: {code}")

        amount_in_usd = amount / rates[from_currency]
        converted = amount_in_usd * rates[to_currency]
        rate = rates[to_currency] / rates[from_currency]

        return {
            "from": from_currency,
            "to": to_currency,
            "amount": amount,
            "converted": round(converted, 2),
            "rate": round(rate, 6),
        }

    def to_usd(self, amount: Decimal | float | None, currency: str) -> Decimal | None:
        """USD value for storage; None if the amount is missing or the currency unknown."""
        if amount is None:
            return None
        try:
            result = self.convert(float(amount), currency, "USD")
        except ValidationError:
            logger.warning("No exchange rate for %s; leaving price_usd empty", currency)
            return None
        return Decimal(str(result["converted"])).quantize(Decimal("0.01"))


def get_exchange_rate_service() -> ExchangeRateService:
    """The application's shared service instance, created on first use."""
    service = current_app.extensions.get("retoro.exchange_rates")
    if service is None:
        service = ExchangeRateService(
            api_key=current_app.config.get("EXCHANGE_RATE_API_KEY"),
            cache=RateCache(ttl_seconds=current_app.config.get("EXCHANGE_RATE_TTL_SECONDS", DEFAULT_TTL_SECONDS)),
            timeout=current_app.config.get("HTTP_TIMEOUT_SECONDS", 15.0),
        )
        current_app.extensions["retoro.exchange_rates"] = service
    return service
