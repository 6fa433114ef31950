from __future__ import annotations

"""Concrete metal rate sources and factory.

'goldapi' asks goldapi.io for a troy-ounce quote and converts it to grams.
'static' serves the configured fallback constants; useful offline and as a
known-good source in development.
"""
import math
import time
from datetime import date
from typing import Any, Callable, Dict, List, Optional

import requests

from jewellery_pricing.core.config import Settings
from jewellery_pricing.core.errors import RateUnavailable
from jewellery_pricing.core.logging import get_logger
from jewellery_pricing.models.constants import METAL_SYMBOLS
from jewellery_pricing.services.http_client import HttpError, get_json, make_session

from .base import MetalRateSource

logger = get_logger("rates")

_OUNCE_PRICE_FIELDS = ("price", "close_price", "open_price")


def _positive(value: Any) -> Optional[float]:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def per_gram_from_payload(payload: Dict[str, Any], troy_oz_grams: float) -> Optional[float]:
    """Normalize a goldapi.io quote payload to a per-gram price.

    Returns None for error payloads and payloads without a usable price.
    """
    if payload.get("error"):
        return None
    per_gram = _positive(payload.get("price_gram_24k"))
    if per_gram is not None:
        return per_gram
    for field in _OUNCE_PRICE_FIELDS:
        ounce = _positive(payload.get(field))
        if ounce is not None:
            return ounce / troy_oz_grams
    return None


class StaticRateSource(MetalRateSource):
    provider_name = "static"

    def __init__(self, fallback_rates: Dict[str, Dict[str, float]], default_currency: str = "INR"):
        self._rates = fallback_rates
        self._default_currency = default_currency

    def fetch_per_gram(self, metal: str, currency: str) -> float:  # type: ignore[override]
        table = self._rates.get(currency.upper()) or self._rates[self._default_currency]
        return float(table[metal])


class GoldApiRateSource(MetalRateSource):
    """Provider implementation for goldapi.io.

    Endpoint shapes, tried in order:
      GET {base}/{XAU|XAG}/{CUR}            latest quote
      GET {base}/{XAU|XAG}/{CUR}/{YYYYMMDD} today's dated quote

    The dated shape keeps working on plans and hours where 'latest' is
    refused. Responses carrying an `error` key count as failures.

    `timeout_seconds` is the budget for one metal across both shapes, not
    per URL: the dated attempt only gets what the latest attempt left over.
    """

    provider_name = "goldapi"

    def __init__(
        self,
        base_url: str,
        token: str = "",
        timeout_seconds: float = 5.0,
        troy_oz_grams: float = 31.1034768,
        session: Optional[requests.Session] = None,
        retries: int = 1,
        today: Callable[[], date] = date.today,
        timer: Callable[[], float] = time.monotonic,
    ):
        self.base_url = str(base_url).rstrip("/")
        self.token = token
        self.timeout_seconds = timeout_seconds
        self.troy_oz_grams = troy_oz_grams
        self.session = session or make_session(retries=retries)
        self._today = today
        self._timer = timer

    def candidate_urls(self, metal: str, currency: str) -> List[str]:
        symbol = METAL_SYMBOLS[metal]
        latest = f"{self.base_url}/{symbol}/{currency.upper()}"
        dated = f"{latest}/{self._today().strftime('%Y%m%d')}"
        return [latest, dated]

    def fetch_per_gram(self, metal: str, currency: str) -> float:  # type: ignore[override]
        if metal not in METAL_SYMBOLS:
            raise RateUnavailable(metal, currency, "unsupported metal")
        headers = {"Accept": "application/json"}
        if self.token:
            headers["x-access-token"] = self.token

        last_reason = "no endpoint tried"
        deadline = self._timer() + self.timeout_seconds
        for url in self.candidate_urls(metal, currency):
            remaining = deadline - self._timer()
            if remaining <= 0:
                last_reason = f"{last_reason}; no time left for {url}"
                logger.warning("rate fetch budget spent metal=%s skipping url=%s", metal, url)
                break
            try:
                payload = get_json(self.session, url, headers=headers, timeout=remaining)
            except HttpError as e:
                last_reason = str(e)
                logger.warning("rate fetch failed metal=%s url=%s: %s", metal, url, e)
                continue
            per_gram = per_gram_from_payload(payload, self.troy_oz_grams)
            if per_gram is None:
                last_reason = f"unusable payload from {url}: {payload.get('error') or 'no price'}"
                logger.warning("rate payload rejected metal=%s url=%s", metal, url)
                continue
            logger.debug("rate fetched metal=%s currency=%s per_gram=%s", metal, currency, per_gram)
            return per_gram
        raise RateUnavailable(metal, currency, last_reason)


_SOURCE_REGISTRY: Dict[str, Callable[[Settings], MetalRateSource]] = {
    "static": lambda s: StaticRateSource(s.fallback_rates, s.default_currency),
    "goldapi": lambda s: GoldApiRateSource(
        base_url=str(s.goldapi_base_url),
        token=s.goldapi_token,
        timeout_seconds=s.http_timeout_seconds,
        troy_oz_grams=s.troy_oz_grams,
        retries=s.http_retries,
    ),
}


def make_rate_source(kind: str, settings: Settings) -> MetalRateSource:
    factory = _SOURCE_REGISTRY.get(kind)
    if not factory:
        raise ValueError(f"Unknown rate source kind '{kind}'")
    return factory(settings)
