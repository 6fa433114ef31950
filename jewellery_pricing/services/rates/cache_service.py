from __future__ import annotations

import math
import time
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FetchTimeout
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Callable, Dict, Optional, Union

from jewellery_pricing.core.config import Settings, get_settings
from jewellery_pricing.core.errors import RateUnavailable
from jewellery_pricing.core.logging import get_logger
from jewellery_pricing.models.rates import RatePair, RateQuote

from .base import MetalRateSource
from .providers import make_rate_source

"""Process-wide metal rate cache.

Purpose:
    Answer get_rates(currency) with a gold+silver RatePair without ever raising,
    hitting the rate source at most once per TTL window per currency.

Resolution order per metal on a miss:
    1. live quote from the source,
    2. the last cached quote for that currency, even if stale, when positive,
    3. the configured fallback constant for the currency.

Both metals are fetched side by side on worker threads and the miss waits at
most `rates_fetch_timeout_seconds` for them. A fetch still running at the
deadline is abandoned and that metal resolves as a failure; its thread is
left to finish on its own.

The merged pair is stored with the current time, so a degraded answer is
also served for a full TTL before the source is retried.

No lock guards the entries dict. Two concurrent misses may both fetch and
the last writer wins; both are quoting the same market a moment apart.
"""

Clock = Callable[[], datetime]

FETCH_ORDER = ("gold", "silver")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class _CacheEntry:
    pair: RatePair
    stored_at: datetime


class RateCache:
    """Cached metal rates keyed by currency with TTL-bound entries.

    Source and clock are injected so tests can script provider failures and
    move time forward without sleeping. The clock drives TTL only; the fetch
    deadline is always real elapsed time.
    """

    def __init__(
        self,
        source: MetalRateSource,
        settings: Settings | None = None,
        ttl_seconds: int | None = None,
        clock: Clock = utc_now,
        fetch_timeout_seconds: float | None = None,
    ):
        self._settings = settings or get_settings()
        self._source = source
        ttl = self._settings.rates_cache_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._ttl = timedelta(seconds=ttl)
        self._clock = clock
        self._fetch_timeout = (
            self._settings.rates_fetch_timeout_seconds
            if fetch_timeout_seconds is None
            else fetch_timeout_seconds
        )
        self._executor = ThreadPoolExecutor(
            max_workers=2 * len(FETCH_ORDER), thread_name_prefix="rate-fetch"
        )
        self._entries: Dict[str, _CacheEntry] = {}
        self._logger = get_logger("rates")

    # Internal --------------------------------------------------
    def _normalize(self, currency: Optional[str]) -> str:
        return (currency or self._settings.default_currency).strip().upper()

    def _is_fresh(self, entry: _CacheEntry, now: datetime) -> bool:
        return now - entry.stored_at < self._ttl

    def _fetch_one(self, metal: str, currency: str) -> float:
        per_gram = float(self._source.fetch_per_gram(metal, currency))
        if not math.isfinite(per_gram) or per_gram <= 0:
            raise RateUnavailable(metal, currency, f"unusable quote {per_gram}")
        return per_gram

    def _fetch_live(self, currency: str) -> Dict[str, Union[float, str]]:
        """Live per-gram quote per metal, or the failure reason as a string."""
        futures = {
            metal: self._executor.submit(self._fetch_one, metal, currency)
            for metal in FETCH_ORDER
        }
        deadline = time.monotonic() + self._fetch_timeout
        results: Dict[str, Union[float, str]] = {}
        for metal, future in futures.items():
            try:
                results[metal] = future.result(timeout=max(0.0, deadline - time.monotonic()))
            except FetchTimeout:
                future.cancel()
                results[metal] = f"no answer within {self._fetch_timeout}s"
            except RateUnavailable as e:
                results[metal] = e.reason
            except Exception as e:  # untrusted provider; anything it throws is a miss
                results[metal] = f"{type(e).__name__}: {e}"
        return results

    def _resolve_metal(
        self,
        metal: str,
        currency: str,
        live: Union[float, str],
        previous: Optional[RatePair],
        now: datetime,
    ) -> RateQuote:
        if not isinstance(live, str):
            return RateQuote(
                metal=metal, currency=currency, per_gram=live, fetched_at=now, source="live"
            )
        reason = live

        if previous is not None:
            cached = getattr(previous, metal)
            if cached.per_gram > 0:
                self._logger.warning(
                    "serving cached %s rate for %s after fetch failure: %s",
                    metal,
                    currency,
                    reason,
                    extra={"metal": metal, "currency": currency, "rate_source": "cache"},
                )
                return RateQuote(
                    metal=metal,
                    currency=currency,
                    per_gram=cached.per_gram,
                    fetched_at=cached.fetched_at,
                    source="fallback" if cached.source == "fallback" else "cache",
                )

        fallback = self._settings.fallback_for(currency)[metal]
        self._logger.warning(
            "serving fallback %s rate %s for %s: %s",
            metal,
            fallback,
            currency,
            reason,
            extra={"metal": metal, "currency": currency, "rate_source": "fallback"},
        )
        return RateQuote(
            metal=metal, currency=currency, per_gram=fallback, fetched_at=now, source="fallback"
        )

    # Public API -----------------------------------------------
    @property
    def ttl(self) -> timedelta:
        return self._ttl

    @property
    def fetch_timeout(self) -> float:
        return self._fetch_timeout

    @property
    def provider_name(self) -> str:
        return self._source.provider_name

    def get_rates(self, currency: str | None = None) -> RatePair:
        currency = self._normalize(currency)
        now = self._clock()
        entry = self._entries.get(currency)
        if entry and self._is_fresh(entry, now):
            return entry.pair

        previous = entry.pair if entry else None
        # Metals resolve independently so one failing quote cannot sink the other
        live = self._fetch_live(currency)
        gold = self._resolve_metal("gold", currency, live["gold"], previous, now)
        silver = self._resolve_metal("silver", currency, live["silver"], previous, now)
        pair = RatePair(currency=currency, gold=gold, silver=silver, fetched_at=now)
        self._entries[currency] = _CacheEntry(pair=pair, stored_at=now)
        self._logger.info(
            "rates refreshed currency=%s gold=%s(%s) silver=%s(%s)",
            currency,
            gold.per_gram,
            gold.source,
            silver.per_gram,
            silver.source,
            extra={"currency": currency, "rate_source": f"{gold.source}/{silver.source}"},
        )
        return pair

    def peek(self, currency: str | None = None) -> Optional[RatePair]:
        """Return the cached pair if still fresh, without touching the source."""
        entry = self._entries.get(self._normalize(currency))
        if entry and self._is_fresh(entry, self._clock()):
            return entry.pair
        return None

    def invalidate(self, currency: str | None = None) -> None:
        """Expire one currency (or everything) so the next read re-fetches.

        Stale pairs are kept as the per-metal fallback; only freshness is reset.
        """
        targets = [self._normalize(currency)] if currency else list(self._entries)
        for key in targets:
            entry = self._entries.get(key)
            if entry:
                entry.stored_at = entry.stored_at - self._ttl


# Singleton dependency helper used by FastAPI DI
@lru_cache
def get_rate_cache() -> RateCache:
    settings = get_settings()
    return RateCache(make_rate_source(settings.rate_source, settings), settings)
