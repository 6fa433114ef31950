from __future__ import annotations

"""Metal rate source abstraction.

A source answers one question: the per-gram price of one metal in one
currency, right now. Failures are raised as RateUnavailable; deciding what
to serve instead is the cache's job.
"""
from abc import ABC, abstractmethod


class MetalRateSource(ABC):
    provider_name: str

    @abstractmethod
    def fetch_per_gram(self, metal: str, currency: str) -> float:
        """Return the price of 1 gram of `metal` ('gold'|'silver') in `currency`."""
        raise NotImplementedError
