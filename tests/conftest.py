from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from jewellery_pricing.core.config import Settings, get_settings
from jewellery_pricing.db.dal import Database
from jewellery_pricing.db.migrate import apply_migrations
from jewellery_pricing.main import create_app
from jewellery_pricing.models.rates import RatePair, RateQuote
from jewellery_pricing.services.rates.base import MetalRateSource
from jewellery_pricing.services.rates.cache_service import RateCache, get_rate_cache

T0 = datetime(2024, 5, 1, 9, 30, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class ScriptedRateSource(MetalRateSource):
    """Answers from a per-metal script; an Exception value is raised instead."""

    provider_name = "scripted"

    def __init__(self, gold=6500.0, silver=75.0):
        self.script = {"gold": gold, "silver": silver}
        self.calls = []

    def fetch_per_gram(self, metal, currency):
        self.calls.append((metal, currency))
        value = self.script[metal]
        if isinstance(value, Exception):
            raise value
        return value


@pytest.fixture(autouse=True)
def clear_pricing_env(monkeypatch):
    for key in [
        "RATE_SOURCE",
        "GOLDAPI_TOKEN",
        "DATA_DIR",
        "DB_FILENAME",
        "DB_PATH",
        "DEFAULT_CURRENCY",
        "ENABLE_ADMIN_ROUTES",
        "RATES_CACHE_TTL_SECONDS",
    ]:
        monkeypatch.delenv(key, raising=False)
    get_settings.cache_clear()
    get_rate_cache.cache_clear()
    yield
    get_settings.cache_clear()
    get_rate_cache.cache_clear()


@pytest.fixture
def settings(tmp_path):
    s = Settings(data_dir=tmp_path, rate_source="static", _env_file=None)
    s.init_post_load()
    return s


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return ScriptedRateSource()


@pytest.fixture
def rate_cache(source, settings, clock):
    return RateCache(source, settings, clock=clock)


@pytest.fixture
def db(settings):
    apply_migrations(settings.db_path)
    return Database(settings.db_path)


@pytest.fixture
def client(settings, rate_cache):
    app = create_app(settings_override=settings, rate_cache=rate_cache)
    return TestClient(app)


@pytest.fixture
def make_pair():
    def _make(gold=6500.0, silver=75.0, currency="INR", source="live"):
        return RatePair(
            currency=currency,
            gold=RateQuote(metal="gold", currency=currency, per_gram=gold, fetched_at=T0, source=source),
            silver=RateQuote(
                metal="silver", currency=currency, per_gram=silver, fetched_at=T0, source=source
            ),
            fetched_at=T0,
        )

    return _make


@pytest.fixture
def add_product(db):
    def _add(**fields):
        product = {"name": "Item", "category": "rings", "material": "gold", "weight": 10, "karat": 24}
        product.update(fields)
        return db.create_product(product)

    return _add
