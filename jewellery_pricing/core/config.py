from functools import lru_cache
from pathlib import Path
from typing import Dict, Optional

from pydantic import AnyHttpUrl
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment with defaults.

    Environment variable mapping follows pydantic's rules (e.g., APP_NAME, DEBUG,
    DATA_DIR, RATES_CACHE_TTL_SECONDS, GOLDAPI_TOKEN, RATE_SOURCE).
    """

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Basic app metadata
    app_name: str = "Jewellery Pricing Engine"
    debug: bool = False
    version: str = "0.1.0"

    # Data & persistence
    data_dir: Path = Path("data")
    db_filename: str = "pricing.sqlite3"
    db_path: Optional[Path] = None  # derived if not provided

    # Metal rates / caching
    rates_cache_ttl_seconds: int = 60
    goldapi_base_url: AnyHttpUrl = "https://www.goldapi.io/api"
    goldapi_token: str = ""
    http_timeout_seconds: float = 5.0
    http_retries: int = 1
    # Wall-clock bound on one get_rates miss, both metals included
    rates_fetch_timeout_seconds: float = 5.0

    # Allowed: 'goldapi' (live HTTP quotes), 'static' (fallback constants only)
    rate_source: str = "goldapi"

    default_currency: str = "INR"
    # Last-resort per-gram rates when neither the provider nor the cache can answer
    fallback_rates: Dict[str, Dict[str, float]] = {
        "INR": {"gold": 6500.0, "silver": 75.0},
        "GBP": {"gold": 60.0, "silver": 0.7},
    }
    troy_oz_grams: float = 31.1034768

    # Non-diamond pricing defaults (diamond items use the diamond config)
    default_making_charge_percent: float = 10.0
    default_gst_percent: float = 3.0
    order_tax_percent: float = 3.0

    enable_admin_routes: bool = True

    def init_post_load(self) -> None:
        """Finalize derived fields and ensure directories exist."""
        if self.db_path is None:
            self.db_path = self.data_dir / self.db_filename
        self.data_dir.mkdir(parents=True, exist_ok=True)
        allowed = {"goldapi", "static"}
        if self.rate_source not in allowed:
            raise ValueError(
                f"Unsupported rate_source '{self.rate_source}'. Allowed: {allowed}"
            )
        self.default_currency = self.default_currency.upper()
        if self.default_currency not in self.fallback_rates:
            raise ValueError(
                f"No fallback rates configured for default currency '{self.default_currency}'"
            )

    def fallback_for(self, currency: str) -> Dict[str, float]:
        """Static per-gram rates for a currency (default currency if unknown)."""
        return self.fallback_rates.get(
            currency.upper(), self.fallback_rates[self.default_currency]
        )


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    settings.init_post_load()
    return settings
