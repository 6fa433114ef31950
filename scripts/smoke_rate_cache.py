from jewellery_pricing.core.config import Settings
from jewellery_pricing.services.rates.cache_service import RateCache
from jewellery_pricing.services.rates.providers import make_rate_source
import tempfile
import json


def run():
    """Hit the configured provider twice and print what the cache served.

    With no GOLDAPI_TOKEN the live calls are refused and the fallback
    constants come back labelled 'fallback'.
    """
    with tempfile.TemporaryDirectory() as d:
        settings = Settings(data_dir=d, rate_source="goldapi")
        settings.init_post_load()
        cache = RateCache(make_rate_source(settings.rate_source, settings), settings)

        results = {}
        for currency in ("INR", "GBP"):
            first = cache.get_rates(currency)
            second = cache.get_rates(currency)
            results[currency] = {
                "gold_per_gram": first.gold_per_gram,
                "silver_per_gram": first.silver_per_gram,
                "sources": [first.gold.source, first.silver.source],
                "served_from_cache": second is first,
            }
        print(json.dumps(results, indent=2))


if __name__ == "__main__":
    run()
