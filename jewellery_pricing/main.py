from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from .core.config import get_settings, Settings
from .core.logging import get_logger, init_logging, request_context_middleware
from .db.migrate import apply_migrations
from .core import errors
from .routers import admin, cart, orders, prices, products
from .services.rates.cache_service import RateCache, get_rate_cache
from .services.rates.providers import make_rate_source


def create_app(
    settings_override: Settings | None = None, rate_cache: RateCache | None = None
) -> FastAPI:
    """Application factory.

    settings_override: pass an already constructed Settings instance for tests
    to isolate environment (e.g., temp DB). Falls back to cached get_settings().
    rate_cache: inject a prepared cache (scripted source, fake clock); when only
    settings are overridden a fresh cache is built from them.
    """
    settings = settings_override or get_settings()
    if settings.db_path is None:
        settings.init_post_load()
    # Initialize logging early
    init_logging(debug=settings.debug)

    # Ensure database schema (idempotent) so test-injected fresh DBs have tables
    try:
        apply_migrations(settings.db_path)  # type: ignore[arg-type]
    except Exception:
        # Failing to init DB is fatal; re-raise after logging
        get_logger("app").exception("failed to apply migrations on startup")
        raise

    app = FastAPI(
        title=settings.app_name, debug=settings.debug, version=settings.version
    )

    if settings_override is not None:
        app.dependency_overrides[get_settings] = lambda: settings
        if rate_cache is None:
            rate_cache = RateCache(make_rate_source(settings.rate_source, settings), settings)
    if rate_cache is not None:
        app.dependency_overrides[get_rate_cache] = lambda: rate_cache

    # Middleware (request id / structured logging)
    app.middleware("http")(request_context_middleware)

    # Error handlers
    app.add_exception_handler(StarletteHTTPException, errors.not_found_handler)
    app.add_exception_handler(RequestValidationError, errors.validation_error_handler)
    app.add_exception_handler(Exception, errors.server_error_handler)

    # Routers
    app.include_router(prices.router)
    app.include_router(products.router)
    app.include_router(cart.router)
    app.include_router(orders.router)
    app.include_router(admin.router)

    @app.get("/")
    async def root():
        return {"message": "Jewellery Pricing API", "version": settings.version}

    @app.get("/health")
    async def health():
        return {"status": "ok", "rate_source": settings.rate_source}

    return app
