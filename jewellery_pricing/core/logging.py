import json
import logging
import sys
import time
import uuid
from contextvars import ContextVar
from typing import Any, Dict

request_id_ctx: ContextVar[str | None] = ContextVar("request_id", default=None)

LOGGER_ROOT = "jewellery_pricing"

# Keys a call site may pass through `extra=` to land as top-level JSON fields
CONTEXT_FIELDS = (
    "currency",
    "metal",
    "rate_source",
    "product_id",
    "order_id",
    "cart_key",
    "method",
    "path",
    "status_code",
    "duration_ms",
)


def get_logger(area: str) -> logging.Logger:
    return logging.getLogger(f"{LOGGER_ROOT}.{area}")


class RequestIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:  # noqa: D401
        record.request_id = request_id_ctx.get() or "-"
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per line; pricing context from `extra=` is flattened in."""

    def format(self, record: logging.LogRecord) -> str:  # noqa: D401
        line: Dict[str, Any] = {
            "time": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "request_id": getattr(record, "request_id", "-"),
            "message": record.getMessage(),
        }
        for key in CONTEXT_FIELDS:
            value = getattr(record, key, None)
            if value is not None:
                line[key] = value
        if record.exc_info:
            line["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(line, ensure_ascii=False, default=str)


def init_logging(debug: bool = False) -> None:
    """Route the app's loggers to one JSON stdout handler.

    Safe to call once per app instance; the previous handler installed here is
    replaced rather than stacked.
    """
    level = logging.DEBUG if debug else logging.INFO
    app_logger = logging.getLogger(LOGGER_ROOT)
    for handler in list(app_logger.handlers):
        if isinstance(handler.formatter, JsonFormatter):
            app_logger.removeHandler(handler)
    app_logger.setLevel(level)

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.addFilter(RequestIdFilter())
    handler.setFormatter(JsonFormatter())
    app_logger.addHandler(handler)

    # urllib3 retry chatter drowns out fallback warnings at DEBUG
    logging.getLogger("urllib3").setLevel(logging.WARNING)


async def request_context_middleware(request, call_next):  # type: ignore
    """Tag every log line of a request with its id and log one access line.

    A caller-supplied `x-request-id` is reused so a checkout can be traced
    across services; the id is echoed on the response either way.
    """
    rid = request.headers.get("x-request-id") or uuid.uuid4().hex
    token = request_id_ctx.set(rid)
    logger = get_logger("request")
    started = time.perf_counter()
    status_code = 500
    try:
        response = await call_next(request)
        status_code = response.status_code
        response.headers["x-request-id"] = rid
        return response
    finally:
        logger.info(
            "%s %s -> %s",
            request.method,
            request.url.path,
            status_code,
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": status_code,
                "duration_ms": round((time.perf_counter() - started) * 1000, 1),
            },
        )
        request_id_ctx.reset(token)
