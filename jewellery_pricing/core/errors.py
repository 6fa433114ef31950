from fastapi import Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from starlette import status
import logging

logger = logging.getLogger("jewellery_pricing.errors")


class PricingError(Exception):
    """Base for pricing-core failures. None of these reach an HTTP client."""


class RateUnavailable(PricingError):
    """Provider unreachable, timed out, or answered with an unusable payload."""

    def __init__(self, metal: str, currency: str, reason: str):
        super().__init__(f"{metal}/{currency} rate unavailable: {reason}")
        self.metal = metal
        self.currency = currency
        self.reason = reason


class ConfigMissing(PricingError):
    """No diamond pricing record exists yet."""


class IncompleteDiamondSpec(PricingError):
    """hasDiamond is set but carat/cut/color/clarity are not all present."""


class ComputationFailure(PricingError):
    """Price computation blew up; callers fall back to the stored price."""


def not_found_handler(request: Request, exc):  # type: ignore
    if getattr(exc, "status_code", 404) != 404:
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": "http_error", "detail": exc.detail},
        )
    detail = getattr(exc, "detail", None)
    if not detail or detail == "Not Found":
        detail = f"No route for {request.method} {request.url.path}"
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={
            "error": "not_found",
            "detail": detail,
        },
    )


def validation_error_handler(request: Request, exc: RequestValidationError):  # type: ignore
    return JSONResponse(
        status_code=422,
        content={
            "error": "validation_error",
            "detail": jsonable_encoder(exc.errors()),
        },
    )


def server_error_handler(request: Request, exc: Exception):  # type: ignore
    logger.exception("unhandled exception")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "internal_error",
            "detail": "An unexpected error occurred.",
        },
    )
