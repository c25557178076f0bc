"""Global exception handlers — map domain errors to HTTP responses."""

from __future__ import annotations

from fastapi import FastAPI, Request
from fastapi.responses import ORJSONResponse
import structlog

from fieldsales_ai.domain.exceptions import (
    CredentialMissingError,
    DomainError,
    NoProviderAvailableError,
    UnknownProviderError,
    ValidationError,
    VendorAuthError,
    VendorError,
    VendorRateLimitedError,
)

logger = structlog.get_logger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all domain→HTTP exception mappings."""

    @app.exception_handler(ValidationError)
    async def handle_validation(request: Request, exc: ValidationError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=422,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(UnknownProviderError)
    async def handle_unknown_provider(request: Request, exc: UnknownProviderError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=404,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(CredentialMissingError)
    async def handle_credential_missing(
        request: Request, exc: CredentialMissingError
    ) -> ORJSONResponse:
        logger.warning("credential_missing_http", provider=exc.provider)
        return ORJSONResponse(
            status_code=503,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(NoProviderAvailableError)
    async def handle_no_provider(request: Request, exc: NoProviderAvailableError) -> ORJSONResponse:
        logger.error("no_provider_http", message=exc.message)
        return ORJSONResponse(
            status_code=503,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(VendorRateLimitedError)
    async def handle_rate_limited(request: Request, exc: VendorRateLimitedError) -> ORJSONResponse:
        headers = {"Retry-After": str(int(exc.retry_after))} if exc.retry_after else None
        return ORJSONResponse(
            status_code=429,
            content={"code": exc.code, "message": exc.message},
            headers=headers,
        )

    @app.exception_handler(VendorAuthError)
    async def handle_vendor_auth(request: Request, exc: VendorAuthError) -> ORJSONResponse:
        logger.error("vendor_auth_error_http", provider=exc.provider, message=exc.message)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(VendorError)
    async def handle_vendor(request: Request, exc: VendorError) -> ORJSONResponse:
        logger.error("vendor_error_http", provider=exc.provider, kind=exc.kind.value, message=exc.message)
        return ORJSONResponse(
            status_code=502,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(DomainError)
    async def handle_domain(request: Request, exc: DomainError) -> ORJSONResponse:
        return ORJSONResponse(
            status_code=400,
            content={"code": exc.code, "message": exc.message},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> ORJSONResponse:
        logger.exception("unhandled_exception", error=str(exc))
        return ORJSONResponse(
            status_code=500,
            content={
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
            },
        )
