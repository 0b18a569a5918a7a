"""Global exception handlers for FastAPI."""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from api.base import error_response, ErrorCodes
from auth.exceptions import AdoptionError, NotAuthenticatedError
from auth.messages import friendly_error, retry_suggestion
from clients.user_center_client import (
    MalformedResponseError,
    UserCenterConnectionError,
    UserCenterError,
    UserCenterTimeoutError,
)

logger = logging.getLogger(__name__)


def request_id_of(request: Request) -> str | None:
    """ID set by RequestIDMiddleware, also echoed in X-Request-ID."""
    return getattr(request.state, "request_id", None)


def friendly_json(
    request: Request, status_code: int, code: str, exc: BaseException | str
) -> JSONResponse:
    """Error envelope carrying the user-facing message for exc."""
    friendly = friendly_error(exc)
    return JSONResponse(
        status_code=status_code,
        content=error_response(
            code,
            friendly.title,
            description=friendly.description,
            retry=retry_suggestion(exc).should_retry,
            request_id=request_id_of(request),
        ).model_dump(mode="json"),
    )


def register_error_handlers(app: FastAPI) -> None:
    """Register global exception handlers on the app."""

    @app.exception_handler(NotAuthenticatedError)
    async def not_authenticated_handler(request: Request, exc: NotAuthenticatedError):
        return friendly_json(request, 401, ErrorCodes.NOT_AUTHENTICATED, exc)

    @app.exception_handler(AdoptionError)
    async def adoption_error_handler(request: Request, exc: AdoptionError):
        logger.error(f"Credential not adopted: {exc}")
        return friendly_json(request, 502, ErrorCodes.ADOPTION_FAILED, exc)

    @app.exception_handler(UserCenterError)
    async def user_center_error_handler(request: Request, exc: UserCenterError):
        if isinstance(exc, UserCenterTimeoutError):
            return friendly_json(request, 504, ErrorCodes.UPSTREAM_TIMEOUT, exc)
        if isinstance(exc, (UserCenterConnectionError, MalformedResponseError)):
            return friendly_json(request, 502, ErrorCodes.UPSTREAM_ERROR, exc)
        # Rejected by the user center (wrong password, bad code, ...)
        return friendly_json(request, 400, ErrorCodes.REJECTED, exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=422,
            content=error_response(
                ErrorCodes.VALIDATION_ERROR,
                str(exc.errors()),
                request_id=request_id_of(request),
            ).model_dump(mode="json"),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.exception("Unhandled exception")
        return JSONResponse(
            status_code=500,
            content=error_response(
                ErrorCodes.INTERNAL_ERROR,
                "An internal error occurred",
                request_id=request_id_of(request),
            ).model_dump(mode="json"),
        )
