"""
Exception handlers - Map domain errors to HTTP responses.

Every failure leaves the API as ``{"success": false, "error": <message>}``
with a status chosen by the most specific matching exception class.
"""

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from station_auth.domain.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConflictError,
    DomainError,
    EmailAlreadyRegistered,
    InvariantViolationError,
    NotFoundError,
    ValidationError,
)

STATUS_BY_ERROR: dict[type[DomainError], int] = {
    ValidationError: status.HTTP_400_BAD_REQUEST,
    AuthenticationError: status.HTTP_401_UNAUTHORIZED,
    AuthorizationError: status.HTTP_403_FORBIDDEN,
    NotFoundError: status.HTTP_404_NOT_FOUND,
    ConflictError: status.HTTP_400_BAD_REQUEST,
    EmailAlreadyRegistered: status.HTTP_409_CONFLICT,
    InvariantViolationError: status.HTTP_400_BAD_REQUEST,
}


def status_for(exc: DomainError) -> int:
    """Status of the nearest class in the exception's MRO; 500 if unmapped."""
    for cls in type(exc).__mro__:
        if cls in STATUS_BY_ERROR:
            return STATUS_BY_ERROR[cls]
    return status.HTTP_500_INTERNAL_SERVER_ERROR


def error_body(message: str) -> dict:
    return {"success": False, "error": message}


async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
    status_code = status_for(exc)
    headers = {"WWW-Authenticate": "Bearer"} if status_code == status.HTTP_401_UNAUTHORIZED else None
    return JSONResponse(status_code=status_code, content=error_body(exc.message), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
        message = f"{location}: {first.get('msg')}" if location else str(first.get("msg"))
    else:
        message = "invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=error_body(message))


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain and request-validation handlers on an app."""
    app.add_exception_handler(DomainError, domain_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
