"""
Domain errors and their HTTP rendering.

Services raise these; the handlers registered in ``register_exception_handlers``
turn them into ``ErrorResponse`` bodies with the matching status code.
"""

import logging
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)

class FamilyTaxiError(Exception):
    """Base class for errors surfaced to API clients."""

    code = "error"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details

class NotAuthenticatedError(FamilyTaxiError):
    code = "not_authenticated"
    status_code = status.HTTP_401_UNAUTHORIZED

class NotAuthorizedError(FamilyTaxiError):
    code = "not_authorized"
    status_code = status.HTTP_403_FORBIDDEN

class NotFoundError(FamilyTaxiError):
    code = "not_found"
    status_code = status.HTTP_404_NOT_FOUND

class PreconditionFailedError(FamilyTaxiError):
    """The requested transition does not apply to the trip's current state."""
    code = "precondition_failed"
    status_code = status.HTTP_400_BAD_REQUEST

class ValidationFailedError(FamilyTaxiError):
    code = "validation_failed"
    status_code = status.HTTP_400_BAD_REQUEST

class ConflictError(FamilyTaxiError):
    code = "conflict"
    status_code = status.HTTP_400_BAD_REQUEST

def _error_body(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    return {"error": code, "message": message, "details": details}

async def family_taxi_error_handler(request: Request, exc: FamilyTaxiError) -> JSONResponse:
    headers = None
    if isinstance(exc, NotAuthenticatedError):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(
        status_code=exc.status_code,
        content=_error_body(exc.code, exc.message, exc.details),
        headers=headers
    )

async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.info(f"Rejected malformed request to {request.url.path}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content=_error_body(
            ValidationFailedError.code,
            "Invalid request data",
            {"errors": jsonable_encoder(exc.errors())}
        )
    )

def register_exception_handlers(app: FastAPI) -> None:
    """Attach the domain error handlers to an application."""
    app.add_exception_handler(FamilyTaxiError, family_taxi_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
