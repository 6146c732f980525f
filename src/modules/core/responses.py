"""Uniform response envelope for every public operation.

``ActionResponse`` is the ``{success, data?, error?, details?}`` contract
returned by the operation boundary.  ``status_code`` travels with the
envelope (excluded from the payload) so the HTTP layer does not need its
own copy of the error-to-status mapping.

``envelope_exception_handler`` plugs into DRF so framework errors
(authentication, malformed JSON, throttling) use the same shape.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from rest_framework import status
from rest_framework.response import Response
from rest_framework.views import exception_handler

from modules.core.exceptions import (
    Conflict,
    DeadlineExceeded,
    DomainError,
    InsufficientStock,
    InvalidTransition,
    NotFound,
    StorageError,
    ValidationFailed,
)

logger = structlog.get_logger(__name__)

_STATUS_BY_ERROR: tuple[tuple[type[DomainError], int], ...] = (
    (ValidationFailed, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (InsufficientStock, status.HTTP_409_CONFLICT),
    (InvalidTransition, status.HTTP_409_CONFLICT),
    (Conflict, status.HTTP_409_CONFLICT),
    (DeadlineExceeded, status.HTTP_504_GATEWAY_TIMEOUT),
    (StorageError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


class ActionResponse(BaseModel):
    """Immutable result envelope."""

    model_config = ConfigDict(frozen=True)

    success: bool
    data: Any = None
    error: Optional[str] = None
    details: Any = None
    status_code: int = Field(default=status.HTTP_200_OK, exclude=True)

    def to_response(self) -> Response:
        """Render as a DRF ``Response`` (``None`` fields omitted)."""
        return Response(
            self.model_dump(mode="json", exclude_none=True),
            status=self.status_code,
        )


def success_response(data: Any = None, status_code: int = status.HTTP_200_OK) -> ActionResponse:
    return ActionResponse(success=True, data=data, status_code=status_code)


def error_response(
    error: str,
    details: Any = None,
    status_code: int = status.HTTP_400_BAD_REQUEST,
) -> ActionResponse:
    return ActionResponse(
        success=False, error=error, details=details, status_code=status_code
    )


def http_status_for(exc: DomainError) -> int:
    for error_class, code in _STATUS_BY_ERROR:
        if isinstance(exc, error_class):
            return code
    return status.HTTP_400_BAD_REQUEST


def validation_details(exc: PydanticValidationError) -> list[dict[str, Any]]:
    """Field-level errors from a Pydantic failure, JSON-safe."""
    return json.loads(exc.json(include_url=False, include_context=False))


def handle_action_error(
    exc: Exception, default_message: str = "An unexpected error occurred"
) -> ActionResponse:
    """Translate any exception raised by an operation into an envelope.

    ``StorageError`` and unknown exceptions are logged and reported with a
    generic message only.
    """
    if isinstance(exc, PydanticValidationError):
        return error_response(
            "Validation error",
            details=validation_details(exc),
            status_code=status.HTTP_400_BAD_REQUEST,
        )

    if isinstance(exc, StorageError):
        logger.error("action.storage_error", error=default_message)
        return error_response(
            default_message, status_code=http_status_for(exc)
        )

    if isinstance(exc, DomainError):
        logger.info(
            "action.rejected",
            error_type=type(exc).__name__,
            error=exc.message,
        )
        return error_response(
            exc.message, details=exc.details, status_code=http_status_for(exc)
        )

    logger.exception("action.unexpected_error", error=default_message)
    return error_response(
        default_message, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR
    )


def envelope_exception_handler(exc: Exception, context: dict) -> Optional[Response]:
    """DRF ``EXCEPTION_HANDLER`` producing the uniform envelope."""
    response = exception_handler(exc, context)
    if response is None:
        return None

    data = response.data
    if isinstance(data, dict) and set(data) == {"detail"}:
        error, details = str(data["detail"]), None
    else:
        error, details = "Validation error", data

    response.data = ActionResponse(
        success=False, error=error, details=details
    ).model_dump(mode="json", exclude_none=True)
    return response
