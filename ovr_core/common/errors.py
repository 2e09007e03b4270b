# ovr_core/common/errors.py
from __future__ import annotations

from typing import Any

from rest_framework import status
from rest_framework.exceptions import APIException


class OVRError(APIException):
    """
    Base class for workflow errors.

    Subclasses carry a stable machine-readable `default_code` plus an HTTP status,
    and flow through the global DRF exception handler into the error envelope.
    `details` is optional structured context (e.g. the actual incident status).
    """
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Request failed."
    default_code = "error"

    def __init__(self, message: str | None = None, *, details: Any = None):
        super().__init__(detail=message or self.default_detail, code=self.default_code)
        self.message = str(self.detail)
        self.details = details


class ValidationError(OVRError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid input."
    default_code = "validation_error"


class AuthenticationError(OVRError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Authentication credentials were not provided."
    default_code = "not_authenticated"


class AuthorizationError(OVRError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "You do not have permission to perform this action."
    default_code = "permission_denied"


class NotFoundError(OVRError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"


class ConflictError(OVRError):
    """
    409 Conflict: a status precondition does not hold (wrong source state,
    open corrective actions, already submitted...). Callers should refetch.
    """
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict."
    default_code = "conflict"
