"""
Error Taxonomy Module

Every failure a service can raise maps to exactly one HTTP status. The API
layer renders all of them as ``{"error": message}``.
"""

from typing import Optional


class DaybookError(Exception):
    """Base class for all application errors"""
    status_code = 500

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class ValidationError(DaybookError):
    """Malformed, missing or out-of-range input"""
    status_code = 400


class UnauthorizedError(DaybookError):
    """Missing, malformed, expired or otherwise invalid credentials"""
    status_code = 401


class ForbiddenError(DaybookError):
    """Authenticated caller lacks the role or tenant for the operation"""
    status_code = 403


class NotFoundError(DaybookError):
    """No matching record within the caller's visibility scope"""
    status_code = 404


class ConflictError(DaybookError):
    """Request collides with existing state (duplicate user, second admin)"""
    status_code = 409


class InsufficientBalanceError(DaybookError):
    """A debit would take a bank account below zero"""
    status_code = 422


class UploadError(DaybookError):
    """File store rejected or failed to persist an upload"""
    status_code = 500


class StorageError(DaybookError):
    """Entity store failure"""
    status_code = 500
