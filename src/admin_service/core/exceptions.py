"""Common exceptions for domain and repository layers."""
from __future__ import annotations


class AdminServiceError(Exception):
    """Base error for the service layer."""


class ValidationError(AdminServiceError):
    """Raised when input is malformed (bad cron, bad URL, missing field)."""


class RepositoryError(AdminServiceError):
    """Raised when repository operations fail."""


class NotFoundError(RepositoryError):
    """Raised when requested entity is missing."""


class AlreadyRunningError(AdminServiceError):
    """Raised when a task is asked to run while a run is in progress."""


class ExecutionError(AdminServiceError):
    """Raised by task handlers when a task body cannot complete."""


class DeliveryError(AdminServiceError):
    """Raised when a webhook request gets no HTTP response (network error, timeout)."""


class AuthError(AdminServiceError):
    """Raised when the admin session is missing, expired or invalid."""


class PermissionDeniedError(AdminServiceError):
    """Raised when an authenticated user lacks an admin role."""
