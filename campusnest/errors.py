"""Errors surfaced by the unlock workflow."""

from __future__ import annotations


class UnlockError(Exception):
    """Base class; ``message`` is safe to show to the viewer."""

    default_message = "Something went wrong. Please try again later."
    retryable = False

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class MissingReferenceError(UnlockError):
    default_message = "Missing payment reference in callback URL"


class VerificationFailedError(UnlockError):
    default_message = "Failed to verify payment"


class NetworkError(UnlockError):
    default_message = "Network error. Please check your connection and try again."
    retryable = True


class MissingRedirectTargetError(UnlockError):
    default_message = "Missing payment authorization URL"


class InitiateFailedError(UnlockError):
    default_message = "Failed to initiate payment"
    retryable = True


class PropertyNotFoundError(InitiateFailedError):
    default_message = "Property not found"
    retryable = False


class NotAuthenticatedError(UnlockError):
    default_message = "Please log in to unlock property details"


__all__ = [
    "InitiateFailedError",
    "MissingRedirectTargetError",
    "MissingReferenceError",
    "NetworkError",
    "NotAuthenticatedError",
    "PropertyNotFoundError",
    "UnlockError",
    "VerificationFailedError",
]
