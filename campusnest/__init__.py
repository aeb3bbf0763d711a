"""CampusNest premium-unlock client package."""

from .callback import CallbackReconciler, extract_reference, parse_verify_response
from .config import Settings, load_settings_from_env
from .context import SessionContext
from .db import Database
from .entitlements import EntitlementStore
from .errors import (
    InitiateFailedError,
    MissingRedirectTargetError,
    MissingReferenceError,
    NetworkError,
    NotAuthenticatedError,
    PropertyNotFoundError,
    UnlockError,
    VerificationFailedError,
)
from .gate import UnlockGate
from .models import (
    CallbackOutcome,
    EntitlementGrant,
    PaymentSession,
    PropertyRecord,
    ReconcilerState,
    SessionStatus,
)
from .normalize import LegacyShape, NestedShape, classify_document, normalize_property
from .payments import PaymentInitiator
from .session import PropertyService, ViewerSession

__all__ = [
    "CallbackOutcome",
    "CallbackReconciler",
    "Database",
    "EntitlementGrant",
    "EntitlementStore",
    "InitiateFailedError",
    "LegacyShape",
    "MissingRedirectTargetError",
    "MissingReferenceError",
    "NestedShape",
    "NetworkError",
    "NotAuthenticatedError",
    "PaymentInitiator",
    "PaymentSession",
    "PropertyNotFoundError",
    "PropertyRecord",
    "PropertyService",
    "ReconcilerState",
    "SessionContext",
    "SessionStatus",
    "Settings",
    "UnlockError",
    "UnlockGate",
    "VerificationFailedError",
    "ViewerSession",
    "classify_document",
    "extract_reference",
    "load_settings_from_env",
    "normalize_property",
    "parse_verify_response",
]
