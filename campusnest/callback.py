"""Reconciliation of the provider's return redirect.

Every call to :meth:`CallbackReconciler.reconcile` starts in
``AWAITING_REFERENCE`` and ends in ``VERIFIED`` or ``FAILED``. A reload of the
callback route is just another call: the reference is verified again (the
server treats repeat verification as a no-op) unless this session already holds
a verified result for it, and the grant store refuses duplicates either way.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional
from urllib.parse import parse_qs, urlsplit

from .api import ApiStatusError, MarketplaceClient
from .context import SessionContext
from .errors import MissingReferenceError, UnlockError, VerificationFailedError
from .models import (
    CallbackOutcome,
    EntitlementGrant,
    PaymentSession,
    ReconcilerState,
    SessionStatus,
    VerifyResult,
    utc_now,
)
from .normalize import resolve_identifier
from .notifications import (
    LISTINGS_ROUTE,
    UNLOCKED_PROPERTIES_ROUTE,
    Navigator,
    Notifier,
    property_route,
)

logger = logging.getLogger(__name__)

# Checked in order; the first parameter carrying a value wins.
REFERENCE_PARAMS = ("reference", "trxref")
VERIFIED_MESSAGE = "Payment verified successfully. Premium details unlocked!"


def extract_reference(return_url: str) -> str | None:
    """Pull the session reference out of a return URL or bare query string."""
    query = urlsplit(return_url or "").query
    if not query and "=" in (return_url or "") and "/" not in return_url:
        query = return_url.lstrip("?")
    params = parse_qs(query, keep_blank_values=True)
    for name in REFERENCE_PARAMS:
        for value in params.get(name, []):
            value = value.strip()
            if value:
                return value
    return None


def parse_verify_response(payload: Any) -> VerifyResult:
    """Interpret a verification response; anything but an explicit success fails."""
    if not isinstance(payload, Mapping):
        raise VerificationFailedError("Unexpected verification response")
    data = payload.get("data")
    if not isinstance(data, Mapping):
        data = payload
    message = str(payload.get("message") or "")

    if "unlocked" in data:
        flag = data.get("unlocked")
    elif "unlocked" in payload:
        flag = payload.get("unlocked")
    else:
        flag = payload.get("success")
    if flag is not True:
        raise VerificationFailedError(message or None)

    property_id = resolve_identifier(data.get("propertyId")) or resolve_identifier(
        data.get("property")
    )
    return VerifyResult(unlocked=True, property_id=property_id, message=message)


@dataclass
class CallbackReconciler:
    """Runs when control returns from the payment provider."""

    context: SessionContext
    client: MarketplaceClient
    navigator: Navigator
    notifier: Notifier
    refresh: Optional[Callable[[], object]] = None
    clock: Callable[[], str] = field(default=utc_now)
    state: ReconcilerState = field(default=ReconcilerState.AWAITING_REFERENCE, init=False)

    def reconcile(self, return_url: str) -> CallbackOutcome:
        """Handle one load of the callback route."""
        self.state = ReconcilerState.AWAITING_REFERENCE
        reference = extract_reference(return_url)
        if reference is None:
            logger.warning("Callback URL carried no payment reference")
            return self._fail(MissingReferenceError(), reference=None, session=None)
        return self.verify_reference(reference)

    def verify_reference(self, reference: str) -> CallbackOutcome:
        """Verify a reference; also the retry path after a NetworkError."""
        if not reference:
            self.state = ReconcilerState.AWAITING_REFERENCE
            return self._fail(MissingReferenceError(), reference=None, session=None)

        self.state = ReconcilerState.VERIFYING
        session = self._load_session(reference)

        if session and session.status is SessionStatus.VERIFIED:
            grant = self.context.store.get_grant(
                self.context.viewer_id, session.verified_property_id or session.property_id
            )
            if grant:
                logger.info("Reference %s already verified; skipping verification call", reference)
                return self._succeed(reference, session.verified_property_id, grant)

        if session:
            self._transition(session, SessionStatus.VERIFYING)

        try:
            result = parse_verify_response(self.client.verify_payment(reference))
        except ApiStatusError as exc:
            return self._fail(VerificationFailedError(exc.server_message), reference, session)
        except UnlockError as exc:
            return self._fail(exc, reference, session)

        grant_property_id = result.property_id or (session.property_id if session else None)
        if session and result.property_id and result.property_id != session.property_id:
            logger.warning(
                "Reference %s verified for property %s, session expected %s",
                reference,
                result.property_id,
                session.property_id,
            )

        grant = None
        if grant_property_id:
            grant = self.context.store.record_grant(
                self.context.viewer_id, grant_property_id, reference
            )
        else:
            self._refresh_entitlements()

        if session:
            session.verified_property_id = result.property_id
            self._transition(session, SessionStatus.VERIFIED)
        return self._succeed(reference, result.property_id, grant)

    def _succeed(
        self,
        reference: str,
        property_id: str | None,
        grant: EntitlementGrant | None,
    ) -> CallbackOutcome:
        self.state = ReconcilerState.VERIFIED
        route = property_route(property_id) if property_id else UNLOCKED_PROPERTIES_ROUTE
        self.notifier.success(VERIFIED_MESSAGE)
        self.navigator.navigate(route)
        return CallbackOutcome(
            state=self.state,
            route=route,
            message=VERIFIED_MESSAGE,
            reference=reference,
            property_id=property_id,
            grant=grant,
        )

    def _fail(
        self,
        error: UnlockError,
        reference: str | None,
        session: PaymentSession | None,
    ) -> CallbackOutcome:
        self.state = ReconcilerState.FAILED
        logger.warning("Payment verification failed (%s): %s", type(error).__name__, error.message)
        if session:
            self._transition(session, SessionStatus.FAILED, reason=error.message)
        self.notifier.error(error.message)
        return CallbackOutcome(
            state=self.state,
            route=LISTINGS_ROUTE,
            message=error.message,
            reference=reference,
            error=error,
            retryable=error.retryable,
        )

    def _load_session(self, reference: str) -> PaymentSession | None:
        session = self.context.database.fetch_session(reference)
        if session and session.viewer_id != self.context.viewer_id:
            logger.warning("Ignoring payment session %s owned by another viewer", reference)
            return None
        return session

    def _transition(
        self,
        session: PaymentSession,
        status: SessionStatus,
        reason: str | None = None,
    ) -> None:
        logger.info("Payment session %s: %s -> %s", session.reference, session.status.value, status.value)
        session.status = status
        session.failure_reason = reason
        session.updated_at = self.clock()
        self.context.database.save_session(session)

    def _refresh_entitlements(self) -> None:
        if self.refresh is None:
            logger.info("Verified payment named no property; grants await the next refresh")
            return
        try:
            self.refresh()
        except UnlockError as exc:
            logger.warning("Entitlement refresh after verification failed: %s", exc)
