"""Starting a payment session and handing control to the provider."""

from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional

from .api import ApiStatusError, MarketplaceClient, unwrap_data
from .config import Settings
from .context import SessionContext
from .errors import (
    InitiateFailedError,
    MissingRedirectTargetError,
    NotAuthenticatedError,
    PropertyNotFoundError,
    UnlockError,
)
from .models import InitiateResult, PaymentSession, SessionStatus, utc_now
from .notifications import Navigator, Notifier

logger = logging.getLogger(__name__)

AUTHORIZATION_URL_KEYS = ("authorizationUrl", "authorization_url")
ABANDONED_REASON = "abandoned"


@dataclass
class PaymentInitiator:
    """Creates a payment session for (viewer, property) and redirects to the provider."""

    context: SessionContext
    client: MarketplaceClient
    navigator: Navigator
    settings: Settings
    notifier: Optional[Notifier] = None
    refresh: Optional[Callable[[], object]] = None
    clock: Callable[[], str] = field(default=utc_now)

    def fee_display(self) -> str:
        return self.settings.format_fee()

    def initiate_unlock(self, property_id: str, viewer_id: str | None = None) -> InitiateResult:
        """Start an unlock; a property already unlocked for the viewer is a no-op."""
        try:
            return self._initiate(property_id, viewer_id or self.context.viewer_id)
        except UnlockError as exc:
            if self.notifier:
                self.notifier.error(exc.message)
            raise

    def _initiate(self, property_id: str, viewer_id: str) -> InitiateResult:
        if not self.context.is_authenticated or viewer_id != self.context.viewer_id:
            raise NotAuthenticatedError()
        if not property_id:
            raise PropertyNotFoundError()

        if self.context.store.has_grant(viewer_id, property_id):
            logger.info("Property %s already unlocked for viewer %s", property_id, viewer_id)
            return InitiateResult(reference=None, authorization_url=None, already_unlocked=True)

        try:
            payload = self.client.initiate_unlock(property_id, self.settings.payment_method)
        except ApiStatusError as exc:
            if exc.status_code == 404:
                raise PropertyNotFoundError(exc.server_message) from exc
            if exc.status_code == 400 and "already unlocked" in (exc.server_message or "").lower():
                logger.info(
                    "Server reports property %s already unlocked; refreshing entitlements",
                    property_id,
                )
                self._refresh_entitlements()
                return InitiateResult(
                    reference=None, authorization_url=None, already_unlocked=True
                )
            raise InitiateFailedError(exc.server_message) from exc

        data = unwrap_data(payload)
        authorization_url = extract_authorization_url(data)
        if not authorization_url:
            raise MissingRedirectTargetError()
        reference = str(data.get("reference") or "").strip()
        if not reference:
            raise InitiateFailedError("Payment provider did not return a session reference")

        now = self.clock()
        session = PaymentSession(
            reference=reference,
            property_id=property_id,
            viewer_id=viewer_id,
            status=SessionStatus.INITIATED,
            authorization_url=authorization_url,
            created_at=now,
            updated_at=now,
        )
        self.context.database.save_session(session)
        logger.info("Payment session %s initiated for property %s", reference, property_id)

        session.status = SessionStatus.AWAITING_RETURN
        session.updated_at = self.clock()
        self.context.database.save_session(session)
        logger.info("Payment session %s awaiting return from provider", reference)

        self.navigator.redirect(authorization_url)
        return InitiateResult(reference=reference, authorization_url=authorization_url)

    def expire_abandoned(self, now: dt.datetime | None = None) -> List[PaymentSession]:
        """Fail sessions that never came back from the provider within the timeout."""
        now = now or dt.datetime.now(dt.timezone.utc)
        cutoff = now - dt.timedelta(seconds=self.settings.session_timeout)
        expired: List[PaymentSession] = []
        for status in (SessionStatus.INITIATED, SessionStatus.AWAITING_RETURN):
            for session in self.context.database.fetch_sessions(
                viewer_id=self.context.viewer_id, status=status
            ):
                if _parse_timestamp(session.updated_at) > cutoff:
                    continue
                session.status = SessionStatus.FAILED
                session.failure_reason = ABANDONED_REASON
                session.updated_at = now.isoformat()
                self.context.database.save_session(session)
                logger.info("Payment session %s abandoned", session.reference)
                expired.append(session)
        return expired

    def _refresh_entitlements(self) -> None:
        if self.refresh is None:
            return
        try:
            self.refresh()
        except UnlockError as exc:
            logger.warning("Entitlement refresh failed: %s", exc)


def extract_authorization_url(data: dict) -> str | None:
    """Return the provider redirect URL under either naming convention."""
    for key in AUTHORIZATION_URL_KEYS:
        value = data.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def _parse_timestamp(value: str) -> dt.datetime:
    parsed = dt.datetime.fromisoformat(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt.timezone.utc)
    return parsed
