"""Viewer session lifecycle and property access through the gate."""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import List

import requests

from .api import MarketplaceClient
from .callback import CallbackReconciler
from .config import Settings
from .context import SessionContext
from .db import Database, resolve_sqlite_path
from .entitlements import EntitlementStore
from .errors import NotAuthenticatedError, UnlockError
from .gate import UnlockGate
from .models import DiffResult, EntitlementGrant, PropertyRecord, utc_now
from .normalize import normalize_property, resolve_identifier
from .notifications import LoggingNotifier, Navigator, Notifier
from .payments import PaymentInitiator

logger = logging.getLogger(__name__)

SERVER_REFRESH_REFERENCE = "server-refresh"


@dataclass
class PropertyService:
    """Fetches properties and the viewer's unlocked list, presenting via the gate."""

    context: SessionContext
    client: MarketplaceClient
    gate: UnlockGate

    def get_property(self, property_id: str) -> PropertyRecord:
        record = normalize_property(self.client.get_property(property_id))
        if not record.property_id:
            record = dataclasses.replace(record, property_id=property_id)

        hint = record.unlocked_hint
        if hint is not None and hint != self.gate.is_unlocked(
            self.context.viewer_id, record.property_id
        ):
            logger.info(
                "Server hint for property %s disagrees with local grants; refreshing",
                record.property_id,
            )
            try:
                self.refresh_entitlements()
            except UnlockError as exc:
                logger.warning("Entitlement refresh failed: %s", exc)
        return self.gate.present(record)

    def refresh_entitlements(self) -> DiffResult[EntitlementGrant, EntitlementGrant]:
        """Authoritative refresh of the store from the unlocked-properties list."""
        return self._sync(self.client.get_unlocked_properties())

    def unlocked_properties(self) -> List[PropertyRecord]:
        documents = self.client.get_unlocked_properties()
        self._sync(documents)
        return [self.gate.present(normalize_property(document)) for document in documents]

    def _sync(self, documents: List[dict]) -> DiffResult[EntitlementGrant, EntitlementGrant]:
        grants = []
        for document in documents:
            property_id = resolve_identifier(document.get("_id") or document.get("id"))
            if not property_id:
                logger.debug("Skipping unlocked-property entry without an id")
                continue
            grants.append(
                EntitlementGrant(
                    viewer_id=self.context.viewer_id,
                    property_id=property_id,
                    unlocked_at=str(document.get("unlockedAt") or utc_now()),
                    payment_reference=str(
                        document.get("transactionId") or SERVER_REFRESH_REFERENCE
                    ),
                )
            )
        return self.context.store.refresh(self.context.viewer_id, grants)


@dataclass
class ViewerSession:
    """Everything that belongs to one logged-in viewer.

    Built by :meth:`login` and dismantled by :meth:`logout`; grants and
    payment sessions live in session storage that logout deletes.
    """

    settings: Settings
    context: SessionContext
    client: MarketplaceClient
    gate: UnlockGate
    initiator: PaymentInitiator
    reconciler: CallbackReconciler
    properties: PropertyService

    @classmethod
    def login(
        cls,
        settings: Settings,
        viewer_id: str,
        token: str,
        navigator: Navigator,
        notifier: Notifier | None = None,
        http_session: requests.Session | None = None,
        seed: bool = True,
    ) -> "ViewerSession":
        if not viewer_id or not token:
            raise NotAuthenticatedError()
        notifier = notifier or LoggingNotifier()

        database = Database(path=resolve_sqlite_path(settings.session_db))
        database.initialize()
        context = SessionContext(
            viewer_id=viewer_id,
            token=token,
            database=database,
            store=EntitlementStore(database=database),
        )
        client = MarketplaceClient(
            settings.api_url, token, session=http_session, timeout=settings.http_timeout
        )
        gate = UnlockGate(context=context)
        properties = PropertyService(context=context, client=client, gate=gate)
        session = cls(
            settings=settings,
            context=context,
            client=client,
            gate=gate,
            initiator=PaymentInitiator(
                context=context,
                client=client,
                navigator=navigator,
                settings=settings,
                notifier=notifier,
                refresh=properties.refresh_entitlements,
            ),
            reconciler=CallbackReconciler(
                context=context,
                client=client,
                navigator=navigator,
                notifier=notifier,
                refresh=properties.refresh_entitlements,
            ),
            properties=properties,
        )
        logger.info("Viewer %s logged in; session storage at %s", viewer_id, database.path)

        if seed:
            try:
                properties.refresh_entitlements()
            except UnlockError as exc:
                logger.warning("Could not seed entitlements from server: %s", exc)
        return session

    def logout(self) -> None:
        self.client.close()
        self.context.database.destroy()
        logger.info("Viewer %s logged out", self.context.viewer_id)
