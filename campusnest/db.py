"""SQLite-backed session storage for grants and payment sessions."""

from __future__ import annotations

import logging
import sqlite3
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

from .models import EntitlementGrant, PaymentSession, SessionStatus

logger = logging.getLogger(__name__)

SQLITE_PREFIX = "sqlite://"


def resolve_sqlite_path(database_url: str) -> Path:
    """Translate a sqlite URL (or plain path) into a filesystem path."""
    if not database_url:
        raise ValueError("Session database URL must not be empty")

    if database_url.startswith(SQLITE_PREFIX):
        raw_path = database_url[len(SQLITE_PREFIX) :]
        # Allow sqlite:///path/to/file and sqlite://path/to/file styles.
        if raw_path.startswith("/"):
            raw_path = raw_path[1:]
        path = Path(raw_path)
    else:
        path = Path(database_url)

    if not path.is_absolute():
        path = Path.cwd() / path

    return path.expanduser().resolve()


@dataclass
class Database:
    """Thin wrapper around sqlite3 scoped to one viewer session."""

    path: Path

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        return sqlite3.connect(self.path)

    def initialize(self) -> None:
        with self.connect() as conn:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS grants (
                    viewer_id TEXT NOT NULL,
                    property_id TEXT NOT NULL,
                    unlocked_at TEXT NOT NULL,
                    payment_reference TEXT NOT NULL,
                    PRIMARY KEY(viewer_id, property_id)
                )
                """
            )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS payment_sessions (
                    reference TEXT PRIMARY KEY,
                    property_id TEXT NOT NULL,
                    viewer_id TEXT NOT NULL,
                    status TEXT NOT NULL,
                    authorization_url TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL,
                    failure_reason TEXT,
                    verified_property_id TEXT
                )
                """
            )
            columns = {
                row[1]
                for row in conn.execute("PRAGMA table_info(payment_sessions)")
            }
            if "verified_property_id" not in columns:
                conn.execute(
                    "ALTER TABLE payment_sessions ADD COLUMN verified_property_id TEXT"
                )
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS session_events (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    reference TEXT NOT NULL,
                    status TEXT NOT NULL,
                    occurred_at TEXT NOT NULL,
                    details TEXT
                )
                """
            )
            conn.commit()

    def destroy(self) -> None:
        """Remove the backing file; used when the viewer logs out."""
        if self.path.exists():
            self.path.unlink()
            logger.info("Removed session storage at %s", self.path)

    def insert_grant(self, grant: EntitlementGrant) -> EntitlementGrant:
        """Insert a grant unless one exists for the pair; return the stored grant."""
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO grants (viewer_id, property_id, unlocked_at, payment_reference)
                VALUES (?, ?, ?, ?)
                ON CONFLICT(viewer_id, property_id) DO NOTHING
                """,
                (
                    grant.viewer_id,
                    grant.property_id,
                    grant.unlocked_at,
                    grant.payment_reference,
                ),
            )
            conn.commit()
        return self.fetch_grant(grant.viewer_id, grant.property_id) or grant

    def fetch_grant(self, viewer_id: str, property_id: str) -> Optional[EntitlementGrant]:
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT viewer_id, property_id, unlocked_at, payment_reference
                FROM grants WHERE viewer_id = ? AND property_id = ?
                """,
                (viewer_id, property_id),
            ).fetchone()
        if not row:
            return None
        return EntitlementGrant(*row)

    def fetch_grants(self, viewer_id: str) -> Dict[str, EntitlementGrant]:
        """Return a viewer's grants keyed by property_id."""
        with self.connect() as conn:
            cursor = conn.execute(
                """
                SELECT viewer_id, property_id, unlocked_at, payment_reference
                FROM grants WHERE viewer_id = ? ORDER BY unlocked_at, property_id
                """,
                (viewer_id,),
            )
            return {row[1]: EntitlementGrant(*row) for row in cursor.fetchall()}

    def delete_grants(self, viewer_id: str, property_ids: Iterable[str]) -> None:
        with self.connect() as conn:
            conn.executemany(
                "DELETE FROM grants WHERE viewer_id = ? AND property_id = ?",
                [(viewer_id, property_id) for property_id in property_ids],
            )
            conn.commit()

    def save_session(self, session: PaymentSession) -> None:
        """Insert or replace a payment session and log its current status."""
        with self.connect() as conn:
            conn.execute(
                """
                INSERT INTO payment_sessions (
                    reference, property_id, viewer_id, status, authorization_url,
                    created_at, updated_at, failure_reason, verified_property_id
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(reference) DO UPDATE SET
                    property_id=excluded.property_id,
                    viewer_id=excluded.viewer_id,
                    status=excluded.status,
                    authorization_url=excluded.authorization_url,
                    updated_at=excluded.updated_at,
                    failure_reason=excluded.failure_reason,
                    verified_property_id=excluded.verified_property_id
                """,
                (
                    session.reference,
                    session.property_id,
                    session.viewer_id,
                    session.status.value,
                    session.authorization_url,
                    session.created_at,
                    session.updated_at,
                    session.failure_reason,
                    session.verified_property_id,
                ),
            )
            conn.execute(
                """
                INSERT INTO session_events (reference, status, occurred_at, details)
                VALUES (?, ?, ?, ?)
                """,
                (
                    session.reference,
                    session.status.value,
                    session.updated_at,
                    session.failure_reason,
                ),
            )
            conn.commit()

    def fetch_session(self, reference: str) -> Optional[PaymentSession]:
        with self.connect() as conn:
            row = conn.execute(
                """
                SELECT reference, property_id, viewer_id, status, authorization_url,
                       created_at, updated_at, failure_reason, verified_property_id
                FROM payment_sessions WHERE reference = ?
                """,
                (reference,),
            ).fetchone()
        if not row:
            return None
        return _row_to_session(row)

    def fetch_sessions(
        self,
        viewer_id: str | None = None,
        status: SessionStatus | None = None,
    ) -> List[PaymentSession]:
        query = """
            SELECT reference, property_id, viewer_id, status, authorization_url,
                   created_at, updated_at, failure_reason, verified_property_id
            FROM payment_sessions
        """
        params: tuple = ()
        conditions = []
        if viewer_id:
            conditions.append("viewer_id = ?")
            params += (viewer_id,)
        if status:
            conditions.append("status = ?")
            params += (status.value,)
        if conditions:
            query += " WHERE " + " AND ".join(conditions)
        query += " ORDER BY created_at"

        with self.connect() as conn:
            return [_row_to_session(row) for row in conn.execute(query, params).fetchall()]

    def session_history(self, reference: str) -> List[Tuple[str, str, str | None]]:
        """Return (status, occurred_at, details) transitions in order."""
        with self.connect() as conn:
            cursor = conn.execute(
                """
                SELECT status, occurred_at, details FROM session_events
                WHERE reference = ? ORDER BY id
                """,
                (reference,),
            )
            return list(cursor.fetchall())


def _row_to_session(row: tuple) -> PaymentSession:
    return PaymentSession(
        reference=row[0],
        property_id=row[1],
        viewer_id=row[2],
        status=SessionStatus(row[3]),
        authorization_url=row[4],
        created_at=row[5],
        updated_at=row[6],
        failure_reason=row[7],
        verified_property_id=row[8],
    )
