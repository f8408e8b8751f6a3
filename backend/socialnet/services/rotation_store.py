# socialnet/services/rotation_store.py
"""
Rotation store: the single refresh-token slot kept on each account row.

Every mutation is one UPDATE statement committed immediately, so the
row-level write lock of the database is what serializes concurrent
rotations. compare_and_swap decides success from the affected-row count
instead of re-reading the slot.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import DisconnectionError, OperationalError, SQLAlchemyError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from sqlalchemy.orm import Session

from socialnet.core.config import settings
from socialnet.core.security import hash_refresh_token
from socialnet.models.account import Account
from socialnet.services.errors import InternalError, StorageError

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Transient store failures are retried once, never more.
STORAGE_RETRIES = 1


@dataclass(frozen=True)
class SlotSnapshot:
    account_id: int
    value: str | None
    expires_at: datetime | None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        now = now or datetime.now(timezone.utc)
        expires_at = self.expires_at
        # SQLite round-trips tz-aware datetimes as naive. Compare consistently.
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at <= now


def _is_transient(exc: SQLAlchemyError) -> bool:
    if getattr(exc, "connection_invalidated", False):
        return True
    return isinstance(exc, (OperationalError, DisconnectionError, PoolTimeoutError))


class RotationStore:
    def __init__(self, db: Session, *, hash_at_rest: bool | None = None):
        self.db = db
        if hash_at_rest is None:
            hash_at_rest = settings.REFRESH_TOKEN_HASH_AT_REST
        self.hash_at_rest = hash_at_rest

    def encode(self, raw_value: str) -> str:
        """Form in which a raw refresh token is kept in the slot."""
        return hash_refresh_token(raw_value) if self.hash_at_rest else raw_value

    # -----------------------------
    # Reads
    # -----------------------------
    def current(self, account_id: int) -> str | None:
        row = self._read(
            select(Account.remember_token).where(Account.id == account_id)
        ).first()
        if row is None:
            raise ValueError("Account not found")
        return row[0]

    def lookup_by_value(self, raw_value: str) -> SlotSnapshot | None:
        row = self._read(
            select(Account.id, Account.remember_token, Account.remember_token_expires_at).where(
                Account.remember_token == self.encode(raw_value)
            )
        ).first()
        if row is None:
            return None
        return SlotSnapshot(account_id=row[0], value=row[1], expires_at=row[2])

    # -----------------------------
    # Writes
    # -----------------------------
    def set(self, account_id: int, raw_value: str, *, expires_at: datetime | None = None) -> str | None:
        """
        Unconditional overwrite. Only for fresh issuance (login), where no
        prior value is being raced against. Returns the value it replaced:
        the row is locked for the read and the write, both in one transaction.
        """

        def overwrite() -> str | None:
            row = self.db.execute(
                select(Account.remember_token).where(Account.id == account_id).with_for_update()
            ).first()
            if row is None:
                raise ValueError("Account not found")
            self.db.execute(
                update(Account)
                .where(Account.id == account_id)
                .values(remember_token=self.encode(raw_value), remember_token_expires_at=expires_at)
                .execution_options(synchronize_session=False)
            )
            return row[0]

        return self._transaction(overwrite)

    def compare_and_swap(
        self,
        account_id: int,
        expected_raw: str,
        new_raw: str,
        *,
        expires_at: datetime | None = None,
    ) -> bool:
        rowcount = self._write(
            update(Account)
            .where(Account.id == account_id, Account.remember_token == self.encode(expected_raw))
            .values(remember_token=self.encode(new_raw), remember_token_expires_at=expires_at)
        )
        return rowcount == 1

    def clear(self, account_id: int) -> None:
        self._write(
            update(Account)
            .where(Account.id == account_id)
            .values(remember_token=None, remember_token_expires_at=None)
        )

    def clear_if_matches(self, account_id: int, expected_raw: str) -> bool:
        """Clear the slot only while it still holds expected_raw."""
        rowcount = self._write(
            update(Account)
            .where(Account.id == account_id, Account.remember_token == self.encode(expected_raw))
            .values(remember_token=None, remember_token_expires_at=None)
        )
        return rowcount == 1

    # -----------------------------
    # Plumbing
    # -----------------------------
    def _read(self, stmt):
        try:
            return self.db.execute(stmt)
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Rotation store read failed: {exc.__class__.__name__}", transient=_is_transient(exc)) from exc

    def _write(self, stmt) -> int:
        result = self._transaction(lambda: self.db.execute(stmt.execution_options(synchronize_session=False)))
        return int(result.rowcount or 0)

    def _transaction(self, fn: Callable[[], T]) -> T:
        try:
            result = fn()
            self.db.commit()
        except SQLAlchemyError as exc:
            self.db.rollback()
            raise StorageError(f"Rotation store write failed: {exc.__class__.__name__}", transient=_is_transient(exc)) from exc
        except ValueError:
            self.db.rollback()
            raise
        return result


def with_storage_retry(operation: str, fn: Callable[..., T], *args, **kwargs) -> T:
    """
    Run a store call, retrying once when the store reports a transient failure.
    Anything else, or a second failure, becomes InternalError.
    """
    attempt = 0
    while True:
        try:
            return fn(*args, **kwargs)
        except StorageError as exc:
            if exc.transient and attempt < STORAGE_RETRIES:
                attempt += 1
                logger.warning("Transient rotation store failure during %s; retrying (%s)", operation, exc)
                continue
            logger.error("Rotation store failure during %s: %s", operation, exc)
            raise InternalError(f"Rotation store unavailable during {operation}") from exc
