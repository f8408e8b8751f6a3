from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from socialnet.core.config import settings
from socialnet.core.security import create_access_token, generate_refresh_token
from socialnet.services.rotation_store import RotationStore, with_storage_retry

logger = logging.getLogger(__name__)


def access_ttl_minutes(remember: bool) -> int:
    if remember:
        return int(settings.REMEMBER_ACCESS_TOKEN_EXPIRE_MINUTES)
    return int(settings.ACCESS_TOKEN_EXPIRE_MINUTES)


def refresh_ttl_minutes() -> int:
    return int(settings.REFRESH_TOKEN_EXPIRE_MINUTES)


def refresh_token_expiry(now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now + timedelta(minutes=refresh_ttl_minutes())


@dataclass(frozen=True)
class IssuedTokens:
    access_token: str
    access_ttl_minutes: int
    refresh_token: str | None = None
    refresh_ttl_minutes: int | None = None

    @property
    def remember(self) -> bool:
        return self.refresh_token is not None


class TokenIssuer:
    def __init__(self, store: RotationStore):
        self.store = store

    def mint_access_token(self, account_id: int, *, remember: bool) -> tuple[str, int]:
        ttl = access_ttl_minutes(remember)
        return create_access_token(str(account_id), expires_minutes=ttl), ttl

    def issue(self, account_id: int, *, remember: bool) -> IssuedTokens:
        """
        Fresh session for account_id.

        remember=True writes a new refresh token into the rotation slot
        (dropping whatever was there); remember=False empties the slot so no
        refresh token from an earlier session survives this login.
        """
        access_token, ttl = self.mint_access_token(account_id, remember=remember)

        if not remember:
            with_storage_retry("issue", self.store.clear, account_id)
            logger.info("Issued access-only session for account_id=%s ttl_minutes=%s", account_id, ttl)
            return IssuedTokens(access_token=access_token, access_ttl_minutes=ttl)

        refresh_token = generate_refresh_token()
        with_storage_retry(
            "issue",
            self.store.set,
            account_id,
            refresh_token,
            expires_at=refresh_token_expiry(),
        )
        logger.info("Issued remembered session for account_id=%s ttl_minutes=%s", account_id, ttl)
        return IssuedTokens(
            access_token=access_token,
            access_ttl_minutes=ttl,
            refresh_token=refresh_token,
            refresh_ttl_minutes=refresh_ttl_minutes(),
        )
