# socialnet/services/refresh.py
"""
Refresh-token rotation.

Each call consumes exactly one presented token T:

    PRESENTED -> ROTATED   slot swapped from T to a fresh T'
    PRESENTED -> REJECTED  T unknown, rotated out, expired, or lost the swap

A token that has been presented once can never rotate again: either this
call swapped it out, or another call already did. Losing the swap is not
retried; the caller has to log in again.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum

from socialnet.core.security import generate_refresh_token, tokens_match
from socialnet.services.rotation_store import RotationStore, with_storage_retry
from socialnet.services.tokens import IssuedTokens, TokenIssuer, refresh_token_expiry, refresh_ttl_minutes

logger = logging.getLogger(__name__)


class RefreshState(str, Enum):
    PRESENTED = "presented"
    ROTATED = "rotated"
    REJECTED = "rejected"


class RejectReason(str, Enum):
    UNKNOWN = "unknown"
    ROTATED_OUT = "rotated_out"
    EXPIRED = "expired"
    LOST_RACE = "lost_race"


@dataclass(frozen=True)
class RefreshOutcome:
    state: RefreshState
    account_id: int | None = None
    tokens: IssuedTokens | None = None
    reason: RejectReason | None = None

    @property
    def rotated(self) -> bool:
        return self.state is RefreshState.ROTATED

    @classmethod
    def rejected(cls, reason: RejectReason, account_id: int | None = None) -> "RefreshOutcome":
        return cls(state=RefreshState.REJECTED, account_id=account_id, reason=reason)


class RefreshHandler:
    def __init__(self, store: RotationStore, issuer: TokenIssuer | None = None):
        self.store = store
        self.issuer = issuer or TokenIssuer(store)

    def refresh(self, raw_token: str) -> RefreshOutcome:
        if not raw_token:
            return RefreshOutcome.rejected(RejectReason.UNKNOWN)

        snapshot = with_storage_retry("refresh", self.store.lookup_by_value, raw_token)
        if snapshot is None:
            logger.info("Refresh rejected: unknown or already rotated token")
            return RefreshOutcome.rejected(RejectReason.UNKNOWN)

        account_id = snapshot.account_id
        if not tokens_match(snapshot.value, self.store.encode(raw_token)):
            logger.info("Refresh rejected for account_id=%s: token rotated out", account_id)
            return RefreshOutcome.rejected(RejectReason.ROTATED_OUT, account_id)

        if snapshot.is_expired():
            with_storage_retry("refresh", self.store.clear_if_matches, account_id, raw_token)
            logger.info("Refresh rejected for account_id=%s: token expired", account_id)
            return RefreshOutcome.rejected(RejectReason.EXPIRED, account_id)

        new_token = generate_refresh_token()
        swapped = with_storage_retry(
            "refresh",
            self.store.compare_and_swap,
            account_id,
            raw_token,
            new_token,
            expires_at=refresh_token_expiry(),
        )
        if not swapped:
            logger.warning("Refresh rejected for account_id=%s: concurrent rotation won", account_id)
            return RefreshOutcome.rejected(RejectReason.LOST_RACE, account_id)

        # The refresh cookie carries the long-lived session; access tokens minted here stay short.
        access_token, ttl = self.issuer.mint_access_token(account_id, remember=False)
        logger.info("Refresh rotated for account_id=%s", account_id)
        return RefreshOutcome(
            state=RefreshState.ROTATED,
            account_id=account_id,
            tokens=IssuedTokens(
                access_token=access_token,
                access_ttl_minutes=ttl,
                refresh_token=new_token,
                refresh_ttl_minutes=refresh_ttl_minutes(),
            ),
        )
