from __future__ import annotations

import logging

from socialnet.services.rotation_store import RotationStore, with_storage_retry

logger = logging.getLogger(__name__)


class SessionRevoker:
    """
    Logout. Empties the account's rotation slot; repeated calls are no-ops.

    Access tokens already handed out stay valid until they expire.
    """

    def __init__(self, store: RotationStore):
        self.store = store

    def revoke(self, account_id: int) -> None:
        with_storage_retry("revoke", self.store.clear, account_id)
        logger.info("Revoked refresh slot for account_id=%s", account_id)
