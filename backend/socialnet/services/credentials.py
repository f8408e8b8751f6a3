from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from sqlalchemy.orm import Session

from socialnet.core.security import verify_password
from socialnet.models.account import Account
from socialnet.services.accounts import get_account_by_email
from socialnet.services.errors import AuthErrorKind


class CredentialKind(str, Enum):
    OK = "ok"
    NOT_FOUND = AuthErrorKind.NOT_FOUND.value
    WRONG_PASSWORD = AuthErrorKind.WRONG_PASSWORD.value


@dataclass(frozen=True)
class CredentialCheck:
    kind: CredentialKind
    account: Account | None = None

    @property
    def ok(self) -> bool:
        return self.kind is CredentialKind.OK

    @property
    def error_kind(self) -> AuthErrorKind | None:
        if self.ok:
            return None
        return AuthErrorKind(self.kind.value)


def verify_credentials(db: Session, email: str, password: str) -> CredentialCheck:
    """
    Read-only check of e-mail + password. Unknown e-mail and wrong password
    are reported as different kinds; callers decide what reaches the client.
    """
    account = get_account_by_email(db, email)
    if account is None:
        return CredentialCheck(kind=CredentialKind.NOT_FOUND)

    if not verify_password(password, account.password_hash):
        return CredentialCheck(kind=CredentialKind.WRONG_PASSWORD)

    return CredentialCheck(kind=CredentialKind.OK, account=account)
