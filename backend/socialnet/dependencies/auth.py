# socialnet/dependencies/auth.py
from __future__ import annotations

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from socialnet.core.database import get_db
from socialnet.core.security import verify_token_purpose
from socialnet.models.account import Account
from socialnet.services.accounts import get_account_by_id
from socialnet.services.cookies import read_access_cookie

bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str = "Could not validate credentials") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_account(
    request: Request,
    creds: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    db: Session = Depends(get_db),
) -> Account:
    """
    Resolves the caller from:
      - Authorization: Bearer <token>, or
      - the access-token cookie
    Validates signature, exp and purpose, then loads the account.
    """
    token: str | None = None
    if creds and creds.scheme.lower() == "bearer":
        token = creds.credentials
    if not token:
        token = read_access_cookie(request)
    if not token:
        raise _unauthorized("Missing access token")

    try:
        payload = verify_token_purpose(token, expected_purpose="access")
    except ValueError:
        raise _unauthorized("Invalid or expired token")

    try:
        account_id = int(str(payload.get("sub") or "").strip())
    except ValueError:
        raise _unauthorized("Invalid or expired token")

    account = get_account_by_id(db, account_id)
    if not account:
        raise _unauthorized("Account not found")

    return account
