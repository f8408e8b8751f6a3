# socialnet/routes/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from sqlalchemy.orm import Session

from socialnet.core.config import settings
from socialnet.core.database import get_db
from socialnet.core.errors import error_response
from socialnet.dependencies.auth import get_current_account
from socialnet.models.account import Account
from socialnet.schemas.auth import AccountOut, LoginIn, MessageOut, RegisterIn, TokenOut
from socialnet.services.accounts import get_account_by_id, register_account
from socialnet.services.cookies import plan_for_clear, plan_for_issue, read_refresh_cookie
from socialnet.services.credentials import verify_credentials
from socialnet.services.errors import MESSAGE_BY_KIND, STATUS_BY_KIND, AuthErrorKind, DuplicateAccountError
from socialnet.services.refresh import RefreshHandler
from socialnet.services.rotation_store import RotationStore
from socialnet.services.sessions import SessionRevoker
from socialnet.services.tokens import IssuedTokens, TokenIssuer

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


def _kind_error(kind: AuthErrorKind) -> HTTPException:
    return HTTPException(
        status_code=STATUS_BY_KIND[kind],
        detail={"error": kind.value, "message": MESSAGE_BY_KIND[kind]},
    )


def _login_error(kind: AuthErrorKind) -> HTTPException:
    if settings.UNIFORM_LOGIN_ERRORS:
        return HTTPException(
            status_code=401,
            detail={"error": "INVALID_CREDENTIALS", "message": "Invalid email or password"},
        )
    return _kind_error(kind)


def _token_body(issued: IssuedTokens, account: Account | None, *, remember: bool) -> dict:
    return {
        "access_token": issued.access_token,
        "token_type": "bearer",
        "expires_in": issued.access_ttl_minutes * 60,
        "remember": remember,
        "account": AccountOut.model_validate(account) if account is not None else None,
    }


# -----------------------------
# Routes
# -----------------------------
@router.post("/register", response_model=AccountOut, status_code=201)
def register(payload: RegisterIn, db: Session = Depends(get_db)):
    try:
        account = register_account(
            db,
            name=payload.name,
            email=payload.email,
            password=payload.password,
            username=payload.username,
        )
    except DuplicateAccountError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ValueError as e:
        raise HTTPException(status_code=422, detail=str(e))
    return account


@router.post("/login", response_model=TokenOut)
def login(payload: LoginIn, response: Response, db: Session = Depends(get_db)):
    check = verify_credentials(db, payload.email, payload.password)
    if not check.ok:
        logger.info("Login failed: %s", check.kind.value)
        raise _login_error(check.error_kind)

    account = check.account
    issued = TokenIssuer(RotationStore(db)).issue(account.id, remember=payload.remember)
    plan_for_issue(issued).apply(response)

    return _token_body(issued, account, remember=issued.remember)


@router.post("/refresh", response_model=TokenOut)
def refresh(request: Request, response: Response, db: Session = Depends(get_db)):
    """
    Rotate the refresh cookie:
      - missing cookie -> 400
      - rotated -> new access + refresh cookies
      - rejected -> both cookies cleared, caller must log in again
    """
    raw = read_refresh_cookie(request)
    if not raw:
        raise _kind_error(AuthErrorKind.MISSING_REFRESH_TOKEN)

    outcome = RefreshHandler(RotationStore(db)).refresh(raw)
    if not outcome.rotated:
        kind = AuthErrorKind.INVALID_REFRESH_TOKEN
        rejected = error_response(STATUS_BY_KIND[kind], MESSAGE_BY_KIND[kind], error=kind.value)
        return plan_for_clear().apply(rejected)

    plan_for_issue(outcome.tokens).apply(response)
    account = get_account_by_id(db, outcome.account_id)
    return _token_body(outcome.tokens, account, remember=True)


@router.post("/logout", response_model=MessageOut)
def logout(response: Response, account: Account = Depends(get_current_account), db: Session = Depends(get_db)):
    SessionRevoker(RotationStore(db)).revoke(account.id)
    plan_for_clear().apply(response)
    return {"message": "Logged out"}
