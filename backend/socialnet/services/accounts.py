# socialnet/services/accounts.py
"""
Account helpers: registration and lookup by e-mail or id.
"""
from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from socialnet.core.security import hash_password
from socialnet.models.account import Account
from socialnet.services.errors import DuplicateAccountError

logger = logging.getLogger(__name__)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def get_account_by_email(db: Session, email: str) -> Optional[Account]:
    """Look up an account by e-mail address."""
    return db.query(Account).filter(Account.email == normalize_email(email)).first()


def get_account_by_id(db: Session, account_id: int) -> Optional[Account]:
    return db.query(Account).filter(Account.id == account_id).first()


def register_account(
    db: Session,
    *,
    name: str,
    email: str,
    password: str,
    username: str | None = None,
) -> Account:
    """
    Create an account with an empty rotation slot.

    Raises:
        DuplicateAccountError: e-mail (or username) already taken
        ValueError: name is blank
    """
    normalized_email = normalize_email(email)
    normalized_name = (name or "").strip()
    if not normalized_name:
        raise ValueError("Name is required")
    normalized_username = username.strip() if isinstance(username, str) and username.strip() else None

    if get_account_by_email(db, normalized_email):
        raise DuplicateAccountError("Email already registered")

    account = Account(
        email=normalized_email,
        name=normalized_name,
        username=normalized_username,
        password_hash=hash_password(password),
        remember_token=None,
        remember_token_expires_at=None,
    )
    db.add(account)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise DuplicateAccountError("Email or username already registered") from exc
    db.refresh(account)

    logger.info("Registered account id=%s", account.id)
    return account
