# socialnet/models/account.py
from sqlalchemy import Column, DateTime, Integer, String, func

from socialnet.core.base import Base


class Account(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)

    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=False)
    username = Column(String(100), unique=True, nullable=True)
    password_hash = Column(String(255), nullable=False)

    # Rotation slot: the one currently valid refresh token (raw or HMAC digest).
    # NULL means no refresh token is valid for this account.
    remember_token = Column(String(128), unique=True, index=True, nullable=True)
    remember_token_expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
