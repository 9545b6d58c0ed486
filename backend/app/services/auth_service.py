"""Credentials login and session token issuance."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import HTTPException
from passlib.context import CryptContext
from pydantic import ValidationError
from sqlalchemy import select

from app.core.config import Settings, get_settings
from app.core.db import get_session
from app.models.user import User
from app.schemas.auth import LoginRequest, SessionUser


pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")
logger = logging.getLogger(__name__)


class AuthService:
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()

    def verify_password(self, plain_password: str, hashed_password: str) -> bool:
        return pwd_context.verify(plain_password, hashed_password)

    def hash_password(self, password: str) -> str:
        return pwd_context.hash(password)

    def authorize(self, *, email: str | None, password: str | None) -> SessionUser | None:
        """Return the session user for valid credentials, ``None`` otherwise.

        Malformed input, unknown email, a user without a password hash and a
        wrong password are indistinguishable to the caller.
        """
        try:
            creds = LoginRequest.model_validate({"email": email, "password": password})
        except ValidationError:
            return None
        with get_session(self.settings.database_url) as session:
            user = session.execute(select(User).where(User.email == creds.email).limit(1)).scalars().first()
            if not user or not user.password_hash:
                return None
            if not self.verify_password(creds.password, user.password_hash):
                return None
            user.last_login_at = datetime.now(tz=timezone.utc)
            session.add(user)
            session.commit()
            logger.info("User %s signed in", user.id)
            return SessionUser(id=str(user.id), email=user.email, name=user.full_name or None)

    def create_user(self, *, email: str, password: str, full_name: str | None = None) -> User:
        creds = LoginRequest.model_validate({"email": email, "password": password})
        with get_session(self.settings.database_url) as session:
            existing = session.execute(select(User).where(User.email == creds.email)).scalars().first()
            if existing:
                raise ValueError(f"user {creds.email} already exists")
            user = User(email=creds.email, full_name=full_name, password_hash=self.hash_password(creds.password))
            session.add(user)
            session.commit()
            session.refresh(user)
            return user

    def create_access_token(self, *, user: SessionUser, expires_delta: int | None = None) -> str:
        expire = datetime.now(tz=timezone.utc) + timedelta(
            seconds=expires_delta or self.settings.jwt_access_token_expires
        )
        to_encode = {"sub": user.id, "email": user.email, "name": user.name, "exp": expire}
        return jwt.encode(to_encode, self.settings.jwt_secret_key, algorithm="HS256")

    def decode_token(self, token: str) -> dict:
        try:
            return jwt.decode(token, self.settings.jwt_secret_key, algorithms=["HS256"])
        except jwt.PyJWTError as exc:
            raise HTTPException(status_code=401, detail="INVALID_TOKEN") from exc

    def session_user(self, token: str) -> SessionUser:
        payload = self.decode_token(token)
        user_id = payload.get("sub")
        if not user_id or not payload.get("email"):
            raise HTTPException(status_code=401, detail="INVALID_TOKEN_PAYLOAD")
        return SessionUser(id=str(user_id), email=payload["email"], name=payload.get("name"))
