from __future__ import annotations

import logging
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import bcrypt
import jwt
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from .config import Settings
from .db import RevokedSession, RevokedToken, User
from .errors import BadRequest, Conflict, Unauthorized

logger = logging.getLogger(__name__)

ACCESS = "access"
REFRESH = "refresh"

# bcrypt only looks at the first 72 bytes of a password.
_BCRYPT_MAX_BYTES = 72

INVALID_CREDENTIALS = "Invalid email or password"


def _password_bytes(password: str) -> bytes:
    return password.encode("utf-8")[:_BCRYPT_MAX_BYTES]


class Authenticator:
    """Password verification and bearer token lifecycle.

    Access and refresh tokens are both HMAC-signed JWTs carrying the user id,
    told apart by their ``type`` claim and lifetime. Every token gets a
    ``jti`` so two logins within the same second never mint the same string,
    which matters because revocation is keyed on the raw token. Tokens
    from one login share a ``sid``; logging out ends that session for both.
    """

    def __init__(self, settings: Settings) -> None:
        self.secret = settings.jwt_secret.get_secret_value()
        self.algorithm = settings.jwt_algorithm
        self.access_ttl = timedelta(seconds=settings.access_token_expires_in)
        self.refresh_ttl = timedelta(seconds=settings.refresh_token_expires_in)
        self.rounds = settings.bcrypt_rounds
        # Verified against when the email is unknown so both login failures cost the same.
        self._dummy_hash = self.hash_password(uuid.uuid4().hex)

    # === Passwords ===

    def hash_password(self, password: str) -> str:
        return bcrypt.hashpw(_password_bytes(password), bcrypt.gensalt(rounds=self.rounds)).decode("ascii")

    @staticmethod
    def verify_password(password: str, password_hash: str) -> bool:
        try:
            return bcrypt.checkpw(_password_bytes(password), password_hash.encode("ascii"))
        except ValueError:
            return False

    # === Tokens ===

    def _mint(self, user_id: str, sid: str, token_type: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload: dict[str, Any] = {
            "userId": user_id,
            "sid": sid,
            "type": token_type,
            "jti": uuid.uuid4().hex,
            "iat": now,
            "exp": now + ttl,
        }
        return jwt.encode(payload, self.secret, algorithm=self.algorithm)

    def issue_tokens(self, user_id: str, sid: str | None = None) -> tuple[str, str]:
        """Mint an access/refresh pair sharing one login session id."""
        sid = sid or uuid.uuid4().hex
        return (
            self._mint(user_id, sid, ACCESS, self.access_ttl),
            self._mint(user_id, sid, REFRESH, self.refresh_ttl),
        )

    def decode(self, token: str, expected_type: str) -> tuple[str, str]:
        """Return ``(user_id, sid)`` from a validly signed token of the given type."""
        try:
            payload = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options={"require": ["exp", "iat", "jti", "sid"]},
            )
        except jwt.ExpiredSignatureError:
            raise Unauthorized("Token has expired")
        except jwt.InvalidTokenError:
            raise Unauthorized("Invalid token")

        user_id = payload.get("userId")
        sid = payload.get("sid")
        if payload.get("type") != expected_type or not isinstance(user_id, str) or not isinstance(sid, str):
            raise Unauthorized("Invalid token")
        return user_id, sid

    @staticmethod
    def is_revoked(session: Session, token: str, sid: str) -> bool:
        if session.get(RevokedSession, sid) is not None:
            return True
        return session.get(RevokedToken, token) is not None

    # === Operations ===

    def register(self, session: Session, name: str, email: str, password: str) -> User:
        existing = session.scalar(select(User).where(User.email == email))
        if existing is not None:
            raise Conflict("User already exists")

        user = User(name=name.strip(), email=email, password_hash=self.hash_password(password))
        session.add(user)
        try:
            session.commit()
        except IntegrityError:
            # Lost a race against another registration for the same email.
            session.rollback()
            raise Conflict("User already exists")
        logger.info("Registered user %s", user.id)
        return user

    def login(self, session: Session, email: str, password: str) -> tuple[str, str]:
        user = session.scalar(select(User).where(User.email == email))
        if user is None:
            self.verify_password(password, self._dummy_hash)
            logger.warning("Failed login attempt")
            raise BadRequest(INVALID_CREDENTIALS)
        if not self.verify_password(password, user.password_hash):
            logger.warning("Failed login attempt for user %s", user.id)
            raise BadRequest(INVALID_CREDENTIALS)

        logger.info("User %s logged in", user.id)
        return self.issue_tokens(user.id)

    def _verify(self, session: Session, token: str, expected_type: str) -> tuple[str, str]:
        user_id, sid = self.decode(token, expected_type)
        if self.is_revoked(session, token, sid):
            logger.warning("Rejected revoked %s token for user %s", expected_type, user_id)
            raise Unauthorized("Token has been revoked")
        if session.get(User, user_id) is None:
            raise Unauthorized("Invalid token")
        return user_id, sid

    def authorize(self, session: Session, token: str | None) -> str:
        """Return the user id carried by a valid, unrevoked access token."""
        if not token:
            raise Unauthorized("Not authenticated")
        user_id, _ = self._verify(session, token, ACCESS)
        return user_id

    def revoke(self, session: Session, token: str) -> bool:
        """Record the token as revoked; False if it already was."""
        session.add(RevokedToken(token=token))
        try:
            session.commit()
        except IntegrityError:
            session.rollback()
            return False
        return True

    def logout(self, session: Session, token: str | None) -> str:
        """Revoke the bearer token and end its login session.

        Ending the session also invalidates the refresh token minted with it
        and any pair obtained from that refresh token since.
        """
        if not token:
            raise BadRequest("Authorization token required")
        user_id, sid = self._verify(session, token, ACCESS)
        session.add(RevokedToken(token=token))
        if session.get(RevokedSession, sid) is None:
            session.add(RevokedSession(sid=sid))
        try:
            session.commit()
        except IntegrityError:
            # Concurrent logout of the same session already recorded it.
            session.rollback()
        logger.info("User %s logged out", user_id)
        return user_id

    def refresh(self, session: Session, refresh_token: str) -> tuple[str, str]:
        """Exchange a refresh token for a new pair; the old one is revoked."""
        user_id, sid = self._verify(session, refresh_token, REFRESH)
        if not self.revoke(session, refresh_token):
            raise Unauthorized("Token has been revoked")
        logger.info("Refreshed tokens for user %s", user_id)
        return self.issue_tokens(user_id, sid)
