from __future__ import annotations

from collections.abc import Iterator
from typing import Optional

from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from .auth import Authenticator
from .storage import Storage

bearer_scheme = HTTPBearer(auto_error=False)


def get_session(request: Request) -> Iterator[Session]:
    yield from request.app.state.database.session()


def get_authenticator(request: Request) -> Authenticator:
    return request.app.state.authenticator


def get_storage(session: Session = Depends(get_session)) -> Storage:
    return Storage(session)


def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> Optional[str]:
    if credentials is None:
        return None
    return credentials.credentials.strip() or None


def get_current_user(
    token: Optional[str] = Depends(get_bearer_token),
    session: Session = Depends(get_session),
    authenticator: Authenticator = Depends(get_authenticator),
) -> str:
    """Resolve the bearer token to the id of the calling user."""
    return authenticator.authorize(session, token)
