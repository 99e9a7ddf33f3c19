from __future__ import annotations

import logging

from fastapi import Depends, Header, Request
from jose import JWTError, jwt

from app.domain import Identity
from app.errors import Unauthorized

logger = logging.getLogger(__name__)

JWT_ALG = "HS256"


def verify_token(token: str, secret: str) -> Identity | None:
    """Decode a bearer token into the caller identity, or None if it is invalid."""
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALG])
    except JWTError as exc:
        logger.debug("rejected token: %s", exc)
        return None
    user_id = payload.get("userId") or payload.get("sub")
    if not user_id:
        return None
    return Identity(
        user_id=str(user_id),
        email=payload.get("email"),
        name=payload.get("name"),
    )


def bearer_token(authorization: str | None) -> str | None:
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization[len("Bearer "):].strip()
    return token or None


def current_identity(
    request: Request, authorization: str | None = Header(default=None)
) -> Identity | None:
    token = bearer_token(authorization)
    if token is None:
        return None
    return verify_token(token, request.app.state.settings.jwt_secret)


def require_identity(identity: Identity | None = Depends(current_identity)) -> Identity:
    if identity is None:
        raise Unauthorized("Unauthorized")
    return identity
