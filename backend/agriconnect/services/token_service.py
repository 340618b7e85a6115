# Overview: Service-layer operations for session tokens; signs and verifies JWT bearer tokens.

"""
Session Token Service

Tokens are signed JWTs embedding {id, email, role}. They are stateless:
nothing is stored server-side, there is no refresh or revocation, and
expiry is the only way a token stops working (logout is the client
dropping it).

Issuance paths use different lifetimes:
- registration: REGISTER_TOKEN_TTL (7 days)
- login: LOGIN_TOKEN_TTL (30 days)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from flask import current_app
from jose import JWTError, jwt

from ..errors import InvalidSession
from ..models import User


@dataclass(frozen=True)
class Identity:
    """Authenticated principal resolved from a token; the authoritative actor."""
    id: int
    email: str
    role: str

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"

    def owns(self, user_id: int | None) -> bool:
        return user_id is not None and self.id == user_id


def issue_token(user: User, ttl: timedelta) -> str:
    now = datetime.now(timezone.utc)
    claims = {
        "sub": str(user.id),
        "id": user.id,
        "email": user.email,
        "role": user.role,
        "iat": int(now.timestamp()),
        "exp": int((now + ttl).timestamp()),
    }
    return jwt.encode(
        claims,
        current_app.config["JWT_SECRET"],
        algorithm=current_app.config["JWT_ALGORITHM"],
    )


def decode_token(token: str) -> Identity:
    """
    Verify signature and expiry and return the embedded identity.

    Raises InvalidSession for anything that does not verify.
    """
    try:
        claims = jwt.decode(
            token,
            current_app.config["JWT_SECRET"],
            algorithms=[current_app.config["JWT_ALGORITHM"]],
        )
    except JWTError as e:
        current_app.logger.info("Rejected session token: %s", e)
        raise InvalidSession()

    try:
        return Identity(id=int(claims["id"]), email=str(claims["email"]), role=str(claims["role"]))
    except (KeyError, TypeError, ValueError):
        current_app.logger.warning("Session token with malformed claims")
        raise InvalidSession()
