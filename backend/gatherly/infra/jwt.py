"""Access token helpers.

Tokens are HS256 signed with the application secret and carry the caller's
user id (``sub``) and role. Issuer and audience are always checked.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict
from uuid import UUID

import jwt
from jwt import InvalidTokenError

from gatherly.settings import settings


ISSUER = "gatherly-auth"
AUDIENCE = "gatherly-api"
_ALGORITHM = "HS256"


@dataclass(frozen=True, slots=True)
class AccessClaims:
    user_id: UUID
    role: str
    expires_at: int


def encode_access(user_id: UUID, role: str, *, ttl_seconds: int | None = None) -> str:
    now = int(time.time())
    ttl = ttl_seconds if ttl_seconds is not None else settings.access_token_ttl_seconds
    body: Dict[str, Any] = {
        "iss": ISSUER,
        "aud": AUDIENCE,
        "iat": now,
        "exp": now + ttl,
        "sub": str(user_id),
        "role": role,
    }
    return jwt.encode(body, settings.secret_key, algorithm=_ALGORITHM)


def decode_access(token: str) -> AccessClaims:
    """Decode and validate an access token.

    Raises jwt.InvalidTokenError subclasses on failure, including a
    malformed ``sub``.
    """
    payload = jwt.decode(
        token,
        settings.secret_key,
        algorithms=[_ALGORITHM],
        audience=AUDIENCE,
        issuer=ISSUER,
        leeway=5,
        options={"require": ["exp", "iat", "iss", "aud", "sub"]},
    )
    role = payload.get("role")
    if not role:
        raise InvalidTokenError("missing_claim:role")
    try:
        user_id = UUID(str(payload["sub"]))
    except ValueError as exc:
        raise InvalidTokenError("malformed_claim:sub") from exc
    return AccessClaims(user_id=user_id, role=str(role), expires_at=int(payload["exp"]))
