"""Resolution of the calling principal for FastAPI endpoints.

Identity is owned by the account service; this module only verifies the
access JWT it issues and exposes the caller as a ``Principal``. In development
the ``X-User-Id``/``X-User-Role`` headers are accepted instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional
from uuid import UUID

from fastapi import Depends, Header, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jwt import InvalidTokenError

from gatherly.infra import jwt as jwt_helper
from gatherly.settings import settings

ROLE_USER = "USER"
ROLE_HOST = "HOST"
ROLE_ADMIN = "ADMIN"
ROLES = frozenset({ROLE_USER, ROLE_HOST, ROLE_ADMIN})


@dataclass(frozen=True, slots=True)
class Principal:
	id: UUID
	role: str = ROLE_USER

	@property
	def is_admin(self) -> bool:
		return self.role == ROLE_ADMIN

	def has_role(self, *roles: str) -> bool:
		return self.role in roles


_bearer_scheme = HTTPBearer(auto_error=False)


def _normalise_role(raw: object) -> str:
	role = str(raw or "").strip().upper()
	if role.startswith("ROLE_"):
		role = role[len("ROLE_"):]
	if role not in ROLES:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return role


def verify_access_jwt(token: str) -> Principal:
	"""Decode and validate an access JWT and return the caller."""
	try:
		claims = jwt_helper.decode_access(token)
	except InvalidTokenError:
		raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
	return Principal(id=claims.user_id, role=_normalise_role(claims.role))


async def get_current_principal(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Principal:
	if credentials and credentials.scheme.lower() == "bearer":
		return verify_access_jwt(credentials.credentials)

	if settings.is_dev() and x_user_id:
		try:
			user_id = UUID(x_user_id)
		except ValueError:
			raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")
		return Principal(id=user_id, role=_normalise_role(x_user_role or ROLE_USER))

	raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="invalid_token")


async def get_optional_principal(
	x_user_id: Optional[str] = Header(default=None, alias="X-User-Id"),
	x_user_role: Optional[str] = Header(default=None, alias="X-User-Role"),
	credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> Optional[Principal]:
	if credentials is None and not x_user_id:
		return None
	return await get_current_principal(x_user_id, x_user_role, credentials)


def require_roles(*required: str):
	"""Return a dependency that enforces the presence of any of the given roles.

	Usage:
		@router.patch("/events/{id}/accept", dependencies=[Depends(require_roles("ADMIN"))])
	"""
	required_set = {str(r).strip().upper() for r in required if str(r).strip()}

	async def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
		if not required_set or principal.role in required_set:
			return principal
		raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="insufficient_role")

	return _dep
