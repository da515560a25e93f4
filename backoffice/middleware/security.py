from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional

import jwt
from fastapi import Header, HTTPException, status

from backoffice.config.settings import settings
from backoffice.core.exceptions.exceptions import AuthorizationError
from backoffice.utils.log import app_logger

ROLES = ("admin", "user", "organizer", "artist")


@dataclass
class Principal:
    uid: str
    role: str
    claims: Dict[str, Any] = field(default_factory=dict)


class Security:
    """Bearer token checks.

    Tokens are issued by the identity provider; this class only verifies the
    signature and expiry with PyJWT and reads the role claim. The role may sit
    at the top level of the claims or under ``customClaims``.
    """

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None,
                 role_claim: Optional[str] = None):
        self.secret = secret if secret is not None else settings.AUTH_JWT_SECRET
        self.algorithm = algorithm or settings.AUTH_JWT_ALGORITHM
        self.role_claim = role_claim or settings.AUTH_ROLE_CLAIM

    @staticmethod
    def extract_token(authorization: Optional[str]) -> str:
        if not authorization or not authorization.startswith("Bearer "):
            raise AuthorizationError("Invalid authorization header format")
        token = authorization[len("Bearer "):].strip()
        if not token:
            raise AuthorizationError("Missing bearer token")
        return token

    def verify(self, authorization: Optional[str]) -> Principal:
        token = self.extract_token(authorization)
        if not self.secret:
            raise AuthorizationError("Token verification is not configured")
        try:
            claims = jwt.decode(token, self.secret, algorithms=[self.algorithm])
        except jwt.ExpiredSignatureError:
            raise AuthorizationError("Token expired")
        except jwt.InvalidTokenError as e:
            app_logger.debug("security.invalid_token", error=str(e))
            raise AuthorizationError("Invalid token")

        role = claims.get(self.role_claim) or (claims.get("customClaims") or {}).get(self.role_claim)
        if role not in ROLES:
            raise AuthorizationError("Missing or unknown role", status_code=status.HTTP_403_FORBIDDEN)
        return Principal(uid=str(claims.get("sub") or claims.get("uid") or ""), role=role, claims=claims)


def require_roles(*roles: str) -> Callable[..., Principal]:
    """FastAPI dependency accepting any valid token whose role is in `roles` (any role if empty)."""

    def dependency(authorization: Optional[str] = Header(default=None)) -> Principal:
        try:
            principal = Security().verify(authorization)
        except AuthorizationError as e:
            raise HTTPException(status_code=e.status_code, detail=e.message)
        if roles and principal.role not in roles:
            app_logger.warning("security.forbidden", uid=principal.uid, role=principal.role)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Access forbidden")
        return principal

    return dependency


# route dependencies
any_role = require_roles()
admin_only = require_roles("admin")
cache_writers = require_roles("admin", "organizer")
