from dataclasses import dataclass
from typing import Optional

import bcrypt
from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from core.exceptions import AuthenticationError
from core.roles import UserRole
from .jwt_handler import verify_token

# Security scheme for JWT
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthenticatedUser:
    """The one identity shape every authenticated handler receives."""

    user_id: str
    role: UserRole
    payload: dict

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.admin


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt()
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


def _identity_from_token(token: str) -> Optional[AuthenticatedUser]:
    payload = verify_token(token)
    if payload is None or payload.get("type") != "access":
        return None

    user_id = payload.get("sub")
    role = payload.get("role")
    if not user_id or role not in UserRole.list():
        return None

    return AuthenticatedUser(user_id=user_id, role=UserRole(role), payload=payload)


def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> AuthenticatedUser:
    """
    Dependency to get current authenticated user from JWT token.

    Args:
        credentials: JWT token from Authorization header

    Returns:
        The canonical authenticated identity (user id + role)

    Raises:
        AuthenticationError: If the token is missing, invalid or expired
    """
    if credentials is None:
        raise AuthenticationError("No token, authorization denied")

    identity = _identity_from_token(credentials.credentials)
    if identity is None:
        raise AuthenticationError("Invalid or expired token")
    return identity
