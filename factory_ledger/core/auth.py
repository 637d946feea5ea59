from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import FrozenSet, Iterable, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from factory_ledger.core.config import settings
from factory_ledger.core.errors import AuthenticationError, PermissionDenied

security = HTTPBearer(auto_error=False)

TRANSACTIONS_READ = "transactions.read"
TRANSACTIONS_WRITE = "transactions.write"
TRANSACTIONS_DELETE = "transactions.delete"
REPORTS_READ = "reports.read"

ADMIN_ROLE = "admin"


@dataclass(frozen=True)
class Principal:
    """Caller identity taken from the bearer token."""
    user_id: str
    role: str = "user"
    permissions: FrozenSet[str] = field(default_factory=frozenset)

    def allows(self, permission: str) -> bool:
        return self.role == ADMIN_ROLE or permission in self.permissions


def create_access_token(
    user_id: str,
    role: str = "user",
    permissions: Iterable[str] = (),
    expires_delta: timedelta | None = None
) -> str:
    """Create JWT access token."""
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    now = datetime.now(timezone.utc)
    expire = now + expires_delta

    payload = {
        "sub": user_id,
        "role": role,
        "permissions": sorted(permissions),
        "exp": int(expire.timestamp()),
        "iat": int(now.timestamp())
    }

    return jwt.encode(payload, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


async def get_current_principal(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Principal:
    """Decode the bearer token into a Principal."""
    if credentials is None:
        raise AuthenticationError("Not authenticated")

    try:
        payload = jwt.decode(
            credentials.credentials,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM]
        )
    except JWTError as e:
        raise AuthenticationError("Invalid token") from e

    user_id = payload.get("sub")
    if user_id is None:
        raise AuthenticationError("Invalid token")

    return Principal(
        user_id=user_id,
        role=payload.get("role") or "user",
        permissions=frozenset(payload.get("permissions") or []),
    )


def require_permission(permission: str):
    """Dependency factory: the caller must hold ``permission`` (or be admin)."""

    async def checker(principal: Principal = Depends(get_current_principal)) -> Principal:
        if not principal.allows(permission):
            raise PermissionDenied(f"Missing permission '{permission}'")
        return principal

    return checker
