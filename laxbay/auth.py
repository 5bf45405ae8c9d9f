# laxbay/auth.py
"""Session authentication.

The signed session cookie is read once per request by `IdentityMiddleware`,
which stores an `Identity` on `request.state`. Routes depend on
`require_user` / `require_admin` and never look at the session directly.
"""
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Request
from passlib.context import CryptContext
from starlette.middleware.base import BaseHTTPMiddleware

from .errors import AuthenticationRequired, PermissionDenied

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, hashed: str) -> bool:
    return pwd_context.verify(password, hashed)


@dataclass(frozen=True)
class Identity:
    user_id: int
    username: str
    role: str = "user"

    @property
    def is_admin(self):
        return self.role == "admin"

    def can_manage(self, owner: str) -> bool:
        return self.is_admin or self.username == owner

    @classmethod
    def from_session(cls, session) -> Optional["Identity"]:
        username = session.get("username") if session else None
        if not username or session.get("user_id") is None:
            return None
        return cls(user_id=session["user_id"], username=username, role=session.get("role") or "user")


def start_session(request: Request, user) -> Identity:
    request.session.clear()
    request.session.update({"user_id": user.id, "username": user.username, "role": user.role or "user"})
    identity = Identity.from_session(request.session)
    request.state.identity = identity
    return identity


def end_session(request: Request) -> None:
    request.session.clear()
    request.state.identity = None


class IdentityMiddleware(BaseHTTPMiddleware):
    """Resolve the caller's identity from the session. Must sit inside SessionMiddleware."""

    async def dispatch(self, request, call_next):
        request.state.identity = Identity.from_session(request.scope.get("session"))
        return await call_next(request)


def current_identity(request: Request) -> Optional[Identity]:
    return getattr(request.state, "identity", None)


def require_user(identity: Optional[Identity] = Depends(current_identity)) -> Identity:
    if identity is None:
        raise AuthenticationRequired()
    return identity


def require_admin(identity: Identity = Depends(require_user)) -> Identity:
    if not identity.is_admin:
        raise PermissionDenied("Admin access required")
    return identity
