"""Pydantic models for auth domain."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, Field


class Role(str, Enum):
    """Dashboard roles as reported by Syndata."""

    SECRETARIA = "secretaria"
    TECNICO = "tecnico"
    GERENTE = "gerente"

    @property
    def is_office(self) -> bool:
        """Whether the role carries secretary authority (create/edit/cancel/convert)."""
        return self in (Role.SECRETARIA, Role.GERENTE)


class User(BaseModel):
    """An authenticated Syndata user, normalized."""

    id: int
    name: str = ""
    role: Role | None = None
    login: str | None = None

    @property
    def is_secretary(self) -> bool:
        return self.role is not None and self.role.is_office

    @property
    def is_technician(self) -> bool:
        return self.role == Role.TECNICO


class Session(BaseModel):
    """An active dashboard session bound to an upstream Syndata token."""

    token: str = Field(..., description="Dashboard session token (opaque string)")
    upstream_token: str = Field(..., description="Bearer token issued by Syndata")
    user: User
    created_at: datetime
    expires_at: datetime
    last_activity_at: datetime
    upstream_expires_at: datetime | None = Field(None, description="When Syndata stops accepting upstream_token")


class LoginRequest(BaseModel):
    """Credentials forwarded to Syndata /auth/login."""

    usuario: str = Field(..., min_length=1)
    senha: str = Field(..., min_length=1)


class UpstreamLogin(BaseModel):
    """What Syndata answered to a successful login."""

    token: str
    expires_in_seconds: int | None = None
    user: User | None = None


class AuthenticatedUser(BaseModel):
    """User info returned after successful authentication."""

    user: User
    session: Session
