"""
auth/models.py -- Domain dataclasses and enums for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Stores and the
manager do the work; these types own the domain shape.

Role and UserStatus are closed str enums so authorization checks compare
against members, never free strings, and serialize to their plain values.

Layer rule: no imports from storage/.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Role(str, Enum):
    admin = "admin"
    supervisor = "supervisor"
    volunteer = "volunteer"


class UserStatus(str, Enum):
    active = "active"
    pending_approval = "pending_approval"
    inactive = "inactive"


# Which roles each caller role may create. Volunteers create nobody.
CREATABLE_ROLES: dict[Role, frozenset[Role]] = {
    Role.admin: frozenset({Role.admin, Role.supervisor, Role.volunteer}),
    Role.supervisor: frozenset({Role.volunteer}),
    Role.volunteer: frozenset(),
}


@dataclass
class SecureUser:
    """A stored user record, secrets included.

    password_hash / password_salt are "" until the invitee completes
    registration; password_set flips to True at the same moment, so the three
    fields always agree.

    registration_token / token_expiry are set while an invite is outstanding
    and cleared together when it is redeemed.

    session_token / session_expiry are overwritten on each successful login.
    logout() does not clear them -- only the process-wide session pointer.
    """

    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    status: UserStatus
    created_at: datetime
    password_hash: str = ""
    password_salt: str = ""
    password_set: bool = False
    login_attempts: int = 0
    locked_until: datetime | None = None
    registration_token: str | None = None
    token_expiry: datetime | None = None
    session_token: str | None = None
    session_expiry: datetime | None = None
    created_by: str | None = None  # id of the inviting admin/supervisor; None for seed users
    last_login: datetime | None = None

    def to_public(self) -> PublicUser:
        return PublicUser(
            id=self.id,
            email=self.email,
            first_name=self.first_name,
            last_name=self.last_name,
            role=self.role,
            status=self.status,
            password_set=self.password_set,
            created_by=self.created_by,
            created_at=self.created_at,
            last_login=self.last_login,
        )


@dataclass(frozen=True)
class PublicUser:
    """The projection handed to callers. Carries no hash, salt or token."""

    id: str
    email: str
    first_name: str
    last_name: str
    role: Role
    status: UserStatus
    password_set: bool
    created_at: datetime
    created_by: str | None = None
    last_login: datetime | None = None


@dataclass(frozen=True)
class Session:
    """The current-session pointer. One per process, not a session table."""

    user_id: str
    token: str
    expiry: datetime


@dataclass(frozen=True)
class LoginAttempt:
    email: str
    timestamp: datetime
    success: bool
    ip: str | None = None  # always None: there is no network layer to supply it


@dataclass(frozen=True)
class CreatedUser:
    """Result of AuthManager.create_user()."""

    user: PublicUser
    registration_link: str


@dataclass(frozen=True)
class PasswordHash:
    """Hex-encoded PBKDF2 output and the hex salt it was derived with."""

    hash: str = field(repr=False)
    salt: str = field(repr=False)
