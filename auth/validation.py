"""
auth/validation.py -- Input schemas, validate_input() and sanitize_input().

These Pydantic v2 models define the input contract for the three credential
payloads the dashboard submits: login, user creation and registration
completion. They accept either snake_case keys or the camelCase keys the
dashboard forms send (firstName / lastName).

Every field validator collects ALL the rules its value breaks and raises one
PydanticCustomError whose context carries the list; validate_input() flattens
those lists so callers get one message per violated rule, in field order.

Free-text fields (email, names) pass through sanitize_input() before any
other check. Passwords and tokens are never sanitized -- stripping characters
from a password would silently change the credential.

Layer rule: no imports from storage/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Generic, Optional, TypeVar

from email_validator import EmailNotValidError, validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from auth.models import Role

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

EMAIL_MAX_LENGTH = 255
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8
PASSWORD_MAX_LENGTH = 128
TOKEN_MAX_LENGTH = 128

PASSWORD_SYMBOLS = '!@#$%^&*(),.?":{}|<>'
PASSWORD_ENCODING_MESSAGE = "Password contains invalid characters"

_NAME_RE = re.compile(r"^[a-zA-Z\s'-]+$")
_SYMBOL_RE = re.compile("[" + re.escape(PASSWORD_SYMBOLS) + "]")

_ANGLE_RE = re.compile(r"[<>]")
_JS_SCHEME_RE = re.compile(r"javascript:", re.IGNORECASE)
_EVENT_HANDLER_RE = re.compile(r"on\w+=", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Sanitizer and rule helpers
# ---------------------------------------------------------------------------


def sanitize_input(text: str) -> str:
    """Strip angle brackets, javascript: schemes and on<event>= handlers, then trim."""
    text = _ANGLE_RE.sub("", text)
    text = _JS_SCHEME_RE.sub("", text)
    text = _EVENT_HANDLER_RE.sub("", text)
    return text.strip()


def password_strength_errors(password: str) -> list[str]:
    """Return every strength rule password breaks, or [] if it is acceptable.

    Usable on its own for live feedback while the invitee types.
    """
    errors: list[str] = []
    if len(password) < PASSWORD_MIN_LENGTH:
        errors.append(f"Password must be at least {PASSWORD_MIN_LENGTH} characters long")
    if len(password) > PASSWORD_MAX_LENGTH:
        errors.append("Password is too long")
    if not re.search(r"[A-Z]", password):
        errors.append("Password must contain at least one uppercase letter")
    if not re.search(r"[a-z]", password):
        errors.append("Password must contain at least one lowercase letter")
    if not re.search(r"\d", password):
        errors.append("Password must contain at least one number")
    if not _SYMBOL_RE.search(password):
        errors.append("Password must contain at least one special character")
    if not _is_encodable(password):
        errors.append(PASSWORD_ENCODING_MESSAGE)
    return errors


def _is_encodable(text: str) -> bool:
    # Lone surrogates (e.g. a JSON "\ud800" escape) have no UTF-8 form and cannot be hashed.
    try:
        text.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


def _reject(reasons: list[str]) -> None:
    if reasons:
        raise PydanticCustomError("field_rules", "{summary}", {"summary": "; ".join(reasons), "reasons": reasons})


def _sanitize_if_text(value: Any) -> Any:
    return sanitize_input(value) if isinstance(value, str) else value


def _check_email(value: str) -> str:
    if not value:
        _reject(["Email is required"])
    reasons = []
    if len(value) > EMAIL_MAX_LENGTH:
        reasons.append("Email is too long")
    try:
        validate_email(value, check_deliverability=False)
    except EmailNotValidError:
        reasons.append("Invalid email address")
    _reject(reasons)
    return value


def _check_name(value: str, label: str) -> str:
    if not value:
        _reject([f"{label} is required"])
    reasons = []
    if len(value) > NAME_MAX_LENGTH:
        reasons.append(f"{label} is too long")
    if not _NAME_RE.match(value):
        reasons.append(f"{label} contains invalid characters")
    _reject(reasons)
    return value


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class _InputSchema(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
        frozen=True,
    )


class LoginRequest(_InputSchema):
    email: str = Field(title="Email")
    password: str = Field(title="Password")

    @field_validator("email", mode="before")
    @classmethod
    def sanitize_email(cls, value: Any) -> Any:
        return _sanitize_if_text(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        if not value:
            _reject(["Password is required"])
        reasons = []
        if len(value) > PASSWORD_MAX_LENGTH:
            reasons.append("Password is too long")
        if not _is_encodable(value):
            reasons.append(PASSWORD_ENCODING_MESSAGE)
        _reject(reasons)
        return value


class UserCreate(_InputSchema):
    """Invite payload submitted by an admin or supervisor."""

    email: str = Field(title="Email")
    first_name: str = Field(title="First name")
    last_name: str = Field(title="Last name")
    role: Role = Field(title="Role")

    @field_validator("email", "first_name", "last_name", mode="before")
    @classmethod
    def sanitize_text(cls, value: Any) -> Any:
        return _sanitize_if_text(value)

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return _check_email(value)

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, value: str) -> str:
        return _check_name(value, "First name")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, value: str) -> str:
        return _check_name(value, "Last name")

    @field_validator("role", mode="before")
    @classmethod
    def check_role(cls, value: Any) -> Any:
        if isinstance(value, Role):
            return value
        if not isinstance(value, str) or value not in {r.value for r in Role}:
            _reject(["Invalid role"])
        return value


class RegistrationRequest(_InputSchema):
    """Registration completion: the invite token plus the chosen password.

    first_name / last_name are optional; None (or an empty string) keeps the
    value the inviter entered.
    """

    token: str = Field(title="Registration token")
    password: str = Field(title="Password")
    first_name: Optional[str] = Field(default=None, title="First name")
    last_name: Optional[str] = Field(default=None, title="Last name")

    @field_validator("first_name", "last_name", mode="before")
    @classmethod
    def sanitize_names(cls, value: Any) -> Any:
        value = _sanitize_if_text(value)
        return value or None

    @field_validator("token")
    @classmethod
    def check_token(cls, value: str) -> str:
        if not value:
            _reject(["Registration token is required"])
        if len(value) > TOKEN_MAX_LENGTH:
            _reject(["Invalid token format"])
        return value

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        _reject(password_strength_errors(value))
        return value

    @field_validator("first_name")
    @classmethod
    def check_first_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_name(value, "First name")

    @field_validator("last_name")
    @classmethod
    def check_last_name(cls, value: Optional[str]) -> Optional[str]:
        return None if value is None else _check_name(value, "Last name")


# ---------------------------------------------------------------------------
# validate_input
# ---------------------------------------------------------------------------

SchemaT = TypeVar("SchemaT", bound=BaseModel)


@dataclass
class ValidationResult(Generic[SchemaT]):
    success: bool
    data: Optional[SchemaT] = None
    errors: list[str] = field(default_factory=list)


def _field_title(schema: type[BaseModel], loc: tuple) -> str:
    if not loc:
        return "Input"
    key = loc[0]
    for name, info in schema.model_fields.items():
        if key in (name, info.alias):
            return info.title or name
    return str(key)


def _messages(schema: type[BaseModel], exc: PydanticValidationError) -> list[str]:
    messages: list[str] = []
    for err in exc.errors():
        ctx = err.get("ctx") or {}
        if "reasons" in ctx:
            messages.extend(ctx["reasons"])
        elif err["type"] == "missing":
            messages.append(f"{_field_title(schema, err['loc'])} is required")
        elif err["type"] == "string_type":
            messages.append(f"{_field_title(schema, err['loc'])} must be text")
        else:
            messages.append(err["msg"])
    return messages


def validate_input(schema: type[SchemaT], data: Any) -> ValidationResult[SchemaT]:
    """Validate data against schema. Never raises.

    Returns ValidationResult(success=True, data=<model>) or
    ValidationResult(success=False, errors=[...]) with one message per
    violated rule, in field order.
    """
    try:
        return ValidationResult(success=True, data=schema.model_validate(data))
    except PydanticValidationError as exc:
        return ValidationResult(success=False, errors=_messages(schema, exc))
