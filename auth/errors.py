"""
auth/errors.py -- The failure taxonomy of the auth core.

Every public AuthManager operation either returns or raises exactly one of the
AuthError subclasses below. Callers surface `message` to the user and may
switch on `code`, which is stable across releases.

InvalidCredentials deliberately covers both "unknown email" and "wrong
password" so the two cases are indistinguishable to the caller.
"""

from __future__ import annotations


class AuthError(Exception):
    code: str = "auth_error"
    default_message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> dict:
        """Machine-readable payload, shaped like the {"code", "message"} error envelope."""
        return {"code": self.code, "message": self.message}


class ValidationError(AuthError):
    """Input failed schema validation. `errors` lists every violated rule in field order."""

    code = "validation_error"
    default_message = "Validation failed."

    def __init__(self, errors: list[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) if self.errors else None)

    def to_dict(self) -> dict:
        payload = super().to_dict()
        payload["errors"] = list(self.errors)
        return payload


class InvalidCredentials(AuthError):
    code = "invalid_credentials"
    default_message = "Invalid email or password."


class AccountLocked(AuthError):
    code = "account_locked"
    default_message = "Account is temporarily locked due to too many failed login attempts."


class RegistrationIncomplete(AuthError):
    code = "registration_incomplete"
    default_message = "Please complete your registration first."


class PendingApproval(AuthError):
    code = "pending_approval"
    default_message = "Your account is pending approval."


class AccountDeactivated(AuthError):
    code = "account_deactivated"
    default_message = "Your account has been deactivated."


class RateLimited(AuthError):
    code = "rate_limited"
    default_message = "Too many login attempts. Please try again later."


class Forbidden(AuthError):
    code = "forbidden"
    default_message = "You do not have permission to perform this action."


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    default_message = "A user with this email already exists."


class InvalidToken(AuthError):
    code = "invalid_token"
    default_message = "Invalid registration token."


class TokenExpired(AuthError):
    code = "token_expired"
    default_message = "Registration token has expired."
