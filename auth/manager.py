"""
auth/manager.py -- Login, invites, registration and approval for the dashboard.

AuthManager orchestrates every credential flow. It owns no storage of its own:
users and the current-session pointer live in the injected UserStore, time
comes from the injected Clock, and attempt windows from the RateLimiter.

Account states relevant to login:
  NoPassword       password_set=False (invite outstanding)
  PendingApproval  status=pending_approval
  Active           status=active
  Inactive         status=inactive (terminal unless reactivated out-of-band)
  Locked           transient; locked_until in the future

Login check order (first failure wins):
  validation -> rate limit -> lookup -> locked -> no password
  -> pending approval -> inactive -> password

Security:
  [L1] Unknown email and wrong password raise the same InvalidCredentials and
       both run a full PBKDF2 derivation (burn_verification on the unknown
       path), so neither the message nor the timing reveals whether an
       account exists.
  [L2] Lockout is set when consecutive failures REACH max_login_attempts and
       cleared on the next successful login. It is independent of the rate
       limiter, which counts every attempt per email regardless of outcome.
  [L3] validate_token() returns None for unknown and for expired tokens alike,
       so an invite link cannot be probed for existence.

Known gaps, kept on purpose:
  - Every new user starts pending_approval, including admins created by an
    admin; approve_user() is always required before first login.
  - logout() only clears the session pointer. The record keeps its
    session_token / session_expiry until they expire or the next login
    overwrites them (no revocation list).
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Iterable
from typing import Any

from auth.crypto import (
    burn_verification,
    generate_secure_token,
    generate_session_token,
    hash_password,
    is_expired,
    verify_password,
)
from auth.errors import (
    AccountDeactivated,
    AccountLocked,
    DuplicateEmail,
    Forbidden,
    InvalidCredentials,
    InvalidToken,
    PendingApproval,
    RateLimited,
    RegistrationIncomplete,
    TokenExpired,
    ValidationError,
)
from auth.models import (
    CREATABLE_ROLES,
    CreatedUser,
    LoginAttempt,
    PublicUser,
    Role,
    SecureUser,
    Session,
    UserStatus,
)
from auth.ratelimit import RateLimiter
from auth.store import UserStore
from auth.validation import LoginRequest, RegistrationRequest, UserCreate, validate_input
from core.clock import Clock, utc_now
from core.config import SecurityPolicy, get_settings
from storage.kv import KeyValueStore, SQLKeyValueStore

logger = logging.getLogger("campaignauth.auth")


class AuthManager:
    """Credential and session manager for one process.

    Usage:
        auth = AuthManager.from_settings()          # SQL store on Settings.kv_db_url
        user = auth.login("admin@campaign.com", password)
        created = auth.create_user({"email": ..., "firstName": ..., "lastName": ..., "role": "volunteer"})
        auth.logout()
    """

    def __init__(
        self,
        store: UserStore,
        *,
        policy: SecurityPolicy | None = None,
        clock: Clock = utc_now,
        rate_limiter: RateLimiter | None = None,
        app_base_url: str | None = None,
    ) -> None:
        settings = get_settings()
        self.store = store
        self.policy = policy or settings.security_policy()
        self._clock = clock
        self.rate_limiter = rate_limiter or RateLimiter(clock)
        self.app_base_url = (app_base_url if app_base_url is not None else settings.app_base_url).rstrip("/")
        # Audit trail of every login attempt. In-memory only; not exposed beyond this attribute.
        self.login_attempts: list[LoginAttempt] = []

    @classmethod
    def from_settings(cls, kv: KeyValueStore | None = None, *, clock: Clock = utc_now) -> AuthManager:
        """Build a manager entirely from Settings.

        kv defaults to a SQLKeyValueStore on Settings.kv_db_url; the store uses
        the configured users/session keys and seed password.
        """
        settings = get_settings()
        if kv is None:
            kv = SQLKeyValueStore(settings.kv_db_url)
        return cls(
            UserStore.from_settings(kv),
            policy=settings.security_policy(),
            clock=clock,
            app_base_url=settings.app_base_url,
        )

    # ------------------------------------------------------------------
    # Session
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> PublicUser:
        """Authenticate and open the process-wide session. Returns the user projection."""
        result = validate_input(LoginRequest, {"email": email, "password": password})
        if not result.success:
            raise ValidationError(result.errors)
        email = result.data.email

        rate_key = f"login_{email.casefold()}"
        if not self.rate_limiter.check(
            rate_key, self.policy.login_rate_limit_attempts, self.policy.login_rate_limit_window
        ):
            self._record_attempt(email, success=False)
            minutes = max(1, math.ceil(self.rate_limiter.retry_after(rate_key).total_seconds() / 60))
            unit = "minute" if minutes == 1 else "minutes"
            raise RateLimited(f"Too many login attempts. Please try again in {minutes} {unit}.")

        user = self.store.get_by_email(email)
        if user is None:
            burn_verification(password)  # [L1]
            self._record_attempt(email, success=False)
            logger.info("Login failed for %s: unknown email", email)
            raise InvalidCredentials()

        now = self._clock()
        if user.locked_until is not None and now < user.locked_until:
            self._record_attempt(email, success=False)
            raise AccountLocked()
        if not user.password_set:
            self._record_attempt(email, success=False)
            raise RegistrationIncomplete()
        if user.status == UserStatus.pending_approval:
            self._record_attempt(email, success=False)
            raise PendingApproval()
        if user.status == UserStatus.inactive:
            self._record_attempt(email, success=False)
            raise AccountDeactivated()

        if not verify_password(password, user.password_hash, user.password_salt):
            user.login_attempts += 1
            if user.login_attempts >= self.policy.max_login_attempts:  # [L2]
                user.locked_until = now + self.policy.lockout_duration
                logger.warning("Account %s locked until %s", user.email, user.locked_until.isoformat())
            self.store.update(user)
            self._record_attempt(email, success=False)
            logger.info("Login failed for %s: wrong password (%d consecutive)", email, user.login_attempts)
            raise InvalidCredentials()

        user.login_attempts = 0
        user.locked_until = None
        user.last_login = now
        user.session_token = generate_session_token()
        user.session_expiry = now + self.policy.session_expiry
        self.store.update(user)
        self.store.save_session(Session(user_id=user.id, token=user.session_token, expiry=user.session_expiry))
        self._record_attempt(email, success=True)
        logger.info("Login succeeded for %s", user.email)
        return user.to_public()

    def logout(self) -> None:
        """Clear the current-session pointer. The record's session token is left in place."""
        self.store.clear_session()

    def current_user(self) -> PublicUser | None:
        """Resolve the persisted session pointer to its user, or None.

        A pointer is dropped (and None returned) when its user no longer
        exists, the record's session token has since been replaced, the user
        is no longer active, or the session has expired.
        """
        user = self._session_user()
        return user.to_public() if user is not None else None

    def has_role(self, role: Role) -> bool:
        user = self._session_user()
        return user is not None and user.role == role

    def has_any_role(self, roles: Iterable[Role]) -> bool:
        user = self._session_user()
        return user is not None and user.role in set(roles)

    def _session_user(self) -> SecureUser | None:
        session = self.store.load_session()
        if session is None:
            return None
        user = self.store.get_by_id(session.user_id)
        if (
            user is None
            or user.session_token != session.token
            or user.status != UserStatus.active
            or is_expired(session.expiry, self._clock())
        ):
            self.store.clear_session()
            return None
        return user

    def _require_caller(self) -> SecureUser:
        caller = self._session_user()
        if caller is None:
            raise Forbidden("Authentication required.")
        return caller

    def _record_attempt(self, email: str, *, success: bool) -> None:
        self.login_attempts.append(LoginAttempt(email=email, timestamp=self._clock(), success=success))

    # ------------------------------------------------------------------
    # Invites and registration
    # ------------------------------------------------------------------

    def create_user(self, data: dict[str, Any] | UserCreate) -> CreatedUser:
        """Invite a new user on behalf of the logged-in admin or supervisor.

        The record starts pending_approval with no password and a fresh
        registration token; the returned link embeds that token verbatim.
        """
        caller = self._require_caller()
        if not CREATABLE_ROLES[caller.role]:
            raise Forbidden("Volunteers cannot create users.")

        result = validate_input(UserCreate, data)
        if not result.success:
            raise ValidationError(result.errors)
        payload = result.data

        if payload.role not in CREATABLE_ROLES[caller.role]:
            raise Forbidden("Supervisors can only create volunteer accounts.")
        if self.store.get_by_email(payload.email) is not None:
            raise DuplicateEmail()

        now = self._clock()
        token = generate_secure_token()
        user = SecureUser(
            id=uuid.uuid4().hex,
            email=payload.email,
            first_name=payload.first_name,
            last_name=payload.last_name,
            role=payload.role,
            status=UserStatus.pending_approval,
            created_at=now,
            registration_token=token,
            token_expiry=now + self.policy.token_expiry,
            created_by=caller.id,
        )
        self.store.insert(user)
        logger.info("User %s (%s) invited by %s", user.email, user.role.value, caller.email)
        return CreatedUser(user=user.to_public(), registration_link=self.registration_link(token))

    def registration_link(self, token: str) -> str:
        return f"{self.app_base_url}/register/{token}"

    def validate_token(self, token: str) -> PublicUser | None:
        """Return the invitee for an outstanding, unexpired token; otherwise None. [L3]"""
        user = self.store.get_by_registration_token(token)
        if user is None or is_expired(user.token_expiry, self._clock()):
            return None
        return user.to_public()

    def complete_registration(self, data: dict[str, Any] | RegistrationRequest) -> None:
        """Redeem an invite: set the password and optionally correct the names.

        Status is NOT changed -- a pending_approval user still needs
        approve_user() before they can log in.
        """
        result = validate_input(RegistrationRequest, data)
        if not result.success:
            raise ValidationError(result.errors)
        payload = result.data

        user = self.store.get_by_registration_token(payload.token)
        if user is None:
            raise InvalidToken()
        if is_expired(user.token_expiry, self._clock()):
            raise TokenExpired()

        hashed = hash_password(payload.password)
        user.password_hash = hashed.hash
        user.password_salt = hashed.salt
        user.password_set = True
        user.registration_token = None
        user.token_expiry = None
        if payload.first_name:
            user.first_name = payload.first_name
        if payload.last_name:
            user.last_name = payload.last_name
        self.store.update(user)
        logger.info("Registration completed for %s", user.email)

    # ------------------------------------------------------------------
    # Approval (admin only)
    # ------------------------------------------------------------------

    def _require_admin(self) -> SecureUser:
        caller = self._require_caller()
        if caller.role != Role.admin:
            raise Forbidden("Admin access required.")
        return caller

    def approve_user(self, user_id: str) -> None:
        """Activate a user. Idempotent; an unknown id is a no-op."""
        caller = self._require_admin()
        user = self.store.get_by_id(user_id)
        if user is None or user.status == UserStatus.active:
            return
        user.status = UserStatus.active
        self.store.update(user)
        logger.info("User %s approved by %s", user.email, caller.email)

    def reject_user(self, user_id: str) -> None:
        """Hard-delete a user. Idempotent; an already-absent id is a no-op."""
        caller = self._require_admin()
        if self.store.delete(user_id):
            logger.info("User %s rejected and removed by %s", user_id, caller.email)

    # ------------------------------------------------------------------
    # Read-only projections
    # ------------------------------------------------------------------

    def get_all_users(self) -> list[PublicUser]:
        return [u.to_public() for u in self.store.all()]

    def get_pending_users(self) -> list[PublicUser]:
        return [u.to_public() for u in self.store.filter_by_status(UserStatus.pending_approval)]
