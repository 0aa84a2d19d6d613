"""
auth/store.py -- In-memory user collection persisted through a key-value slot.

Pattern: Repository + Data Mapper. UserStore is the repository; the pydantic
TypeAdapters below are the mappers between SecureUser / Session dataclasses
and their JSON text. Manager code never touches serialized data directly.

Persistence contract:
  Every mutation (insert, update, delete, replace_all) serializes the WHOLE
  collection and writes it under users_key before returning. There is no
  separate commit step, so reads after writes always observe the writes.

  On construction the collection is rehydrated from users_key. No data means
  a fresh install; data that fails to parse means corruption. Both fall back
  to the deterministic seed set (three demo accounts with fixed ids).

  Backend write errors propagate to the caller unchanged.

Uniqueness:
  id and email (case-insensitive) are unique across the collection; an
  outstanding registration_token is unique across outstanding invites.

Layer rule: storage/ is reached only through the KeyValueStore protocol.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from auth.crypto import hash_password
from auth.errors import DuplicateEmail
from auth.models import Role, SecureUser, Session, UserStatus
from core.config import Settings, get_settings
from storage.kv import KeyValueStore

logger = logging.getLogger("campaignauth.auth.store")

DEFAULT_USERS_KEY: str = Settings.model_fields["users_key"].default
DEFAULT_SESSION_KEY: str = Settings.model_fields["session_key"].default

_users_adapter = TypeAdapter(list[SecureUser])
_session_adapter = TypeAdapter(Session)

# (id, email, first_name, last_name, role, created_at)
_SEED_ACCOUNTS = (
    ("1", "admin@campaign.com", "John", "Admin", Role.admin, datetime(2024, 1, 1, tzinfo=timezone.utc)),
    ("2", "supervisor@campaign.com", "Sarah", "Supervisor", Role.supervisor, datetime(2024, 1, 15, tzinfo=timezone.utc)),
    ("3", "volunteer@campaign.com", "Mike", "Volunteer", Role.volunteer, datetime(2024, 2, 1, tzinfo=timezone.utc)),
)


def seed_users(seed_password: str) -> list[SecureUser]:
    """Build the seed set: one active account per role, all sharing seed_password."""
    users = []
    for user_id, email, first_name, last_name, role, created_at in _SEED_ACCOUNTS:
        hashed = hash_password(seed_password)
        users.append(
            SecureUser(
                id=user_id,
                email=email,
                first_name=first_name,
                last_name=last_name,
                role=role,
                status=UserStatus.active,
                created_at=created_at,
                password_hash=hashed.hash,
                password_salt=hashed.salt,
                password_set=True,
            )
        )
    return users


def _email_key(email: str) -> str:
    return email.strip().casefold()


def _check_unique(users: list[SecureUser]) -> None:
    ids: set[str] = set()
    emails: set[str] = set()
    tokens: set[str] = set()
    for user in users:
        if user.id in ids:
            raise ValueError(f"Duplicate user id {user.id!r}")
        if _email_key(user.email) in emails:
            raise DuplicateEmail()
        if user.registration_token is not None:
            if user.registration_token in tokens:
                raise ValueError("Duplicate registration token")
            tokens.add(user.registration_token)
        ids.add(user.id)
        emails.add(_email_key(user.email))


class UserStore:
    """Repository for SecureUser records and the current-session pointer.

    Usage:
        store = UserStore(MemoryKeyValueStore())
        user = store.get_by_email("Admin@Campaign.com")
        user.login_attempts += 1
        store.update(user)            # persists the whole collection
    """

    def __init__(
        self,
        kv: KeyValueStore,
        *,
        users_key: str = DEFAULT_USERS_KEY,
        session_key: str = DEFAULT_SESSION_KEY,
        seed_password: str | None = None,
    ) -> None:
        self._kv = kv
        self.users_key = users_key
        self.session_key = session_key
        self._seed_password = seed_password if seed_password is not None else get_settings().seed_password
        self._users: list[SecureUser] = self._load()

    @classmethod
    def from_settings(cls, kv: KeyValueStore) -> UserStore:
        settings = get_settings()
        return cls(
            kv,
            users_key=settings.users_key,
            session_key=settings.session_key,
            seed_password=settings.seed_password,
        )

    def _load(self) -> list[SecureUser]:
        raw = self._kv.read(self.users_key)
        if raw is None:
            logger.info("No stored users under %r -- starting from the seed set", self.users_key)
            return seed_users(self._seed_password)
        try:
            users = _users_adapter.validate_json(raw)
            _check_unique(users)
        except (PydanticValidationError, ValueError, DuplicateEmail):
            logger.warning("Stored users under %r are corrupt -- falling back to the seed set", self.users_key)
            return seed_users(self._seed_password)
        return users

    def _flush(self) -> None:
        self._kv.write(self.users_key, _users_adapter.dump_json(self._users).decode("utf-8"))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def all(self) -> list[SecureUser]:
        return list(self._users)

    def get_by_id(self, user_id: str) -> SecureUser | None:
        return next((u for u in self._users if u.id == user_id), None)

    def get_by_email(self, email: str) -> SecureUser | None:
        """Case-insensitive lookup. Returns None if not found."""
        key = _email_key(email)
        return next((u for u in self._users if _email_key(u.email) == key), None)

    def get_by_registration_token(self, token: str) -> SecureUser | None:
        if not token:
            return None
        return next((u for u in self._users if u.registration_token == token), None)

    def filter_by_status(self, status: UserStatus) -> list[SecureUser]:
        return [u for u in self._users if u.status == status]

    # ------------------------------------------------------------------
    # Mutations -- each one flushes the whole collection
    # ------------------------------------------------------------------

    def insert(self, user: SecureUser) -> None:
        """Add a new record. Raises DuplicateEmail if the email is taken (any case)."""
        _check_unique(self._users + [user])
        self._users.append(user)
        self._flush()

    def update(self, user: SecureUser) -> None:
        """Persist a record that was mutated in place (or replace it by id).

        Raises KeyError if no record with user.id exists.
        """
        for index, existing in enumerate(self._users):
            if existing.id == user.id:
                self._users[index] = user
                self._flush()
                return
        raise KeyError(user.id)

    def delete(self, user_id: str) -> bool:
        """Remove a record. Returns True if deleted, False if it was already absent."""
        remaining = [u for u in self._users if u.id != user_id]
        if len(remaining) == len(self._users):
            return False
        self._users = remaining
        self._flush()
        return True

    def replace_all(self, users: list[SecureUser]) -> None:
        """Swap in a whole collection (import / restore). Uniqueness is re-checked first."""
        users = list(users)
        _check_unique(users)
        self._users = users
        self._flush()

    # ------------------------------------------------------------------
    # Current-session pointer
    # ------------------------------------------------------------------

    def load_session(self) -> Session | None:
        """Return the persisted session pointer, or None if absent or unreadable."""
        raw = self._kv.read(self.session_key)
        if raw is None:
            return None
        try:
            return _session_adapter.validate_json(raw)
        except PydanticValidationError:
            logger.warning("Stored session under %r is corrupt -- ignoring it", self.session_key)
            return None

    def save_session(self, session: Session) -> None:
        self._kv.write(self.session_key, _session_adapter.dump_json(session).decode("utf-8"))

    def clear_session(self) -> None:
        self._kv.delete(self.session_key)
