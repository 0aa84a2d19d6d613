"""
tests/conftest.py -- Shared fixtures for the auth core tests.

This module provides:
  - ManualClock: an injectable clock the tests advance by hand
  - kv / store: an in-memory key-value slot and the UserStore built on it
  - auth: an AuthManager wired to the manual clock
  - admin_auth / supervisor_auth / volunteer_auth: the same manager with a
    seed account already logged in

Seed accounts (fixed ids, all active, password SEED_PASSWORD):
  "1" admin@campaign.com, "2" supervisor@campaign.com, "3" volunteer@campaign.com

Settings are read from the environment on first import of any auth module,
so DEBUG and the seed password must be set before those imports.
"""

from __future__ import annotations

import os
from datetime import datetime, timedelta, timezone

# CRITICAL: set before any auth/core import so get_settings() does not refuse
# to start for lack of a production seed password.
os.environ.setdefault("CAMPAIGN_AUTH_DEBUG", "true")
os.environ.setdefault("CAMPAIGN_AUTH_SEED_PASSWORD", "Seed-Pass1!")

import pytest

from auth.manager import AuthManager
from auth.store import UserStore
from core.config import SecurityPolicy
from storage.kv import MemoryKeyValueStore

SEED_PASSWORD = "Seed-Pass1!"
ADMIN_EMAIL = "admin@campaign.com"
SUPERVISOR_EMAIL = "supervisor@campaign.com"
VOLUNTEER_EMAIL = "volunteer@campaign.com"
BASE_URL = "https://dash.campaign.org"


class ManualClock:
    """Clock that only moves when a test calls advance()."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def kv() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def store(kv: MemoryKeyValueStore) -> UserStore:
    return UserStore(kv, seed_password=SEED_PASSWORD)


@pytest.fixture
def policy() -> SecurityPolicy:
    return SecurityPolicy()


@pytest.fixture
def auth(store: UserStore, clock: ManualClock, policy: SecurityPolicy) -> AuthManager:
    return AuthManager(store, policy=policy, clock=clock, app_base_url=BASE_URL)


@pytest.fixture
def admin_auth(auth: AuthManager) -> AuthManager:
    auth.login(ADMIN_EMAIL, SEED_PASSWORD)
    return auth


@pytest.fixture
def supervisor_auth(auth: AuthManager) -> AuthManager:
    auth.login(SUPERVISOR_EMAIL, SEED_PASSWORD)
    return auth


@pytest.fixture
def volunteer_auth(auth: AuthManager) -> AuthManager:
    auth.login(VOLUNTEER_EMAIL, SEED_PASSWORD)
    return auth


def token_from_link(link: str) -> str:
    """The registration token is the last path segment of the link."""
    return link.rsplit("/", 1)[1]
