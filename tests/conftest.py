"""
Shared fixtures: settings built from explicit values, a frozen clock, the
in-memory repositories and a fully wired ServiceContainer on top of them.
"""

import os

import pytest

from config import (
    AppSettings,
    DatabaseSettings,
    HashingSettings,
    JWTSettings,
    SessionSettings,
)
from services.container import build_container
from shared.crypto import CredentialHasher
from tests.fakes import (
    TEST_JWT_SECRET,
    FrozenClock,
    RecordingEmailProvider,
    fake_repositories,
)

# Ensure a MONGODB_URI is present so AppSettings can be instantiated
os.environ.setdefault("MONGODB_URI", "mongodb://localhost:27017/")


@pytest.fixture
def settings() -> AppSettings:
    return AppSettings(
        db=DatabaseSettings(mongodb_uri="mongodb://localhost:27017/"),
        jwt=JWTSettings(jwt_secret=TEST_JWT_SECRET, jwt_private_key="", jwt_public_key=""),
        session=SessionSettings(cookie_secure=False, single_session=False),
        hashing=HashingSettings(password_min_length=6),
    )


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock()


@pytest.fixture
def fast_hasher() -> CredentialHasher:
    return CredentialHasher(time_cost=1, memory_cost=8, parallelism=1)


@pytest.fixture
def repos():
    return fake_repositories()


@pytest.fixture
def email() -> RecordingEmailProvider:
    return RecordingEmailProvider()


@pytest.fixture
def container(settings, repos, email, fast_hasher, clock):
    return build_container(
        settings, None, email, repos=repos, hasher=fast_hasher, clock=clock
    )
