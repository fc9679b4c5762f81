"""Shared test fixtures for connect_auth tests."""

import itertools

import pytest

from connect_auth.auth.mock_auth import MockAuth
from connect_auth.schemas.auth import Subject
from connect_auth.storage.base import MemoryStorage
from connect_auth.storage.channel import BroadcastHub
from connect_auth.storage.session_store import SessionStore
from tests.fakes import FakeProvider


@pytest.fixture
def clock():
    ticks = itertools.count(1_700_000_000_000, 1000)
    return lambda: next(ticks)


@pytest.fixture
def sample_subject():
    return Subject(subject_id="u1", email="a@x.com", display_name="a")


@pytest.fixture
def local_storage():
    return MemoryStorage()


@pytest.fixture
def session_storage():
    return MemoryStorage()


@pytest.fixture
def session_store(session_storage, clock):
    return SessionStore(session_storage, clock=clock)


@pytest.fixture
def hub():
    return BroadcastHub()


@pytest.fixture
def fake_provider():
    return FakeProvider()


@pytest.fixture
def make_mock_auth(local_storage, hub, clock):
    """Build MockAuth instances that share one origin's storage and hub."""

    def _make(context_id: str, **kwargs) -> MockAuth:
        return MockAuth(local_storage, channel=hub.connect(context_id), clock=clock, **kwargs)

    return _make
