from datetime import datetime, timedelta, timezone

import pytest

from mindmate.app import create_app
from mindmate.config import Settings
from mindmate.connection import ConnectionCache, sqlalchemy_connector
from mindmate.store import EntryStore


class StepClock:
    """Returns strictly increasing UTC timestamps, one second apart."""

    def __init__(self, start=None):
        self.current = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        self.current += timedelta(seconds=1)
        return self.current


class FakeGateway:
    def __init__(self, reply="Hello from the fake gateway", error=None):
        self.reply = reply
        self.error = error
        self.calls = []

    def chat(self, message):
        self.calls.append(message)
        if self.error is not None:
            raise self.error
        return self.reply


@pytest.fixture
def settings(tmp_path):
    return Settings(
        database_url=f"sqlite:///{tmp_path / 'mindmate-test.db'}",
        openrouter_api_key="sk-or-test-secret",
        environment="development",
        db_connect_timeout=1,
        db_idle_timeout=30,
        ai_timeout=2,
    )


@pytest.fixture
def cache(settings):
    return ConnectionCache(sqlalchemy_connector(
        settings.database_url,
        connect_timeout=settings.db_connect_timeout,
        idle_timeout=settings.db_idle_timeout,
    ))


@pytest.fixture
def clock():
    return StepClock()


@pytest.fixture
def store(cache, clock):
    return EntryStore(cache, clock=clock)


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def app(settings, cache, store, gateway):
    app = create_app(settings, cache=cache, store=store, gateway=gateway)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()
