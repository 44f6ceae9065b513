import json
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pytest
import requests
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from database.base import Base
import database.models  # noqa: F401
from utils.http_transport import RetryingTransport, RetryPolicy
from utils.shotstack_client import ShotstackClient, ShotstackConfig


def make_response(status_code: int = 200, body=None, reason: str | None = None):
    response = requests.Response()
    response.status_code = status_code
    response.reason = reason or ("OK" if status_code < 400 else "Error")
    response.encoding = "utf-8"
    if body is None:
        response._content = b""
    elif isinstance(body, (dict, list)):
        response._content = json.dumps(body).encode("utf-8")
        response.headers["Content-Type"] = "application/json"
    else:
        response._content = str(body).encode("utf-8")
    return response


class FakeHttpSession:
    """Stands in for requests.Session; replays queued responses or exceptions."""

    def __init__(self, *outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def queue(self, *outcomes):
        self.outcomes.extend(outcomes)

    def request(self, method, url, json=None, headers=None, timeout=None):
        self.calls.append(
            {"method": method, "url": url, "json": json, "headers": headers, "timeout": timeout}
        )
        if not self.outcomes:
            raise AssertionError(f"Unexpected request: {method} {url}")
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


class FakeProber:
    def __init__(self, durations=None, default=5.0):
        self.durations = durations or {}
        self.default = default
        self.calls = []

    def durations_with_fallback(self, urls):
        self.calls.append(list(urls))
        return [self.durations.get(url, self.default) for url in urls]


@pytest.fixture
def db_session():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(engine)
        engine.dispose()


@pytest.fixture
def shotstack_config():
    return ShotstackConfig(
        api_key="test-key",
        environment="sandbox",
        max_retries=3,
        retry_delay=0.5,
        owner_id="owner-1",
        webhook_secret="hook-secret",
    )


@pytest.fixture
def http_session():
    return FakeHttpSession()


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def shotstack_client(shotstack_config, http_session, sleeps):
    transport = RetryingTransport(
        headers=shotstack_config.headers(),
        policy=RetryPolicy(
            max_attempts=shotstack_config.max_retries,
            base_delay=shotstack_config.retry_delay,
        ),
        session=http_session,
        sleep=sleeps.append,
        label="shotstack",
    )
    return ShotstackClient(shotstack_config, transport=transport)


@pytest.fixture
def fake_prober():
    return FakeProber()
