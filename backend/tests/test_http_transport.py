import pytest
import requests

from conftest import FakeHttpSession, make_response
from utils.http_transport import RetryingTransport, RetryPolicy, TransportError


URL = "https://api.example.com/render"


def _transport(session, sleeps, max_attempts=3, base_delay=1.0, debug=False):
    return RetryingTransport(
        headers={"x-api-key": "secret"},
        policy=RetryPolicy(max_attempts=max_attempts, base_delay=base_delay),
        session=session,
        sleep=sleeps.append,
        debug=debug,
    )


class TestRetryPolicy:
    def test_exponential_delays(self):
        policy = RetryPolicy(base_delay=2.0)
        assert [policy.delay_for(n) for n in (1, 2, 3)] == [2.0, 4.0, 8.0]


class TestRetryingTransport:
    def test_success_first_try(self):
        session = FakeHttpSession(make_response(200, {"ok": True}))
        sleeps = []

        response = _transport(session, sleeps).post(URL, {"a": 1})

        assert response.json() == {"ok": True}
        assert len(session.calls) == 1
        assert session.calls[0]["json"] == {"a": 1}
        assert session.calls[0]["headers"]["x-api-key"] == "secret"
        assert sleeps == []

    def test_always_503_makes_exactly_max_attempts(self):
        session = FakeHttpSession(*[make_response(503, {"message": "busy"}) for _ in range(5)])
        sleeps = []

        with pytest.raises(TransportError) as exc:
            _transport(session, sleeps, max_attempts=3).post(URL, {})

        assert len(session.calls) == 3
        assert exc.value.status_code == 503
        assert exc.value.attempts == 3
        assert exc.value.retryable
        assert "busy" in exc.value.message
        assert sleeps == [1.0, 2.0]

    def test_client_error_not_retried(self):
        session = FakeHttpSession(make_response(400, {"message": "bad edit"}))
        sleeps = []

        with pytest.raises(TransportError) as exc:
            _transport(session, sleeps).post(URL, {})

        assert len(session.calls) == 1
        assert exc.value.status_code == 400
        assert not exc.value.retryable
        assert sleeps == []

    def test_rate_limit_is_retried(self):
        session = FakeHttpSession(
            make_response(429, "slow down"),
            make_response(200, {"ok": True}),
        )
        sleeps = []

        response = _transport(session, sleeps).get(URL)

        assert response.status_code == 200
        assert len(session.calls) == 2
        assert sleeps == [1.0]

    def test_network_errors_are_retried(self):
        session = FakeHttpSession(
            requests.ConnectionError("reset"),
            requests.Timeout("slow"),
            make_response(200, {"ok": True}),
        )
        sleeps = []

        response = _transport(session, sleeps).get(URL)

        assert response.ok
        assert len(session.calls) == 3

    def test_network_errors_exhaust_attempts(self):
        session = FakeHttpSession(*[requests.ConnectionError("down") for _ in range(2)])
        sleeps = []

        with pytest.raises(TransportError) as exc:
            _transport(session, sleeps, max_attempts=2).get(URL)

        assert exc.value.status_code is None
        assert exc.value.retryable
        assert len(session.calls) == 2

    def test_debug_logging_never_includes_headers(self, caplog):
        session = FakeHttpSession(make_response(200, {"ok": True}))

        with caplog.at_level("DEBUG", logger="utils.http_transport"):
            _transport(session, [], debug=True).get(URL)

        assert URL in caplog.text
        assert "secret" not in caplog.text
