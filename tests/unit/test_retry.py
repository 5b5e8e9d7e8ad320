"""Unit tests for transient-failure classification and exponential backoff."""

import asyncio
from types import SimpleNamespace

import pytest

from sprachheld import retry
from sprachheld.gemini_client import GeminiError
from sprachheld.retry import is_transient, retry_transient


@pytest.fixture
def sleeps(monkeypatch):
    recorded = []

    async def fake_sleep(seconds):
        recorded.append(seconds)

    monkeypatch.setattr(retry, "asyncio", SimpleNamespace(sleep=fake_sleep))
    return recorded


def flaky(*outcomes):
    calls = {"count": 0}
    queue = list(outcomes)

    async def operation():
        calls["count"] += 1
        outcome = queue.pop(0)
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    return operation, calls


class TestIsTransient:
    @pytest.mark.parametrize("status", [500, 502, 503, 504])
    def test_server_status_codes(self, status):
        assert is_transient(GeminiError("boom", status_code=status))

    def test_client_errors_are_not_transient(self):
        assert not is_transient(GeminiError("bad request", status_code=400))
        assert not is_transient(ValueError("Failed to parse JSON"))

    @pytest.mark.parametrize(
        "message",
        ["503 Service Unavailable", "The model is overloaded.", "Internal error encountered", "server error"],
    )
    def test_message_markers(self, message):
        assert is_transient(RuntimeError(message))

    def test_extra_markers(self):
        error = GeminiError("constraint that has too many states", status_code=400)
        assert not is_transient(error)
        assert is_transient(error, ["constraint that has too many states"])


class TestRetryTransient:
    def test_retries_with_exponential_backoff(self, sleeps):
        operation, calls = flaky(
            GeminiError("unavailable", status_code=503),
            RuntimeError("model is overloaded"),
            "ok",
        )
        result = asyncio.run(retry_transient(operation, label="test", max_retries=5, initial_delay_ms=3000))
        assert result == "ok"
        assert calls["count"] == 3
        assert sleeps == [3.0, 6.0]

    def test_non_transient_error_is_raised_immediately(self, sleeps):
        operation, calls = flaky(ValueError("bad output"), "never")
        with pytest.raises(ValueError):
            asyncio.run(retry_transient(operation, label="test", max_retries=5, initial_delay_ms=3000))
        assert calls["count"] == 1
        assert sleeps == []

    def test_gives_up_after_max_retries(self, sleeps):
        errors = [GeminiError(f"503 #{i}", status_code=503) for i in range(5)]
        operation, calls = flaky(*errors)
        with pytest.raises(GeminiError) as info:
            asyncio.run(retry_transient(operation, label="test", max_retries=5, initial_delay_ms=3000))
        assert str(info.value) == "503 #4"
        assert calls["count"] == 5
        assert sleeps == [3.0, 6.0, 12.0, 24.0]

    def test_defaults_come_from_settings(self, sleeps, monkeypatch):
        monkeypatch.setattr(retry.settings, "ai_max_retries", 2)
        monkeypatch.setattr(retry.settings, "ai_initial_retry_delay_ms", 500)
        operation, calls = flaky(GeminiError("x", status_code=503), GeminiError("y", status_code=503))
        with pytest.raises(GeminiError):
            asyncio.run(retry_transient(operation, label="test"))
        assert calls["count"] == 2
        assert sleeps == [0.5]

    def test_rejects_zero_retries(self):
        operation, _ = flaky("ok")
        with pytest.raises(ValueError):
            asyncio.run(retry_transient(operation, label="test", max_retries=0))
