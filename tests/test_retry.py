"""Tests for the retry/backoff engine (fake timer, no real sleeps)."""

import httpx
import pytest

from conftest import FakeSleep
from studymate.ai.errors import (
    ConfigError,
    HTTPStatusError,
    ParseError,
    TransportError,
    normalize_error,
)
from studymate.ai.retry import backoff_delay, is_rate_limited, with_retry


def _transport_error() -> TransportError:
    return TransportError(normalize_error(httpx.ConnectError("offline"), {"purpose": "test"}))


def _status_error(status: int, retry_after: float | None = None, message: str | None = None) -> HTTPStatusError:
    body = {"error": {"message": message}} if message else {}
    return HTTPStatusError(normalize_error(body, {"status": status}), retry_after=retry_after)


class Flaky:
    """Operation that raises the scripted errors, then returns ``result``."""

    def __init__(self, errors, result="ok"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    async def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


class AlwaysFails:
    def __init__(self, factory):
        self.factory = factory
        self.calls = 0
        self.raised = []

    async def __call__(self):
        self.calls += 1
        exc = self.factory()
        self.raised.append(exc)
        raise exc


class TestBackoff:
    def test_exponential_and_capped(self):
        assert [backoff_delay(i, 1.0, 10.0) for i in range(6)] == [1.0, 2.0, 4.0, 8.0, 10.0, 10.0]

    def test_rate_limit_detection(self):
        assert is_rate_limited(_status_error(429))
        assert not is_rate_limited(_status_error(503))
        assert is_rate_limited(_status_error(503, message="Rate limit exceeded upstream"))
        assert is_rate_limited(RuntimeError("Rate limit reached for requests"))
        assert not is_rate_limited(RuntimeError("socket closed"))


class TestWithRetry:
    @pytest.mark.asyncio
    async def test_success_first_try(self):
        sleep = FakeSleep()
        op = Flaky([])
        assert await with_retry(op, 3, sleep=sleep) == "ok"
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_recovers_after_transient_errors(self):
        sleep = FakeSleep()
        op = Flaky([_transport_error(), _status_error(503)])
        assert await with_retry(op, 3, base_delay=1.0, max_delay=10.0, sleep=sleep) == "ok"
        assert op.calls == 3
        assert sleep.delays == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_exhausts_after_max_retries_plus_one_calls(self):
        sleep = FakeSleep()
        op = AlwaysFails(_transport_error)
        with pytest.raises(TransportError) as info:
            await with_retry(op, 3, base_delay=1.0, max_delay=10.0, sleep=sleep)
        assert op.calls == 4
        assert sleep.delays == [1.0, 2.0, 4.0]
        # Last error re-raised unchanged.
        assert info.value is op.raised[-1]

    @pytest.mark.asyncio
    async def test_generic_exception_is_retried(self):
        sleep = FakeSleep()
        op = AlwaysFails(lambda: RuntimeError("socket closed"))
        with pytest.raises(RuntimeError):
            await with_retry(op, 2, sleep=sleep)
        assert op.calls == 3

    @pytest.mark.asyncio
    async def test_rate_limit_waits_fixed_long_delay(self):
        sleep = FakeSleep()
        op = AlwaysFails(lambda: _status_error(429))
        with pytest.raises(HTTPStatusError):
            await with_retry(op, 3, base_delay=1.0, max_delay=10.0, rate_limit_delay=30.0, sleep=sleep)
        assert op.calls == 4
        assert sleep.delays == [30.0, 30.0, 30.0]

    @pytest.mark.asyncio
    async def test_longer_retry_after_is_honoured(self):
        sleep = FakeSleep()
        op = Flaky([_status_error(429, retry_after=45.0)])
        await with_retry(op, 3, rate_limit_delay=30.0, sleep=sleep)
        assert sleep.delays == [45.0]

    @pytest.mark.asyncio
    async def test_retry_after_is_capped(self):
        sleep = FakeSleep()
        op = Flaky([_status_error(429, retry_after=86400.0)])
        await with_retry(op, 3, rate_limit_delay=30.0, rate_limit_max_delay=120.0, sleep=sleep)
        assert sleep.delays == [120.0]

    @pytest.mark.asyncio
    async def test_server_error_mentioning_rate_limit_waits_long(self):
        sleep = FakeSleep()
        op = Flaky([_status_error(503, message="Rate limit exceeded upstream")])
        await with_retry(op, 3, base_delay=1.0, rate_limit_delay=30.0, sleep=sleep)
        assert sleep.delays == [30.0]

    @pytest.mark.asyncio
    async def test_shorter_retry_after_keeps_fixed_delay(self):
        sleep = FakeSleep()
        op = Flaky([_status_error(429, retry_after=2.0)])
        await with_retry(op, 3, rate_limit_delay=30.0, sleep=sleep)
        assert sleep.delays == [30.0]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [
            ConfigError("no key"),
            ParseError("not json"),
            _status_error(401),
            _status_error(400),
        ],
    )
    async def test_non_retryable_errors_raise_immediately(self, error):
        sleep = FakeSleep()
        op = Flaky([error])
        with pytest.raises(type(error)):
            await with_retry(op, 3, sleep=sleep)
        assert op.calls == 1
        assert sleep.delays == []

    @pytest.mark.asyncio
    async def test_zero_retries(self):
        sleep = FakeSleep()
        op = AlwaysFails(_transport_error)
        with pytest.raises(TransportError):
            await with_retry(op, 0, sleep=sleep)
        assert op.calls == 1
