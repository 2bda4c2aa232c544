"""Behaviour of the exponential-backoff retry helpers."""

from __future__ import annotations

from pathlib import Path

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import create_async_engine

from callscribe.database import init_models
from callscribe.services import retry as retry_module
from callscribe.services.retry import RetryPolicy, retryable, with_retry


class Flaky:
    def __init__(self, failures: int, result: str = "ok") -> None:
        self.failures = failures
        self.result = result
        self.calls = 0
        self.errors: list[Exception] = []

    async def __call__(self) -> str:
        self.calls += 1
        if self.failures < 0 or self.calls <= self.failures:
            error = RuntimeError(f"failure {self.calls}")
            self.errors.append(error)
            raise error
        return self.result


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    recorded: list[float] = []

    async def fake_sleep(delay: float) -> None:
        recorded.append(delay)

    monkeypatch.setattr(retry_module.asyncio, "sleep", fake_sleep)
    return recorded


@pytest.mark.parametrize("failures", [0, 1, 2])
async def test_returns_success_after_k_failures(failures: int, sleeps: list[float]) -> None:
    operation = Flaky(failures)

    result = await with_retry(operation, max_attempts=3, initial_delay=1.0)

    assert result == "ok"
    assert operation.calls == failures + 1
    assert len(sleeps) == failures


async def test_always_failing_operation_reraises_last_error(sleeps: list[float]) -> None:
    operation = Flaky(failures=-1)

    with pytest.raises(RuntimeError) as excinfo:
        await with_retry(operation, max_attempts=4, initial_delay=0.5)

    assert operation.calls == 4
    assert excinfo.value is operation.errors[-1]


async def test_delay_doubles_between_attempts(sleeps: list[float]) -> None:
    await with_retry(Flaky(failures=3), max_attempts=4, initial_delay=1.0)

    assert sleeps == [1.0, 2.0, 4.0]


async def test_custom_factor(sleeps: list[float]) -> None:
    with pytest.raises(RuntimeError):
        await with_retry(Flaky(failures=-1), max_attempts=3, initial_delay=0.25, factor=3.0)

    assert sleeps == [0.25, 0.75]


async def test_single_attempt_never_sleeps(sleeps: list[float]) -> None:
    operation = Flaky(failures=-1)

    with pytest.raises(RuntimeError):
        await with_retry(operation, max_attempts=1)

    assert operation.calls == 1
    assert sleeps == []


async def test_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        await with_retry(Flaky(failures=0), max_attempts=0)


async def test_policy_and_decorator_share_semantics(sleeps: list[float]) -> None:
    policy = RetryPolicy(max_attempts=3, initial_delay=2.0)
    operation = Flaky(failures=2, result="policy")

    assert await policy.run(operation, label="test") == "policy"
    assert sleeps == [2.0, 4.0]

    attempts = []

    @retryable(max_attempts=2, initial_delay=0.0)
    async def sometimes(value: int) -> int:
        attempts.append(value)
        if len(attempts) == 1:
            raise ConnectionError("transient")
        return value * 2

    assert await sometimes(21) == 42
    assert attempts == [21, 21]


async def test_database_startup_is_retried_with_backoff(
    sleeps: list[float], tmp_path: Path
) -> None:
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'missing' / 'db.sqlite'}")

    try:
        with pytest.raises(OperationalError):
            await init_models(engine)
    finally:
        await engine.dispose()

    assert sleeps == [1.0, 2.0, 4.0, 8.0]
