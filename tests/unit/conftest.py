import asyncio

import pytest

from watsonx_kit.config import ClientConfig
from watsonx_kit.transport.retry import RetryPolicy


class FakeClock:
    """Clock whose sleeps return immediately and advance virtual time."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def monotonic(self) -> float:
        return self.now

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds
        await asyncio.sleep(0)


@pytest.fixture
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def config(fake_clock: FakeClock) -> ClientConfig:
    """Config with fast, deterministic retries."""
    return ClientConfig(
        api_key="test-api-key",
        project_id="test-project",
        retry_policy=RetryPolicy(
            max_attempts=3, backoff=0.5, max_jitter=0.0, clock=fake_clock
        ),
    )


@pytest.fixture
def token_body():
    """Build an IAM token response body expiring at ``expiration``."""

    def build(expiration: float, token: str = "test-token") -> dict:
        return {
            "access_token": token,
            "refresh_token": "not_supported",
            "token_type": "Bearer",
            "expires_in": 3600,
            "expiration": int(expiration),
            "scope": "ibm openid",
        }

    return build
