"""Shared pytest fixtures for all test suites."""

import pytest

from itinerary_engine.config import Settings
from itinerary_engine.tools.executor import ToolExecutor
from itinerary_engine.tools.fallback import CollaboratorRunner


async def no_sleep(seconds: float) -> None:
    """Retry jitter replacement so tests never wait."""
    return None


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment, with fast timeouts."""
    return Settings(
        _env_file=None,
        openai_api_key=None,
        routing_base_url=None,
        tool_hard_timeout_ms=500,
        tool_retry_count=1,
    )


@pytest.fixture
def runner(settings: Settings) -> CollaboratorRunner:
    """Runner whose retries do not sleep."""
    return CollaboratorRunner(
        executor=ToolExecutor(sleep_fn=no_sleep), settings=settings, trace_id="test-trace"
    )
