"""Two-step fallback pipeline for collaborator calls.

Components never wrap collaborator calls in ad hoc try/except blocks.
Instead they write

    outcome = await runner.attempt("routing.route", call, request)
    leg = outcome.or_else(lambda: estimate_leg(...))

`attempt` turns every failure mode (timeout, open breaker, execution or
parse error, cancellation) into an `Outcome` carrying the error, and
`or_else` supplies the heuristic.
"""

import logging
import uuid
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Generic, TypeVar, cast

from pydantic import BaseModel

from itinerary_engine.config import Settings, get_settings
from itinerary_engine.errors import ExternalServiceError
from itinerary_engine.tools.executor import (
    BreakerRegistry,
    CancelToken,
    ToolCache,
    ToolCancelledError,
    ToolCircuitOpenError,
    ToolConfig,
    ToolContext,
    ToolExecutor,
    ToolLogger,
    ToolMetrics,
    ToolTimeoutError,
)
from itinerary_engine.utils.metrics import record_fallback

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class Outcome(Generic[T]):
    """Result of a collaborator attempt: a value or the error that replaced it."""

    value: T | None = None
    error: ExternalServiceError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def or_else(self, fallback: Callable[[], T]) -> T:
        """Return the value, or the fallback's result if the attempt failed."""
        if self.error is None:
            return cast(T, self.value)
        return fallback()


def fallback_reason(error: ExternalServiceError) -> str:
    """Metric label for the failure that sent a call to its heuristic."""
    if isinstance(error, ToolCancelledError):
        return "cancelled"
    if isinstance(error, ToolCircuitOpenError):
        return "breaker_open"
    if isinstance(error, ToolTimeoutError):
        return "timeout"
    return "error"


def config_from_settings(settings: Settings) -> ToolConfig:
    """Build the executor config from settings."""
    return ToolConfig(
        hard_timeout_ms=settings.tool_hard_timeout_ms,
        retry_count=settings.tool_retry_count,
        retry_jitter_min_ms=settings.retry_jitter_min_ms,
        retry_jitter_max_ms=settings.retry_jitter_max_ms,
        breaker_failure_threshold=settings.circuit_breaker_failures,
        breaker_window_seconds=settings.circuit_breaker_window_sec,
        breaker_half_open_seconds=settings.circuit_breaker_half_open_sec,
    )


class CollaboratorRunner:
    """Runs collaborator calls through the executor and returns Outcomes."""

    def __init__(
        self,
        executor: ToolExecutor | None = None,
        config: ToolConfig | None = None,
        cache: ToolCache | None = None,
        breakers: BreakerRegistry | None = None,
        settings: Settings | None = None,
        trace_id: str | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._executor = executor or ToolExecutor()
        self._config = config or config_from_settings(settings)
        self._cache = cache if cache is not None else ToolCache(settings.cache_max_entries)
        self._breakers = breakers or BreakerRegistry()
        self._trace_id = trace_id or uuid.uuid4().hex

    @classmethod
    def with_observability(
        cls,
        metrics: ToolMetrics,
        tool_logger: ToolLogger,
        settings: Settings | None = None,
        cache: ToolCache | None = None,
    ) -> "CollaboratorRunner":
        """Runner whose executor reports to the given metrics and logger."""
        return cls(
            executor=ToolExecutor(metrics=metrics, logger=tool_logger),
            settings=settings,
            cache=cache,
        )

    @property
    def cache(self) -> ToolCache:
        return self._cache

    async def attempt(
        self,
        tool_name: str,
        fn: Callable[[Any], Awaitable[Any]],
        payload: BaseModel,
        *,
        parse: Callable[[Any], T] | None = None,
        cancel_token: CancelToken | None = None,
        cache_ttl_seconds: int = 0,
    ) -> Outcome[T]:
        """Call a collaborator; never raises for collaborator failures.

        `parse` runs inside the executor, so a malformed response counts as a
        failed attempt (retried, recorded by the breaker, never cached).
        """

        async def call(request: Any) -> Any:
            raw = await fn(request)
            return parse(raw) if parse is not None else raw

        breaker = self._breakers.get_or_create(
            tool_name=tool_name,
            failure_threshold=self._config.breaker_failure_threshold,
            window_seconds=self._config.breaker_window_seconds,
            half_open_seconds=self._config.breaker_half_open_seconds,
        )
        ctx = ToolContext(trace_id=self._trace_id, run_id=None, tool_name=tool_name)

        try:
            result = await self._executor.execute(
                ctx,
                self._config,
                call,
                payload,
                cancel_token,
                cache=self._cache,
                breaker=breaker,
                cache_ttl_seconds=cache_ttl_seconds,
            )
        except ToolCancelledError as e:
            logger.info(f"{tool_name} skipped: run cancelled")
            record_fallback(tool_name, fallback_reason(e))
            return Outcome(error=e)
        except ExternalServiceError as e:
            cause = f" ({e.__cause__!r})" if e.__cause__ else ""
            logger.warning(f"{tool_name} unavailable, using fallback: {e}{cause}")
            record_fallback(tool_name, fallback_reason(e))
            return Outcome(error=e)

        return Outcome(value=result.value)


def not_configured(tool_name: str) -> Outcome[Any]:
    """Outcome for a collaborator that was never wired in."""
    logger.debug(f"{tool_name} not configured, using fallback")
    record_fallback(tool_name, "not_configured")
    return Outcome(error=ExternalServiceError(f"{tool_name} not configured"))
