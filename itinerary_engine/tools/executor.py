"""Resilient async execution of collaborator calls.

`ToolExecutor.execute` is the single path to the text-generation, route
optimization and directions collaborators. Per call it applies, in order:
cancellation check, cache lookup, circuit breaker, then up to
`retry_count + 1` attempts, each bounded by the hard timeout and abandoned as
soon as the cancel token fires. Breaker state and the cache are owned by the
caller (see `CollaboratorRunner`), never by this module.
"""

import asyncio
import hashlib
import json
import random
import time
from collections import OrderedDict
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from enum import Enum
from typing import Any, Generic, Protocol, TypeVar

from pydantic import BaseModel

from itinerary_engine.errors import ExternalServiceError
from itinerary_engine.models.common import Provenance

T = TypeVar("T")


class ToolTimeoutError(ExternalServiceError):
    """Every attempt hit the hard timeout."""


class ToolCircuitOpenError(ExternalServiceError):
    """Call rejected without trying: the collaborator's breaker is open."""


class ToolExecutionError(ExternalServiceError):
    """Collaborator raised, or its response failed to parse, on every attempt."""


class ToolCancelledError(ExternalServiceError):
    """The caller's cancel token fired."""


@dataclass(frozen=True)
class ToolResult(Generic[T]):
    value: T
    provenance: Provenance


@dataclass(frozen=True)
class ToolContext:
    """Identifies one collaborator call in logs and metrics."""

    trace_id: str
    run_id: str | None
    tool_name: str


@dataclass
class CancelToken:
    """Caller-driven cancellation shared by every step of one optimization.

    `cancel()` also wakes attempts blocked on a collaborator, so in-flight
    calls are abandoned instead of waited out.
    """

    cancelled: bool = False
    _event: asyncio.Event = field(default_factory=asyncio.Event, repr=False, compare=False)

    def __post_init__(self) -> None:
        if self.cancelled:
            self._event.set()

    def cancel(self) -> None:
        self.cancelled = True
        self._event.set()

    def throw_if_cancelled(self) -> None:
        """Raise ToolCancelledError if cancelled."""
        if self.cancelled:
            raise ToolCancelledError("run cancelled")

    async def wait(self) -> None:
        await self._event.wait()


@dataclass
class ToolConfig:
    """Timeouts, retry and breaker parameters (built from Settings)."""

    hard_timeout_ms: int
    retry_count: int
    retry_jitter_min_ms: int
    retry_jitter_max_ms: int
    breaker_failure_threshold: int = 5
    breaker_window_seconds: int = 60
    breaker_half_open_seconds: int = 30
    cache_ttl_seconds: int = 0

    def jitter_seconds(self) -> float:
        return random.uniform(self.retry_jitter_min_ms, self.retry_jitter_max_ms) / 1000


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


@dataclass
class CircuitBreaker:
    """Failure-window breaker for one collaborator.

    Opens once `failure_threshold` failures fall inside `window_seconds`,
    lets a probe through after `half_open_seconds`, and closes again on the
    first success. Cancellations are never recorded.
    """

    tool_name: str
    failure_threshold: int
    window_seconds: int
    half_open_seconds: int
    state: BreakerState = BreakerState.CLOSED
    failure_times: list[datetime] = field(default_factory=list)
    opened_at: datetime | None = None

    def record_success(self) -> None:
        if self.state != BreakerState.CLOSED:
            self.state = BreakerState.CLOSED
            self.opened_at = None
            self.failure_times.clear()

    def record_failure(self, now: datetime) -> None:
        horizon = now - timedelta(seconds=self.window_seconds)
        self.failure_times = [t for t in self.failure_times if t > horizon] + [now]
        if len(self.failure_times) >= self.failure_threshold:
            self.state = BreakerState.OPEN
            self.opened_at = now

    def check_and_update_state(self, now: datetime) -> BreakerState:
        """Current state, moving OPEN to HALF_OPEN once the cool-down elapsed."""
        cooled_down = (
            self.opened_at is not None
            and now - self.opened_at >= timedelta(seconds=self.half_open_seconds)
        )
        if self.state == BreakerState.OPEN and cooled_down:
            self.state = BreakerState.HALF_OPEN
        return self.state

    def is_open(self, now: datetime) -> bool:
        return self.check_and_update_state(now) == BreakerState.OPEN


class BreakerRegistry:
    """Breakers keyed by collaborator name, one registry per runner."""

    def __init__(self) -> None:
        self._breakers: dict[str, CircuitBreaker] = {}

    def get_or_create(
        self,
        tool_name: str,
        failure_threshold: int,
        window_seconds: int,
        half_open_seconds: int,
    ) -> CircuitBreaker:
        breaker = self._breakers.get(tool_name)
        if breaker is None:
            breaker = CircuitBreaker(
                tool_name=tool_name,
                failure_threshold=failure_threshold,
                window_seconds=window_seconds,
                half_open_seconds=half_open_seconds,
            )
            self._breakers[tool_name] = breaker
        return breaker

    def clear(self) -> None:
        self._breakers.clear()


@dataclass(frozen=True)
class CacheEntry:
    value: Any
    expires_at: datetime


class ToolCache:
    """LRU cache with per-entry TTL, keyed by a SHA-256 of the request payload."""

    def __init__(self, max_entries: int = 256) -> None:
        self._entries: OrderedDict[str, CacheEntry] = OrderedDict()
        self._max_entries = max(1, max_entries)

    def __len__(self) -> int:
        return len(self._entries)

    def make_key(self, tool_name: str, payload: BaseModel) -> str:
        canonical = json.dumps(
            payload.model_dump(mode="json"), sort_keys=True, separators=(",", ":")
        )
        return f"{tool_name}:{hashlib.sha256(canonical.encode()).hexdigest()}"

    def get(self, key: str, now: datetime) -> Any | None:
        """Fresh value for `key`, or None; expired entries are dropped on read."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= now:
            del self._entries[key]
            return None
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: str, value: Any, ttl_seconds: int, now: datetime) -> None:
        self._entries[key] = CacheEntry(value, now + timedelta(seconds=ttl_seconds))
        self._entries.move_to_end(key)
        while len(self._entries) > self._max_entries:
            self._entries.popitem(last=False)

    def clear(self) -> None:
        self._entries.clear()


class ToolMetrics(Protocol):
    """Sink for collaborator metrics (see utils.metrics)."""

    def record_latency(self, tool: str, outcome: str, latency_ms: float) -> None: ...

    def inc_error(self, tool: str, reason: str) -> None: ...

    def inc_cache_hit(self, tool: str) -> None: ...


class ToolLogger(Protocol):
    """Sink for per-attempt structured logs (see utils.logging)."""

    def log_attempt(
        self,
        ctx: ToolContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None: ...


class _Silent:
    """Default metrics and logger: records nothing."""

    def record_latency(self, tool: str, outcome: str, latency_ms: float) -> None:
        return None

    def inc_error(self, tool: str, reason: str) -> None:
        return None

    def inc_cache_hit(self, tool: str) -> None:
        return None

    def log_attempt(
        self,
        ctx: ToolContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None:
        return None


async def _race_cancellation(
    call: Awaitable[T], cancel_token: CancelToken, timeout_sec: float
) -> T:
    """Await `call` for at most `timeout_sec`, giving up early on cancellation.

    Raises:
        TimeoutError: The call did not finish in time
        ToolCancelledError: The token fired first
    """
    call_task = asyncio.ensure_future(call)
    cancel_task = asyncio.ensure_future(cancel_token.wait())
    try:
        done, _ = await asyncio.wait(
            {call_task, cancel_task},
            timeout=timeout_sec,
            return_when=asyncio.FIRST_COMPLETED,
        )
    except asyncio.CancelledError:
        call_task.cancel()
        raise
    finally:
        cancel_task.cancel()

    if call_task in done:
        return call_task.result()

    call_task.cancel()
    cancel_token.throw_if_cancelled()
    raise TimeoutError


def _elapsed_ms(started: float) -> float:
    return (time.monotonic() - started) * 1000


class ToolExecutor:
    """Runs one collaborator call with timeout, retry, breaker, cache and cancellation."""

    def __init__(
        self,
        metrics: ToolMetrics | None = None,
        logger: ToolLogger | None = None,
        sleep_fn: Callable[[float], Awaitable[None]] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._metrics: ToolMetrics = metrics or _Silent()
        self._logger: ToolLogger = logger or _Silent()
        self._sleep = sleep_fn or asyncio.sleep
        self._now = clock or (lambda: datetime.now(UTC))

    def _observe(
        self,
        ctx: ToolContext,
        attempt: int,
        outcome: str,
        started: float,
        reason: str | None = None,
    ) -> None:
        latency_ms = _elapsed_ms(started)
        if outcome == "error":
            self._metrics.inc_error(ctx.tool_name, "execution_error")
        elif reason is not None and outcome != "cancelled":
            self._metrics.inc_error(ctx.tool_name, reason)
        if outcome in ("success", "cache_hit", "cancelled", "breaker_open"):
            self._metrics.record_latency(ctx.tool_name, outcome, latency_ms)
        if outcome == "cache_hit":
            self._metrics.inc_cache_hit(ctx.tool_name)
        self._logger.log_attempt(
            ctx,
            attempt,
            outcome,
            latency_ms,
            cache_hit=outcome == "cache_hit",
            error_reason=reason,
        )

    async def execute(
        self,
        ctx: ToolContext,
        config: ToolConfig,
        fn: Callable[[Any], Awaitable[T]],
        payload: BaseModel,
        cancel_token: CancelToken | None = None,
        *,
        cache: ToolCache | None = None,
        breaker: CircuitBreaker | None = None,
        cache_ttl_seconds: int = 0,
    ) -> ToolResult[T]:
        """Call `fn(payload)` under the configured protections.

        Args:
            ctx: Trace id and collaborator name
            config: Timeouts, retries and breaker thresholds
            fn: Async collaborator call
            payload: Request; also the source of the cache key
            cancel_token: Aborts the call (and any retries) when fired
            cache: Shared cache; results are only stored when a TTL applies
            breaker: Shared breaker; a private one is used when omitted
            cache_ttl_seconds: Overrides `config.cache_ttl_seconds`; 0 disables caching

        Returns:
            The value with provenance (fetch time, whether it came from cache)

        Raises:
            ToolCancelledError: Token fired before or during the call
            ToolCircuitOpenError: Breaker open and no cached value
            ToolTimeoutError: Every attempt timed out
            ToolExecutionError: Every attempt failed; the last error is the cause
        """
        token = cancel_token or CancelToken()
        breaker = breaker or CircuitBreaker(
            tool_name=ctx.tool_name,
            failure_threshold=config.breaker_failure_threshold,
            window_seconds=config.breaker_window_seconds,
            half_open_seconds=config.breaker_half_open_seconds,
        )
        ttl = cache_ttl_seconds or config.cache_ttl_seconds
        started = time.monotonic()

        token.throw_if_cancelled()

        # A cached value is served even while the breaker is open
        key = cache.make_key(ctx.tool_name, payload) if cache is not None and ttl > 0 else None
        if key is not None and cache is not None:
            hit: ToolResult[T] | None = cache.get(key, self._now())
            if hit is not None:
                self._observe(ctx, 0, "cache_hit", started)
                return ToolResult(hit.value, hit.provenance.model_copy(update={"cache_hit": True}))

        if breaker.is_open(self._now()):
            self._observe(ctx, 0, "breaker_open", started, reason="breaker_open")
            raise ToolCircuitOpenError(f"Circuit breaker open for {ctx.tool_name}")

        timeout_sec = config.hard_timeout_ms / 1000
        last_error: Exception | None = None
        attempts = config.retry_count + 1
        for attempt in range(1, attempts + 1):
            token.throw_if_cancelled()
            attempt_started = time.monotonic()
            try:
                value = await _race_cancellation(fn(payload), token, timeout_sec)
            except ToolCancelledError:
                self._observe(ctx, attempt, "cancelled", attempt_started, reason="cancelled")
                raise
            except TimeoutError as e:
                last_error = e
                self._observe(ctx, attempt, "timeout", attempt_started, reason="timeout")
            except Exception as e:
                last_error = e
                self._observe(ctx, attempt, "error", attempt_started, reason=type(e).__name__)
            else:
                breaker.record_success()
                self._observe(ctx, attempt, "success", attempt_started)
                result = ToolResult(
                    value,
                    Provenance(
                        source=ctx.tool_name,
                        ref_id=ctx.trace_id,
                        fetched_at=self._now(),
                        cache_hit=False,
                    ),
                )
                if key is not None and cache is not None:
                    cache.set(key, result, ttl, self._now())
                return result

            breaker.record_failure(self._now())
            if attempt < attempts:
                token.throw_if_cancelled()
                await self._sleep(config.jitter_seconds())

        if isinstance(last_error, TimeoutError):
            raise ToolTimeoutError(f"{ctx.tool_name} timed out after {attempts} attempt(s)")
        raise ToolExecutionError(
            f"{ctx.tool_name} failed after {attempts} attempt(s)"
        ) from last_error
