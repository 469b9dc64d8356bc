"""Structured logging for collaborator attempts.

Records carry their fields under `extra={"structured": {...}}` so a JSON
formatter can emit them unchanged.
"""

import logging
from typing import Any

from itinerary_engine.tools.executor import ToolContext

logger = logging.getLogger(__name__)

# Outcomes that are part of normal operation; everything else ends in a fallback
_QUIET_OUTCOMES = frozenset({"success", "cache_hit"})


class StructuredToolLogger:
    """ToolLogger writing one record per collaborator attempt."""

    def log_attempt(
        self,
        ctx: ToolContext,
        attempt: int,
        outcome: str,
        latency_ms: float,
        cache_hit: bool = False,
        error_reason: str | None = None,
    ) -> None:
        fields: dict[str, Any] = {
            "trace_id": ctx.trace_id,
            "run_id": ctx.run_id,
            "collaborator": ctx.tool_name,
            "attempt": attempt,
            "outcome": outcome,
            "latency_ms": round(latency_ms, 2),
            "cache_hit": cache_hit,
        }
        if error_reason:
            fields["error_reason"] = error_reason

        level = logging.INFO if outcome in _QUIET_OUTCOMES else logging.WARNING
        logger.log(
            level,
            f"{ctx.tool_name} attempt {attempt}: {outcome}",
            extra={"structured": fields},
        )
