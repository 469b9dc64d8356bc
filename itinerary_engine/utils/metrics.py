"""Prometheus metrics for collaborator calls and the heuristics replacing them."""

from prometheus_client import Counter, Histogram

collaborator_latency_ms = Histogram(
    "collaborator_latency_ms",
    "Collaborator attempt latency in milliseconds",
    ["tool", "outcome"],
    buckets=[10, 50, 100, 200, 500, 1000, 2000, 4000, 8000],
)

collaborator_errors_total = Counter(
    "collaborator_errors_total",
    "Failed collaborator attempts",
    ["tool", "reason"],
)

collaborator_cache_hits_total = Counter(
    "collaborator_cache_hits_total",
    "Collaborator calls answered from the cache",
    ["tool"],
)

# One increment per call whose result came from a local heuristic instead
heuristic_fallbacks_total = Counter(
    "heuristic_fallbacks_total",
    "Collaborator results replaced by a local heuristic",
    ["tool", "reason"],
)


def record_fallback(tool: str, reason: str) -> None:
    heuristic_fallbacks_total.labels(tool=tool, reason=reason).inc()


class PrometheusToolMetrics:
    """ToolMetrics sink backed by the module-level Prometheus collectors."""

    def record_latency(self, tool: str, outcome: str, latency_ms: float) -> None:
        collaborator_latency_ms.labels(tool=tool, outcome=outcome).observe(latency_ms)

    def inc_error(self, tool: str, reason: str) -> None:
        collaborator_errors_total.labels(tool=tool, reason=reason).inc()

    def inc_cache_hit(self, tool: str) -> None:
        collaborator_cache_hits_total.labels(tool=tool).inc()
