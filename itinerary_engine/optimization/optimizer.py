"""End-to-end itinerary optimization.

Pipeline: analyze -> generate -> apply (optional) -> sequence routes ->
budget optimization -> allocation -> summary. Every collaborator-backed step
falls back to its heuristic, so a result is always produced for a valid
itinerary, including after cancellation.
"""

import logging
from collections.abc import Mapping
from typing import Any

from pydantic import ValidationError

from itinerary_engine.adapters.routing import (
    DirectionsService,
    HttpRoutingService,
    RouteOptimizationService,
)
from itinerary_engine.config import Settings, get_settings
from itinerary_engine.errors import ItineraryValidationError
from itinerary_engine.llm.client import TextGenerationService, get_text_client
from itinerary_engine.models.budget import OptimizationMode
from itinerary_engine.models.factors import RealTimeFactors
from itinerary_engine.models.itinerary import Day, Itinerary, update_itinerary
from itinerary_engine.models.optimization import OptimizationResult, OptimizationSummary
from itinerary_engine.optimization.analyzer import SituationAnalyzer
from itinerary_engine.optimization.applier import AdaptationApplier
from itinerary_engine.optimization.budget import BudgetAllocator
from itinerary_engine.optimization.generator import AdaptationGenerator
from itinerary_engine.optimization.routes import RouteSequencer
from itinerary_engine.tools.executor import CancelToken, ToolCache
from itinerary_engine.tools.fallback import CollaboratorRunner
from itinerary_engine.utils.logging import StructuredToolLogger
from itinerary_engine.utils.metrics import PrometheusToolMetrics

logger = logging.getLogger(__name__)

DEFAULT_EXPERIENCE_SCORE = 4.0


def experience_score(days: list[Day]) -> float:
    """Mean activity rating to one decimal; 4.0 for a plan with no activities."""
    ratings = [activity.rating for day in days for activity in day.activities]
    if not ratings:
        return DEFAULT_EXPERIENCE_SCORE
    return round(sum(ratings) / len(ratings), 1)


def travel_minutes(days: list[Day]) -> int:
    """Total transit minutes over all days."""
    return sum(day.travel_time_minutes for day in days)


def coerce_itinerary(itinerary: Itinerary | Mapping[str, Any] | None) -> Itinerary:
    """Validate caller input into an Itinerary.

    Raises:
        ItineraryValidationError: If the input is missing or invalid
    """
    if itinerary is None:
        raise ItineraryValidationError("Itinerary is required")
    if isinstance(itinerary, Itinerary):
        return itinerary
    try:
        return Itinerary.model_validate(itinerary)
    except ValidationError as e:
        raise ItineraryValidationError(f"Invalid itinerary: {e}") from e


def coerce_factors(factors: RealTimeFactors | Mapping[str, Any] | None) -> RealTimeFactors:
    """Validate caller-supplied real-time factors; None means no signals.

    Raises:
        ItineraryValidationError: If the factors are malformed
    """
    if factors is None:
        return RealTimeFactors()
    if isinstance(factors, RealTimeFactors):
        return factors
    try:
        return RealTimeFactors.model_validate(factors)
    except ValidationError as e:
        raise ItineraryValidationError(f"Invalid real-time factors: {e}") from e


def coerce_mode(mode: OptimizationMode | str) -> OptimizationMode:
    """Raises ItineraryValidationError for an unknown optimization mode."""
    try:
        return OptimizationMode(mode)
    except ValueError as e:
        raise ItineraryValidationError(f"Unknown optimization mode: {mode!r}") from e


class Optimizer:
    """Runs the full adaptation and optimization pipeline for one itinerary."""

    def __init__(
        self,
        analyzer: SituationAnalyzer,
        generator: AdaptationGenerator,
        applier: AdaptationApplier,
        sequencer: RouteSequencer,
        budget: BudgetAllocator,
    ) -> None:
        self.analyzer = analyzer
        self.generator = generator
        self.applier = applier
        self.sequencer = sequencer
        self.budget = budget

    @classmethod
    def create(
        cls,
        settings: Settings | None = None,
        text_client: TextGenerationService | None = None,
        route_service: RouteOptimizationService | None = None,
        directions_service: DirectionsService | None = None,
        cache: ToolCache | None = None,
    ) -> "Optimizer":
        """Wire the default collaborators from settings.

        Routing uses `HttpRoutingService` when `routing_base_url` is set;
        otherwise routes fall back to haversine estimates.
        """
        settings = settings or get_settings()
        text_client = text_client or get_text_client(settings)

        if settings.routing_base_url and (route_service is None or directions_service is None):
            http_routing = HttpRoutingService(
                settings.routing_base_url, timeout_sec=settings.routing_timeout_sec
            )
            route_service = route_service or http_routing
            directions_service = directions_service or http_routing

        runner = CollaboratorRunner.with_observability(
            PrometheusToolMetrics(), StructuredToolLogger(), settings=settings, cache=cache
        )
        return cls(
            analyzer=SituationAnalyzer(text_client, runner, settings),
            generator=AdaptationGenerator(text_client, runner, settings),
            applier=AdaptationApplier(settings),
            sequencer=RouteSequencer(runner, route_service, directions_service, settings),
            budget=BudgetAllocator(text_client, runner, settings),
        )

    async def optimize(
        self,
        itinerary: Itinerary | Mapping[str, Any] | None,
        factors: RealTimeFactors | Mapping[str, Any] | None = None,
        mode: OptimizationMode | str = OptimizationMode.balanced,
        *,
        sequence_routes: bool = True,
        auto_apply: bool = False,
        cancel_token: CancelToken | None = None,
    ) -> OptimizationResult:
        """Optimize an itinerary against real-time factors.

        Args:
            itinerary: Itinerary or its mapping form
            factors: Real-time signals (none when omitted)
            mode: `budget` always asks for savings
            sequence_routes: Reorder and re-time each day
            auto_apply: Apply every generated adaptation before sequencing
            cancel_token: Aborts pending collaborator calls; remaining steps
                use their heuristics

        Returns:
            Consolidated result

        Raises:
            ItineraryValidationError: If the itinerary is missing or invalid
        """
        original = coerce_itinerary(itinerary)
        signals = coerce_factors(factors)
        mode = coerce_mode(mode)

        logger.info(
            f"Optimizing itinerary for {original.destination}",
            extra={
                "structured": {
                    "days": len(original.days),
                    "mode": mode.value,
                    "auto_apply": auto_apply,
                }
            },
        )

        analysis = await self.analyzer.analyze(original, signals, cancel_token)
        adaptations = await self.generator.generate(original, signals, analysis, cancel_token)

        plan = original
        if auto_apply:
            plan, adaptations = self.applier.apply_all(plan, adaptations)

        if sequence_routes:
            days = await self.sequencer.sequence_days(plan.days, cancel_token)
            plan = update_itinerary(plan, days=days)

        budget_optimization = await self.budget.optimize(
            original, plan.days, mode, cancel_token
        )
        allocation = self.budget.allocate(plan)

        summary = OptimizationSummary(
            total_changes=len(adaptations),
            budget_savings=budget_optimization.total_savings,
            time_optimization=travel_minutes(original.days) - travel_minutes(plan.days),
            experience_score=experience_score(plan.days),
        )
        cancelled = cancel_token is not None and cancel_token.cancelled
        if cancelled:
            logger.info(f"Optimization for {original.destination} cancelled; heuristics used")

        return OptimizationResult(
            itinerary=plan,
            adaptations=adaptations,
            applied_adaptation_ids=[a.id for a in adaptations if a.accepted],
            analysis=analysis,
            budget_allocation=allocation,
            budget_optimization=budget_optimization,
            confidence=analysis.confidence,
            mode=mode,
            summary=summary,
            cancelled=cancelled,
        )
