"""Tests for the end-to-end Optimizer pipeline."""

from datetime import date

import pytest

from factories import (
    EIFFEL_TOWER,
    LOUVRE,
    MONTMARTRE,
    FakeTextClient,
    make_activity,
    make_itinerary,
)
from itinerary_engine.config import Settings
from itinerary_engine.errors import ItineraryValidationError
from itinerary_engine.models.adaptation import AdaptationType
from itinerary_engine.models.budget import OptimizationMode
from itinerary_engine.models.common import WeatherDependency
from itinerary_engine.models.factors import RealTimeFactors, WeatherForecast
from itinerary_engine.models.itinerary import Itinerary
from itinerary_engine.models.services import ResponseSchema
from itinerary_engine.optimization.analyzer import SituationAnalyzer
from itinerary_engine.optimization.applier import AdaptationApplier
from itinerary_engine.optimization.budget import BudgetAllocator
from itinerary_engine.optimization.generator import AdaptationGenerator
from itinerary_engine.optimization.optimizer import Optimizer, travel_minutes
from itinerary_engine.optimization.routes import RouteSequencer
from itinerary_engine.tools.executor import CancelToken
from itinerary_engine.tools.fallback import CollaboratorRunner

DAY_ONE = date(2025, 6, 1)

RESPONSES = {
    ResponseSchema.situation_analysis: {
        "weather_impact": "Rain on day one",
        "overall_risk": "medium",
        "confidence": 0.85,
        "key_recommendations": ["Swap the Eiffel Tower for a museum"],
    },
    ResponseSchema.indoor_alternatives: [
        {"name": "Musee d'Orsay", "type": "museum", "estimated_cost": 16}
    ],
    ResponseSchema.budget_alternatives: [],
    ResponseSchema.budget_savings: {"total_savings": 0},
}


def build_optimizer(
    runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> Optimizer:
    return Optimizer(
        analyzer=SituationAnalyzer(client, runner, settings),
        generator=AdaptationGenerator(client, runner, settings),
        applier=AdaptationApplier(settings),
        sequencer=RouteSequencer(runner, settings=settings),
        budget=BudgetAllocator(client, runner, settings),
    )


@pytest.fixture
def client() -> FakeTextClient:
    return FakeTextClient(RESPONSES)


@pytest.fixture
def itinerary() -> Itinerary:
    return make_itinerary(
        [
            [
                make_activity(
                    "eiffel_tower",
                    start="10:00",
                    cost=30.0,
                    coordinates=EIFFEL_TOWER,
                    address="Eiffel Tower, Paris",
                    weather_dependency=WeatherDependency.outdoor,
                    rating=5.0,
                ),
                make_activity(
                    "louvre",
                    start="14:00",
                    cost=22.0,
                    coordinates=LOUVRE,
                    address="Louvre Museum, Paris",
                    activity_type="museum",
                    weather_dependency=WeatherDependency.indoor,
                ),
            ],
            [make_activity("sacre_coeur", cost=15.0, coordinates=MONTMARTRE)],
        ]
    )


@pytest.fixture
def rainy() -> RealTimeFactors:
    return RealTimeFactors(weather=[WeatherForecast(date=DAY_ONE, precipitation=90)])


@pytest.mark.asyncio
async def test_missing_itinerary_raises(
    runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> None:
    """Test that a None itinerary is rejected."""
    with pytest.raises(ItineraryValidationError):
        await build_optimizer(runner, settings, client).optimize(None)


@pytest.mark.asyncio
async def test_invalid_itinerary_mapping_raises(
    runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> None:
    """Test that a structurally invalid mapping is rejected."""
    with pytest.raises(ItineraryValidationError):
        await build_optimizer(runner, settings, client).optimize({"destination": "Paris"})


@pytest.mark.asyncio
async def test_invalid_factors_raise(
    itinerary: Itinerary, runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> None:
    """Test that malformed factors are rejected."""
    with pytest.raises(ItineraryValidationError):
        await build_optimizer(runner, settings, client).optimize(
            itinerary, {"weather": [{"date": "not-a-date"}]}
        )


@pytest.mark.asyncio
async def test_unknown_mode_raises(
    itinerary: Itinerary, runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> None:
    """Test that an unknown optimization mode is a validation error."""
    with pytest.raises(ItineraryValidationError, match="turbo"):
        await build_optimizer(runner, settings, client).optimize(itinerary, mode="turbo")


@pytest.mark.asyncio
async def test_mapping_input_is_accepted(
    itinerary: Itinerary, runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> None:
    """Test that the JSON form of an itinerary is validated and optimized."""
    result = await build_optimizer(runner, settings, client).optimize(
        itinerary.model_dump(mode="json"), sequence_routes=False
    )

    assert result.itinerary == itinerary
    assert result.adaptations == []
    assert result.cancelled is False


@pytest.mark.asyncio
async def test_proposals_are_not_applied_by_default(
    itinerary: Itinerary,
    rainy: RealTimeFactors,
    runner: CollaboratorRunner,
    settings: Settings,
    client: FakeTextClient,
) -> None:
    """Test that adaptations are returned unapplied unless auto_apply is set."""
    result = await build_optimizer(runner, settings, client).optimize(
        itinerary, rainy, sequence_routes=False
    )

    assert [a.type for a in result.adaptations] == [AdaptationType.weather]
    assert result.applied_adaptation_ids == []
    assert result.itinerary == itinerary
    assert result.confidence == 0.85
    assert result.summary.total_changes == 1


@pytest.mark.asyncio
async def test_auto_apply_and_sequence(
    itinerary: Itinerary,
    rainy: RealTimeFactors,
    runner: CollaboratorRunner,
    settings: Settings,
    client: FakeTextClient,
) -> None:
    """Test the full pipeline with adaptations applied and routes rebuilt."""
    result = await build_optimizer(runner, settings, client).optimize(
        itinerary, rainy, auto_apply=True
    )

    weather = result.adaptations[0]
    assert weather.accepted is True
    assert result.applied_adaptation_ids == [weather.id]

    first_day = result.itinerary.days[0]
    assert [a.id for a in first_day.activities] == ["eiffel_tower", "louvre"]
    assert first_day.activities[0].name == "Musee d'Orsay"
    assert first_day.activities[0].weather_adapted is True
    assert len(first_day.transportation) == 1
    assert first_day.activities[1].start_time > first_day.activities[0].end_time

    assert result.budget_optimization.source == "none"
    assert result.budget_allocation.total == itinerary.budget
    assert result.summary.experience_score == 4.3
    assert result.summary.time_optimization == travel_minutes(itinerary.days) - travel_minutes(
        result.itinerary.days
    )
    # The input itinerary is never mutated
    assert itinerary.days[0].activities[0].name == "Eiffel Tower"


@pytest.mark.asyncio
async def test_empty_plan_has_default_experience_score(
    runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> None:
    """Test the experience score when no activity is planned."""
    result = await build_optimizer(runner, settings, client).optimize(make_itinerary([[]]))

    assert result.summary.experience_score == 4.0
    assert result.summary.budget_savings == 0.0


@pytest.mark.asyncio
async def test_budget_mode_is_reported(
    itinerary: Itinerary, runner: CollaboratorRunner, settings: Settings, client: FakeTextClient
) -> None:
    """Test that budget mode asks for savings and echoes the mode."""
    result = await build_optimizer(runner, settings, client).optimize(
        itinerary, mode=OptimizationMode.budget
    )

    assert result.mode == OptimizationMode.budget
    assert result.budget_optimization.source == "text_generation"
    assert client.count(ResponseSchema.budget_savings) == 1


@pytest.mark.asyncio
async def test_cancelled_run_uses_heuristics(
    itinerary: Itinerary,
    rainy: RealTimeFactors,
    runner: CollaboratorRunner,
    settings: Settings,
    client: FakeTextClient,
) -> None:
    """Test that a cancelled run still returns a complete result."""
    result = await build_optimizer(runner, settings, client).optimize(
        itinerary, rainy, cancel_token=CancelToken(cancelled=True)
    )

    assert result.cancelled is True
    assert result.analysis.degraded is True
    assert client.calls == []
    assert len(result.adaptations) == 1
    assert result.adaptations[0].data.indoor_alternatives == []
    assert all(leg.estimated for d in result.itinerary.days for leg in d.transportation)


@pytest.mark.asyncio
async def test_create_wires_stub_collaborators(
    itinerary: Itinerary, rainy: RealTimeFactors, settings: Settings
) -> None:
    """Test that the default wiring runs without any external service."""
    optimizer = Optimizer.create(settings)

    result = await optimizer.optimize(itinerary, rainy, auto_apply=True)

    assert result.analysis.degraded is False
    assert result.analysis.confidence == 0.5
    assert result.adaptations[0].suggested_change == "Consider indoor alternatives"
    assert result.itinerary.days[0].transportation[0].estimated is True
