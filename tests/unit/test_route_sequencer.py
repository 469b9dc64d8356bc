"""Tests for RouteSequencer."""

from datetime import time

import pytest

from factories import (
    EIFFEL_TOWER,
    LOUVRE,
    MONTMARTRE,
    NOTRE_DAME,
    FakeDirections,
    FakeRouteService,
    make_activity,
    make_itinerary,
)
from itinerary_engine.adapters.geo import estimate_leg, estimate_travel_cost
from itinerary_engine.config import Settings
from itinerary_engine.models.common import TransitMode
from itinerary_engine.models.itinerary import Day, update_activity
from itinerary_engine.models.services import DirectionsResult
from itinerary_engine.optimization.routes import RouteSequencer
from itinerary_engine.optimization.timing import to_minutes
from itinerary_engine.tools.executor import CancelToken
from itinerary_engine.tools.fallback import CollaboratorRunner


def three_stop_day() -> Day:
    itinerary = make_itinerary(
        [
            [
                make_activity("louvre", start="09:00", coordinates=LOUVRE, address="Louvre"),
                make_activity(
                    "notre_dame", start="10:00", coordinates=NOTRE_DAME, address="Notre-Dame"
                ),
                make_activity(
                    "eiffel_tower", start="11:00", coordinates=EIFFEL_TOWER, address="Eiffel"
                ),
            ]
        ]
    )
    return itinerary.days[0]


def assert_gaps_cover_legs(day: Day, buffer: int) -> None:
    for previous, current, leg in zip(day.activities, day.activities[1:], day.transportation):
        assert current.start_time > previous.start_time
        gap = to_minutes(current.start_time) - to_minutes(previous.end_time)
        assert gap >= leg.duration_minutes + buffer


@pytest.mark.asyncio
async def test_applies_optimizer_order_and_retimes(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that the returned permutation is applied and legs are rebuilt."""
    route_service = FakeRouteService([2, 0, 1])
    directions = FakeDirections()
    sequencer = RouteSequencer(runner, route_service, directions, settings)

    day = await sequencer.sequence_day(three_stop_day())

    assert [a.id for a in day.activities] == ["eiffel_tower", "louvre", "notre_dame"]
    assert route_service.calls == [[LOUVRE, NOTRE_DAME, EIFFEL_TOWER]]
    assert [(a.start_time, a.end_time) for a in day.activities] == [
        (time(11, 0), time(12, 0)),
        (time(12, 35), time(13, 35)),
        (time(14, 10), time(15, 10)),
    ]
    assert len(day.transportation) == 2
    assert day.transportation[0].from_address == "Eiffel"
    assert day.transportation[0].to_address == "Louvre"
    assert all(leg.cost == 4.0 for leg in day.transportation)
    assert all(mode == TransitMode.driving for _, _, mode in directions.calls)
    assert_gaps_cover_legs(day, settings.transit_buffer_min)


@pytest.mark.asyncio
@pytest.mark.parametrize("order", [[0, 0, 1], [0, 1], RuntimeError("optimizer down")])
async def test_bad_or_failed_order_keeps_input_order(
    runner: CollaboratorRunner, settings: Settings, order: object
) -> None:
    """Test that an invalid permutation or failure keeps the original order."""
    sequencer = RouteSequencer(runner, FakeRouteService(order), FakeDirections(), settings)

    day = await sequencer.sequence_day(three_stop_day())

    assert [a.id for a in day.activities] == ["louvre", "notre_dame", "eiffel_tower"]
    assert_gaps_cover_legs(day, settings.transit_buffer_min)


@pytest.mark.asyncio
async def test_two_activities_skip_ordering(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that fewer than three waypoints never reach the optimizer."""
    route_service = FakeRouteService([1, 0])
    itinerary = make_itinerary(
        [
            [
                make_activity("louvre"),
                make_activity("eiffel", start="10:00", coordinates=EIFFEL_TOWER),
            ]
        ]
    )
    sequencer = RouteSequencer(runner, route_service, FakeDirections(), settings)

    day = await sequencer.sequence_day(itinerary.days[0])

    assert route_service.calls == []
    assert [a.id for a in day.activities] == ["louvre", "eiffel"]
    assert len(day.transportation) == 1


@pytest.mark.asyncio
async def test_single_activity_day_unchanged(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that a day with one activity is returned as is."""
    directions = FakeDirections()
    day = make_itinerary([[make_activity("louvre")]]).days[0]
    sequencer = RouteSequencer(runner, FakeRouteService([0]), directions, settings)

    assert await sequencer.sequence_day(day) == day
    assert directions.calls == []


@pytest.mark.asyncio
async def test_missing_directions_cost_is_estimated(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that a leg without a cost gets the per-mode estimate."""
    directions = FakeDirections(
        DirectionsResult(duration_minutes=25, distance_meters=5000, mode=TransitMode.driving)
    )
    sequencer = RouteSequencer(runner, FakeRouteService([0, 1, 2]), directions, settings)

    day = await sequencer.sequence_day(three_stop_day())

    assert all(
        leg.cost == estimate_travel_cost(5000, TransitMode.driving) for leg in day.transportation
    )
    assert all(leg.estimated is False for leg in day.transportation)


@pytest.mark.asyncio
async def test_directions_failure_uses_haversine_estimate(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that failing directions fall back to estimated legs."""
    source = three_stop_day()
    sequencer = RouteSequencer(
        runner, FakeRouteService([0, 1, 2]), FakeDirections(RuntimeError("quota")), settings
    )

    day = await sequencer.sequence_day(source)

    expected = estimate_leg(source.activities[0].location, source.activities[1].location)
    assert day.transportation[0] == expected
    assert all(leg.estimated for leg in day.transportation)
    assert_gaps_cover_legs(day, settings.transit_buffer_min)


@pytest.mark.asyncio
async def test_unconfigured_services_fall_back(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test sequencing with no collaborators wired in."""
    day = await RouteSequencer(runner, settings=settings).sequence_day(three_stop_day())

    assert [a.id for a in day.activities] == ["louvre", "notre_dame", "eiffel_tower"]
    assert all(leg.estimated for leg in day.transportation)


@pytest.mark.asyncio
async def test_cancelled_token_skips_collaborators(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that cancellation leaves only heuristic results."""
    route_service = FakeRouteService([2, 1, 0])
    directions = FakeDirections()
    sequencer = RouteSequencer(runner, route_service, directions, settings)

    day = await sequencer.sequence_day(three_stop_day(), CancelToken(cancelled=True))

    assert route_service.calls == []
    assert directions.calls == []
    assert [a.id for a in day.activities] == ["louvre", "notre_dame", "eiffel_tower"]


@pytest.mark.asyncio
async def test_first_activity_end_follows_its_duration(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that a stale end time on the first activity is recomputed."""
    itinerary = make_itinerary(
        [
            [
                update_activity(make_activity("louvre", start="09:00"), end_time=time(12, 0)),
                make_activity("eiffel", start="13:00", coordinates=EIFFEL_TOWER),
            ]
        ]
    )
    sequencer = RouteSequencer(runner, None, FakeDirections(), settings)

    day = await sequencer.sequence_day(itinerary.days[0])

    assert [(a.start_time, a.end_time) for a in day.activities] == [
        (time(9, 0), time(10, 0)),
        (time(10, 35), time(11, 35)),
    ]
    assert_gaps_cover_legs(day, settings.transit_buffer_min)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    ("stops", "order"),
    [
        ([("bar", "22:00", 60), ("club", "23:00", 30), ("crepes", "23:30", 20)], [2, 0, 1]),
        ([("opera", "20:00", 180), ("dinner", "10:00", 60), ("walk", "11:00", 60)], [0, 1, 2]),
    ],
    ids=["late-chain", "long-first-stop"],
)
async def test_schedule_past_midnight_keeps_original_day(
    runner: CollaboratorRunner,
    settings: Settings,
    stops: list[tuple[str, str, int]],
    order: list[int],
) -> None:
    """Test that a re-timed day that would cross midnight is left as it was."""
    coordinates = [LOUVRE, MONTMARTRE, NOTRE_DAME]
    source = make_itinerary(
        [
            [
                make_activity(name, start=start, duration=duration, coordinates=coords)
                for (name, start, duration), coords in zip(stops, coordinates)
            ]
        ]
    ).days[0]
    sequencer = RouteSequencer(runner, FakeRouteService(order), FakeDirections(), settings)

    day = await sequencer.sequence_day(source)

    assert day == source
    slots = sorted((a.start_time, a.end_time) for a in day.activities)
    for (_, previous_end), (next_start, _) in zip(slots, slots[1:]):
        assert next_start >= previous_end


@pytest.mark.asyncio
async def test_sequence_days_preserves_day_order(
    runner: CollaboratorRunner, settings: Settings
) -> None:
    """Test that concurrent sequencing returns days in input order."""
    itinerary = make_itinerary(
        [
            [make_activity("a1"), make_activity("a2", start="11:00", coordinates=NOTRE_DAME)],
            [make_activity("b1")],
            [make_activity("c1"), make_activity("c2", start="12:00", coordinates=MONTMARTRE)],
        ]
    )
    sequencer = RouteSequencer(runner, None, FakeDirections(delay=0.01), settings)

    days = await sequencer.sequence_days(itinerary.days)

    assert [d.date for d in days] == [d.date for d in itinerary.days]
    assert [[a.id for a in d.activities] for d in days] == [["a1", "a2"], ["b1"], ["c1", "c2"]]
    assert days[1] == itinerary.days[1]
