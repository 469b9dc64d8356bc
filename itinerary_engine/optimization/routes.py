"""Per-day route sequencing: visiting order, transit legs and re-timing."""

import asyncio
import logging

from itinerary_engine.adapters.geo import estimate_leg, estimate_travel_cost
from itinerary_engine.adapters.routing import (
    DirectionsService,
    RouteOptimizationService,
    parse_permutation,
)
from itinerary_engine.config import Settings, get_settings
from itinerary_engine.models.common import TransitMode
from itinerary_engine.models.itinerary import (
    Activity,
    Day,
    TransitLeg,
    update_activity,
    update_day,
)
from itinerary_engine.models.services import (
    DirectionsRequest,
    DirectionsResult,
    OptimalOrderRequest,
)
from itinerary_engine.optimization.timing import fit_slot, to_minutes
from itinerary_engine.tools.executor import CancelToken
from itinerary_engine.tools.fallback import CollaboratorRunner, not_configured

logger = logging.getLogger(__name__)

ORDER_TOOL = "routing.optimal_order"
DIRECTIONS_TOOL = "routing.route"

# Fewer waypoints than this keep their order without asking the optimizer
MIN_WAYPOINTS_FOR_ORDERING = 3


def leg_from_directions(
    result: DirectionsResult, origin: Activity, destination: Activity
) -> TransitLeg:
    """Convert a directions response into a leg, estimating a missing cost."""
    cost = result.cost
    if cost is None:
        cost = estimate_travel_cost(result.distance_meters, result.mode)
    return TransitLeg(
        from_address=origin.location.address,
        to_address=destination.location.address,
        mode=result.mode,
        duration_minutes=result.duration_minutes,
        distance_meters=result.distance_meters,
        cost=cost,
    )


class RouteSequencer:
    """Orders each day's activities and recomputes legs and times."""

    def __init__(
        self,
        runner: CollaboratorRunner,
        route_service: RouteOptimizationService | None = None,
        directions_service: DirectionsService | None = None,
        settings: Settings | None = None,
    ) -> None:
        self._runner = runner
        self._route_service = route_service
        self._directions = directions_service
        self._settings = settings or get_settings()

    async def sequence_days(
        self, days: list[Day], cancel_token: CancelToken | None = None
    ) -> list[Day]:
        """Sequence several days concurrently, preserving day order."""
        semaphore = asyncio.Semaphore(max(1, self._settings.route_concurrency))

        async def bounded(day: Day) -> Day:
            async with semaphore:
                return await self.sequence_day(day, cancel_token)

        return list(await asyncio.gather(*(bounded(day) for day in days)))

    async def sequence_day(self, day: Day, cancel_token: CancelToken | None = None) -> Day:
        """Reorder a day's activities, rebuild its legs and re-time it.

        Activity ids are preserved. Days with fewer than two activities, and
        days whose new schedule would run past midnight, are returned unchanged.
        """
        if len(day.activities) < 2:
            return day

        ordered = await self._order(day.activities, cancel_token)

        legs: list[TransitLeg] = []
        for origin, destination in zip(ordered, ordered[1:]):
            legs.append(await self._leg(origin, destination, cancel_token))

        activities = self._retime(ordered, legs)
        if activities is None:
            logger.warning(
                f"Schedule for {day.date.isoformat()} would run past 23:59, "
                "keeping original order and times",
                extra={"structured": {"order": [a.id for a in ordered]}},
            )
            return day

        logger.info(
            f"Sequenced {len(activities)} activities on {day.date.isoformat()}",
            extra={
                "structured": {
                    "order": [a.id for a in activities],
                    "estimated_legs": sum(1 for leg in legs if leg.estimated),
                }
            },
        )
        return update_day(day, activities=activities, transportation=legs)

    def _retime(
        self, ordered: list[Activity], legs: list[TransitLeg]
    ) -> list[Activity] | None:
        """Chain activities from the first start, or None if they overrun the day."""
        cursor = to_minutes(ordered[0].start_time)
        activities: list[Activity] = []
        for index, activity in enumerate(ordered):
            if index:
                cursor += legs[index - 1].duration_minutes + self._settings.transit_buffer_min
            slot = fit_slot(cursor, activity.duration)
            if slot is None:
                return None
            start, end = slot
            activities.append(update_activity(activity, start_time=start, end_time=end))
            cursor = to_minutes(end)
        return activities

    async def _order(
        self, activities: list[Activity], cancel_token: CancelToken | None
    ) -> list[Activity]:
        size = len(activities)
        if size < MIN_WAYPOINTS_FOR_ORDERING:
            return list(activities)

        if self._route_service is None:
            outcome = not_configured(ORDER_TOOL)
        else:
            service = self._route_service
            outcome = await self._runner.attempt(
                ORDER_TOOL,
                lambda r: service.optimal_order(r.waypoints),
                OptimalOrderRequest(waypoints=[a.location.coordinates for a in activities]),
                parse=lambda order: parse_permutation(order, size),
                cancel_token=cancel_token,
            )

        order = outcome.or_else(lambda: list(range(size)))
        return [activities[i] for i in order]

    async def _leg(
        self, origin: Activity, destination: Activity, cancel_token: CancelToken | None
    ) -> TransitLeg:
        if self._directions is None:
            outcome = not_configured(DIRECTIONS_TOOL)
        else:
            service = self._directions
            outcome = await self._runner.attempt(
                DIRECTIONS_TOOL,
                lambda r: service.route(r.origin, r.destination, r.mode),
                DirectionsRequest(
                    origin=origin.location.coordinates,
                    destination=destination.location.coordinates,
                    mode=TransitMode.driving,
                ),
                parse=lambda raw: leg_from_directions(
                    DirectionsResult.model_validate(raw), origin, destination
                ),
                cancel_token=cancel_token,
            )

        return outcome.or_else(lambda: estimate_leg(origin.location, destination.location))
