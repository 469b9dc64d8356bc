"""Applies adaptations to an itinerary.

Every handler returns a new itinerary built through the update functions in
`itinerary_engine.models.itinerary`; the input is never mutated. A handler
that finds nothing to change logs a warning and reports `applied=False`.
"""

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, time

from itinerary_engine.config import Settings, get_settings
from itinerary_engine.errors import AdaptationNotFoundError, ItineraryValidationError
from itinerary_engine.models.adaptation import Adaptation, AdaptationType
from itinerary_engine.models.common import Location, WeatherDependency
from itinerary_engine.models.itinerary import (
    Activity,
    Day,
    Itinerary,
    update_activity,
    update_day,
    update_itinerary,
)
from itinerary_engine.optimization.generator import is_weather_exposed
from itinerary_engine.optimization.timing import fit_slot, parse_hhmm, to_minutes

logger = logging.getLogger(__name__)

EVENT_START = time(19, 0)
EVENT_END = time(21, 0)
EVENT_DURATION_MIN = 120
EVENT_RATING = 4.5

CROWD_DEFAULT_TIMES = ["09:00-11:00", "16:00-18:00"]
HEAT_NOTE = "Extreme heat expected - visit during the recommended times"

# Activities costing more than this share of an alternative's original cost
# get replaced by the alternative.
BUDGET_REPLACEMENT_RATIO = 0.8


@dataclass(frozen=True)
class ApplyResult:
    """Outcome of applying one adaptation."""

    itinerary: Itinerary
    adaptation: Adaptation
    applied: bool


class AdaptationApplier:
    """Dispatches adaptations to per-type handlers."""

    def __init__(
        self,
        settings: Settings | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._settings = settings or get_settings()
        self._now = clock or (lambda: datetime.now(UTC))
        self._handlers: dict[str, Callable[[Itinerary, Adaptation], Itinerary | None]] = {
            AdaptationType.weather.value: self._apply_weather,
            AdaptationType.event.value: self._apply_event,
            AdaptationType.budget.value: self._apply_budget,
            AdaptationType.crowd.value: self._apply_crowd,
            AdaptationType.time.value: self._apply_time,
        }

    def apply(self, itinerary: Itinerary, adaptation: Adaptation) -> ApplyResult:
        """Apply one adaptation.

        Returns the unchanged itinerary and adaptation when the type is
        unknown or the target matches nothing.

        Raises:
            ItineraryValidationError: If no itinerary is given
        """
        if itinerary is None:
            raise ItineraryValidationError("Itinerary is required")

        kind = adaptation.kind
        handler = self._handlers.get(kind)
        if handler is None:
            logger.warning(f"Unknown adaptation type: {kind} (adaptation {adaptation.id})")
            return ApplyResult(itinerary=itinerary, adaptation=adaptation, applied=False)

        updated = handler(itinerary, adaptation)
        if updated is None:
            logger.warning(
                f"Adaptation {adaptation.id} ({kind}) matched nothing in the itinerary",
                extra={"structured": {"target": adaptation.target.model_dump(mode="json")}},
            )
            return ApplyResult(itinerary=itinerary, adaptation=adaptation, applied=False)

        logger.info(f"Applied {kind} adaptation {adaptation.id}")
        return ApplyResult(
            itinerary=updated, adaptation=adaptation.mark_applied(self._now()), applied=True
        )

    def apply_by_id(
        self, itinerary: Itinerary, adaptations: list[Adaptation], adaptation_id: str
    ) -> ApplyResult:
        """Apply the adaptation with the given id.

        Raises:
            ItineraryValidationError: If the id is missing
            AdaptationNotFoundError: If no adaptation has that id
        """
        if not adaptation_id:
            raise ItineraryValidationError("Adaptation id is required")

        for adaptation in adaptations:
            if adaptation.id == adaptation_id:
                return self.apply(itinerary, adaptation)

        raise AdaptationNotFoundError(f"Adaptation {adaptation_id} not found")

    def apply_all(
        self, itinerary: Itinerary, adaptations: list[Adaptation]
    ) -> tuple[Itinerary, list[Adaptation]]:
        """Apply adaptations in order; returns the itinerary and updated adaptations."""
        updated: list[Adaptation] = []
        for adaptation in adaptations:
            result = self.apply(itinerary, adaptation)
            itinerary = result.itinerary
            updated.append(result.adaptation)
        return itinerary, updated

    def _day_index(self, itinerary: Itinerary, adaptation: Adaptation) -> int | None:
        target = adaptation.target
        if target.day_date is not None:
            return itinerary.find_day(target.day_date)
        if target.day_index is not None and target.day_index < len(itinerary.days):
            return target.day_index
        if adaptation.data.event is not None:
            return itinerary.find_day(adaptation.data.event.date)
        return None

    def _replace_days(
        self, itinerary: Itinerary, changed: dict[int, Day]
    ) -> Itinerary | None:
        if not changed:
            return None
        days = [changed.get(i, day) for i, day in enumerate(itinerary.days)]
        return update_itinerary(itinerary, days=days)

    def _apply_weather(self, itinerary: Itinerary, adaptation: Adaptation) -> Itinerary | None:
        index = self._day_index(itinerary, adaptation)
        if index is None:
            return None

        day = itinerary.days[index]
        wanted = set(adaptation.target.activity_ids)
        alternatives = adaptation.data.indoor_alternatives
        recommended = adaptation.data.recommended_times

        activities: list[Activity] = []
        changed = False
        for activity in day.activities:
            selected = (not wanted or activity.id in wanted) and is_weather_exposed(activity)
            if selected and alternatives:
                alternative = alternatives[0]
                activity = update_activity(
                    activity,
                    name=alternative.name,
                    description=alternative.description,
                    cost=alternative.estimated_cost,
                    type="indoor",
                    weather_dependency=WeatherDependency.indoor,
                    weather_adapted=True,
                )
                changed = True
            elif selected and recommended:
                activity = update_activity(
                    activity,
                    recommended_times=list(recommended),
                    notes=HEAT_NOTE,
                    weather_adapted=True,
                )
                changed = True
            activities.append(activity)

        if not changed:
            return None
        return self._replace_days(itinerary, {index: update_day(day, activities=activities)})

    def _apply_event(self, itinerary: Itinerary, adaptation: Adaptation) -> Itinerary | None:
        event = adaptation.data.event
        index = self._day_index(itinerary, adaptation)
        if event is None or index is None:
            return None

        day = itinerary.days[index]
        activity_id = f"event_{event.id}"
        if any(a.id == activity_id for d in itinerary.days for a in d.activities):
            logger.info(f"Event {event.id} already in itinerary")
            return itinerary

        before = [a for a in day.activities if a.start_time <= EVENT_START]
        # No coordinates from the provider: place it next to the preceding activity
        coordinates = event.coordinates or (
            before[-1].location.coordinates if before else (0.0, 0.0)
        )
        event_activity = Activity(
            id=activity_id,
            name=event.name,
            type=event.type,
            description=event.description,
            location=Location(address=event.location, coordinates=coordinates),
            start_time=EVENT_START,
            end_time=EVENT_END,
            duration=EVENT_DURATION_MIN,
            cost=0.0,
            rating=EVENT_RATING,
            event_added=True,
        )
        activities = sorted([*day.activities, event_activity], key=lambda a: a.start_time)
        return self._replace_days(itinerary, {index: update_day(day, activities=activities)})

    def _apply_budget(self, itinerary: Itinerary, adaptation: Adaptation) -> Itinerary | None:
        alternatives = adaptation.data.budget_alternatives
        if not alternatives:
            return None

        days = list(itinerary.days)
        changed: dict[int, Day] = {}
        for alternative in alternatives:
            threshold = BUDGET_REPLACEMENT_RATIO * alternative.original_cost
            for index, day in enumerate(days):
                if not any(a.cost > threshold for a in day.activities):
                    continue
                activities = [
                    update_activity(
                        a,
                        name=alternative.alternative,
                        cost=alternative.alternative_cost,
                        budget_optimized=True,
                    )
                    if a.cost > threshold
                    else a
                    for a in day.activities
                ]
                days[index] = update_day(day, activities=activities)
                changed[index] = days[index]

        return self._replace_days(itinerary, changed)

    def _apply_crowd(self, itinerary: Itinerary, adaptation: Adaptation) -> Itinerary | None:
        location = adaptation.target.location
        if not location:
            return None

        recommended = list(adaptation.data.recommended_times) or list(CROWD_DEFAULT_TIMES)
        changed: dict[int, Day] = {}
        for index, day in enumerate(itinerary.days):
            if not any(location in a.location.address for a in day.activities):
                continue
            activities = [
                update_activity(
                    a,
                    crowd_advisory=adaptation.suggested_change,
                    recommended_times=recommended,
                    crowd_optimized=True,
                )
                if location in a.location.address
                else a
                for a in day.activities
            ]
            changed[index] = update_day(day, activities=activities)

        return self._replace_days(itinerary, changed)

    def _apply_time(self, itinerary: Itinerary, adaptation: Adaptation) -> Itinerary | None:
        target = adaptation.target
        if target.day_date is None and target.day_index is None:
            indices = list(range(len(itinerary.days)))
        else:
            index = self._day_index(itinerary, adaptation)
            indices = [] if index is None else [index]

        day_start = to_minutes(parse_hhmm(self._settings.day_start))
        buffer = self._settings.time_adaptation_buffer_min

        changed: dict[int, Day] = {}
        for index in indices:
            day = itinerary.days[index]
            if not day.activities:
                continue

            ordered = sorted(
                day.activities,
                key=lambda a: abs(a.location.coordinates[0]) + abs(a.location.coordinates[1]),
            )
            cursor = day_start
            activities: list[Activity] = []
            for activity in ordered:
                slot = fit_slot(cursor, activity.duration)
                if slot is None:
                    break
                start, end = slot
                activities.append(update_activity(activity, start_time=start, end_time=end))
                cursor = to_minutes(end) + buffer

            if len(activities) < len(ordered):
                logger.warning(
                    f"Rescheduled {day.date.isoformat()} would run past 23:59, keeping its times"
                )
                continue

            # Legs no longer match the new order
            changed[index] = update_day(day, activities=activities, transportation=[])

        return self._replace_days(itinerary, changed)
