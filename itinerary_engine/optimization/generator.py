"""Rule-based adaptation generation.

Rules are evaluated per signal and emitted in category order: weather,
event, budget, crowd. That order is a contract for deterministic output,
not a ranking. Confidences are fixed per rule.
"""

import asyncio
import logging
import uuid
from collections.abc import Callable
from datetime import UTC, date, datetime

from pydantic import TypeAdapter

from itinerary_engine.config import Settings, get_settings
from itinerary_engine.llm.client import TextGenerationService
from itinerary_engine.llm.prompts import budget_alternatives_prompt, indoor_alternatives_prompt
from itinerary_engine.models.adaptation import (
    Adaptation,
    AdaptationData,
    AdaptationTarget,
    AdaptationType,
    BudgetAlternative,
    Impact,
    IndoorAlternative,
    Priority,
)
from itinerary_engine.models.analysis import SituationAnalysis
from itinerary_engine.models.common import CrowdLevel, WeatherDependency
from itinerary_engine.models.factors import (
    CrowdReport,
    EventImpact,
    LocalEvent,
    RealTimeFactors,
    WeatherForecast,
)
from itinerary_engine.models.itinerary import Activity, Itinerary
from itinerary_engine.models.services import CompletionRequest, ResponseSchema
from itinerary_engine.tools.executor import CancelToken
from itinerary_engine.tools.fallback import CollaboratorRunner

logger = logging.getLogger(__name__)

HEAT_RECOMMENDED_TIMES = ["08:00-10:00", "17:00-19:00"]

# Activities whose cost exceeds this share of an alternative's original cost
# are candidates for substitution.
BUDGET_SUBSTITUTION_RATIO = 0.8

_indoor_alternatives = TypeAdapter(list[IndoorAlternative])
_budget_alternatives = TypeAdapter(list[BudgetAlternative])


def is_weather_exposed(activity: Activity) -> bool:
    """Outdoor activities, or ones tagged as outdoor/sightseeing."""
    tag = activity.type.lower()
    return (
        activity.weather_dependency == WeatherDependency.outdoor
        or "outdoor" in tag
        or "sightseeing" in tag
    )


def budget_usage(itinerary: Itinerary) -> float:
    """Planned cost as a share of the budget."""
    return itinerary.total_cost / itinerary.budget


def _default_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:12]}"


class AdaptationGenerator:
    """Emits scored, typed change proposals from real-time signals."""

    def __init__(
        self,
        text_client: TextGenerationService,
        runner: CollaboratorRunner,
        settings: Settings | None = None,
        id_factory: Callable[[str], str] | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._text_client = text_client
        self._runner = runner
        self._settings = settings or get_settings()
        self._new_id = id_factory or _default_id
        self._now = clock or (lambda: datetime.now(UTC))

    async def generate(
        self,
        itinerary: Itinerary,
        factors: RealTimeFactors,
        analysis: SituationAnalysis | None = None,
        cancel_token: CancelToken | None = None,
    ) -> list[Adaptation]:
        """Generate adaptations for an itinerary.

        Args:
            itinerary: Itinerary to adapt
            factors: Normalized real-time signals
            analysis: Situation summary, if one was computed (does not change
                the rule-fixed confidences)
            cancel_token: Cancels pending collaborator lookups

        Returns:
            Adaptations in weather, event, budget, crowd order
        """
        if analysis is not None and analysis.degraded:
            logger.info("Generating adaptations without a live situation analysis")

        adaptations: list[Adaptation] = []
        adaptations.extend(
            await self._weather_adaptations(itinerary, factors.weather, cancel_token)
        )
        adaptations.extend(self._event_adaptations(itinerary, factors.events))
        budget = await self._budget_adaptation(itinerary, cancel_token)
        if budget is not None:
            adaptations.append(budget)
        adaptations.extend(self._crowd_adaptations(itinerary, factors.crowd_density))

        logger.info(
            f"Generated {len(adaptations)} adaptation(s) for {itinerary.destination}",
            extra={"structured": {"types": [a.kind for a in adaptations]}},
        )
        return adaptations

    def _target_for_date(
        self, itinerary: Itinerary, day_date: date, exposed_only: bool = False
    ) -> AdaptationTarget:
        day_index = itinerary.find_day(day_date)
        activity_ids: list[str] = []
        if day_index is not None:
            activity_ids = [
                a.id
                for a in itinerary.days[day_index].activities
                if not exposed_only or is_weather_exposed(a)
            ]
        return AdaptationTarget(day_date=day_date, day_index=day_index, activity_ids=activity_ids)

    async def _find_indoor_alternatives(
        self, destination: str, day_date: date, cancel_token: CancelToken | None
    ) -> list[IndoorAlternative]:
        request = CompletionRequest(
            prompt=indoor_alternatives_prompt(destination, day_date),
            schema_hint=ResponseSchema.indoor_alternatives,
        )
        outcome = await self._runner.attempt(
            "text.indoor_alternatives",
            lambda r: self._text_client.complete(r.prompt, r.schema_hint),
            request,
            parse=_indoor_alternatives.validate_python,
            cancel_token=cancel_token,
        )
        return outcome.or_else(list)

    async def _weather_adaptations(
        self,
        itinerary: Itinerary,
        forecasts: list[WeatherForecast],
        cancel_token: CancelToken | None,
    ) -> list[Adaptation]:
        threshold = self._settings.rain_precipitation_threshold
        rainy = [w for w in forecasts if w.precipitation > threshold]

        # Lookups run concurrently; emission below follows forecast order
        lookups = await asyncio.gather(
            *(
                self._find_indoor_alternatives(itinerary.destination, w.date, cancel_token)
                for w in rainy
            )
        )
        alternatives_by_date = {w.date: alts for w, alts in zip(rainy, lookups, strict=True)}

        adaptations: list[Adaptation] = []
        for forecast in forecasts:
            if forecast.precipitation > threshold:
                alternatives = alternatives_by_date[forecast.date]
                names = ", ".join(a.name for a in alternatives[:2])
                suggestion = (
                    f"Consider indoor alternatives: {names}"
                    if names
                    else "Consider indoor alternatives"
                )
                adaptations.append(
                    Adaptation(
                        id=self._new_id(f"weather_{forecast.date.isoformat()}"),
                        type=AdaptationType.weather,
                        priority=Priority.high,
                        reason=(
                            f"High chance of rain ({forecast.precipitation:g}%) "
                            f"on {forecast.date.isoformat()}"
                        ),
                        original_activity="Outdoor activities",
                        suggested_change=suggestion,
                        impact=Impact.moderate,
                        confidence=0.9,
                        created_at=self._now(),
                        target=self._target_for_date(itinerary, forecast.date, exposed_only=True),
                        data=AdaptationData(indoor_alternatives=alternatives),
                    )
                )

            if forecast.temperature > self._settings.heat_temperature_threshold:
                adaptations.append(
                    Adaptation(
                        id=self._new_id(f"weather_heat_{forecast.date.isoformat()}"),
                        type=AdaptationType.weather,
                        priority=Priority.medium,
                        reason=(
                            f"Extreme heat ({forecast.temperature:g}°C) expected "
                            f"on {forecast.date.isoformat()}"
                        ),
                        suggested_change=(
                            "Schedule indoor activities during peak hours (11 AM - 4 PM)"
                        ),
                        impact=Impact.minor,
                        confidence=0.8,
                        created_at=self._now(),
                        target=self._target_for_date(itinerary, forecast.date, exposed_only=True),
                        data=AdaptationData(recommended_times=HEAT_RECOMMENDED_TIMES),
                    )
                )

        return adaptations

    def _event_adaptations(
        self, itinerary: Itinerary, events: list[LocalEvent]
    ) -> list[Adaptation]:
        adaptations: list[Adaptation] = []
        for event in events:
            target = self._target_for_date(itinerary, event.date)
            if event.impact == EventImpact.positive:
                adaptations.append(
                    Adaptation(
                        id=self._new_id(f"event_{event.id}"),
                        type=AdaptationType.event,
                        priority=Priority.medium,
                        reason=(
                            f'Special event "{event.name}" happening on '
                            f"{event.date.isoformat()}"
                        ),
                        suggested_change=f"Add {event.name} to your itinerary",
                        impact=Impact.positive,
                        confidence=0.7,
                        created_at=self._now(),
                        target=target,
                        data=AdaptationData(event=event),
                    )
                )
            elif event.impact == EventImpact.negative:
                adaptations.append(
                    Adaptation(
                        id=self._new_id(f"event_avoid_{event.id}"),
                        type=AdaptationType.event,
                        priority=Priority.high,
                        reason=f"{event.name} may cause disruptions on {event.date.isoformat()}",
                        suggested_change="Avoid affected areas or reschedule activities",
                        impact=Impact.moderate,
                        confidence=0.8,
                        created_at=self._now(),
                        target=target,
                    )
                )
        return adaptations

    async def _budget_adaptation(
        self, itinerary: Itinerary, cancel_token: CancelToken | None
    ) -> Adaptation | None:
        usage = budget_usage(itinerary)
        if usage <= self._settings.budget_usage_threshold:
            return None

        request = CompletionRequest(
            prompt=budget_alternatives_prompt(itinerary),
            schema_hint=ResponseSchema.budget_alternatives,
        )
        outcome = await self._runner.attempt(
            "text.budget_alternatives",
            lambda r: self._text_client.complete(r.prompt, r.schema_hint),
            request,
            parse=_budget_alternatives.validate_python,
            cancel_token=cancel_token,
        )
        alternatives = outcome.or_else(list)

        activity_ids = [
            activity.id
            for day in itinerary.days
            for activity in day.activities
            if any(
                activity.cost > BUDGET_SUBSTITUTION_RATIO * alt.original_cost
                for alt in alternatives
            )
        ]

        return Adaptation(
            id=self._new_id("budget"),
            type=AdaptationType.budget,
            priority=Priority.high,
            reason=f"Trip cost ({usage * 100:.1f}%) approaching budget limit",
            suggested_change="Replace expensive activities with budget alternatives",
            impact=Impact.major,
            confidence=0.9,
            created_at=self._now(),
            target=AdaptationTarget(activity_ids=activity_ids),
            data=AdaptationData(budget_alternatives=alternatives),
        )

    def _crowd_adaptations(
        self, itinerary: Itinerary, reports: list[CrowdReport]
    ) -> list[Adaptation]:
        adaptations: list[Adaptation] = []
        for report in reports:
            if report.level not in (CrowdLevel.high, CrowdLevel.extreme):
                continue

            activity_ids = [
                activity.id
                for day in itinerary.days
                for activity in day.activities
                if report.location in activity.location.address
            ]
            best_times = " or ".join(report.best_times) or "early morning or late afternoon"
            adaptations.append(
                Adaptation(
                    id=self._new_id(f"crowd_{report.location}"),
                    type=AdaptationType.crowd,
                    priority=Priority.medium,
                    reason=f"{report.location} has {report.level.value} crowd levels",
                    suggested_change=f"Visit during off-peak hours: {best_times}",
                    impact=Impact.minor,
                    confidence=0.8,
                    created_at=self._now(),
                    target=AdaptationTarget(
                        day_date=report.date,
                        day_index=itinerary.find_day(report.date),
                        activity_ids=activity_ids,
                        location=report.location,
                    ),
                    data=AdaptationData(recommended_times=list(report.best_times)),
                )
            )
        return adaptations
