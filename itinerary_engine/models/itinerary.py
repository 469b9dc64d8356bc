"""Itinerary models - the trip plan handed to the engine by the caller.

Entity records are frozen. Changes go through the update functions at the
bottom of this module, which rebuild the record and run full validation so
the timing and identity invariants hold after every mutation.
"""

from datetime import date, time
from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator

from itinerary_engine.models.common import (
    CrowdLevel,
    Location,
    TransitMode,
    TravelStyle,
    WeatherDependency,
)


class Activity(BaseModel):
    """Single scheduled, located, timed and costed trip event."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    type: str = "sightseeing"
    description: str = ""
    location: Location = Field(default_factory=Location)
    start_time: time
    end_time: time
    duration: int = Field(..., gt=0, description="Minutes")
    cost: float = Field(default=0.0, ge=0)
    rating: float = Field(default=4.0, ge=0, le=5)
    weather_dependency: WeatherDependency = WeatherDependency.flexible
    crowd_level: CrowdLevel | None = None

    # Annotations written by adaptations
    notes: str | None = None
    recommended_times: list[str] = Field(default_factory=list)
    crowd_advisory: str | None = None
    weather_adapted: bool = False
    event_added: bool = False
    budget_optimized: bool = False
    crowd_optimized: bool = False

    @model_validator(mode="after")
    def validate_start_before_end(self) -> "Activity":
        """Ensure the activity ends after it starts."""
        if self.start_time >= self.end_time:
            raise ValueError(
                f"Activity {self.id}: start_time {self.start_time} must be before "
                f"end_time {self.end_time}"
            )
        return self


class TransitLeg(BaseModel):
    """Travel between two consecutive activities."""

    model_config = ConfigDict(frozen=True)

    from_address: str
    to_address: str
    mode: TransitMode
    duration_minutes: int = Field(..., ge=0)
    distance_meters: int = Field(..., ge=0)
    cost: float = Field(default=0.0, ge=0)
    estimated: bool = False


class Accommodation(BaseModel):
    """Lodging for the night."""

    model_config = ConfigDict(frozen=True)

    name: str = ""
    address: str = ""
    cost_per_night: float = Field(default=0.0, ge=0)


class Meal(BaseModel):
    """Planned meal."""

    model_config = ConfigDict(frozen=True)

    name: str
    scheduled_at: time | None = None
    cost: float = Field(default=0.0, ge=0)


class Day(BaseModel):
    """One calendar day of the itinerary."""

    model_config = ConfigDict(frozen=True)

    date: date
    activities: list[Activity] = Field(default_factory=list)
    transportation: list[TransitLeg] = Field(default_factory=list)
    accommodation: Accommodation | None = None
    meals: list[Meal] = Field(default_factory=list)

    @computed_field  # type: ignore[prop-decorator]
    @property
    def total_cost(self) -> float:
        """Activities + meals + transit + lodging for the day."""
        total = sum(a.cost for a in self.activities)
        total += sum(m.cost for m in self.meals)
        total += sum(leg.cost for leg in self.transportation)
        if self.accommodation is not None:
            total += self.accommodation.cost_per_night
        return round(total, 2)

    @property
    def travel_time_minutes(self) -> int:
        """Total minutes spent in transit."""
        return sum(leg.duration_minutes for leg in self.transportation)


class Itinerary(BaseModel):
    """Complete multi-day trip plan."""

    model_config = ConfigDict(frozen=True)

    destination: str = Field(..., min_length=1)
    duration: int = Field(..., ge=1, description="Days")
    budget: float = Field(..., gt=0)
    travelers: int = Field(default=1, ge=1)
    travel_style: TravelStyle = TravelStyle.default
    preferences: list[str] = Field(default_factory=list)
    days: list[Day] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_unique_activity_ids(self) -> "Itinerary":
        """Ensure activity ids are unique across the itinerary."""
        seen: set[str] = set()
        for day in self.days:
            for activity in day.activities:
                if activity.id in seen:
                    raise ValueError(f"Duplicate activity id: {activity.id}")
                seen.add(activity.id)
        return self

    @property
    def total_cost(self) -> float:
        """Sum of all day totals."""
        return round(sum(day.total_cost for day in self.days), 2)

    def find_day(self, day_date: date) -> int | None:
        """Return the index of the day with the given date, if any."""
        for index, day in enumerate(self.days):
            if day.date == day_date:
                return index
        return None


ModelT = TypeVar("ModelT", bound=BaseModel)


def _rebuild(record: ModelT, changes: dict[str, Any]) -> ModelT:
    """Rebuild a frozen record with changes applied, re-running validation."""
    data = {name: getattr(record, name) for name in type(record).model_fields}
    unknown = set(changes) - set(data)
    if unknown:
        raise ValueError(f"Unknown fields for {type(record).__name__}: {sorted(unknown)}")
    data.update(changes)
    return type(record).model_validate(data)


def update_activity(activity: Activity, **changes: Any) -> Activity:
    """Return a validated copy of an activity with changes applied."""
    return _rebuild(activity, changes)


def update_day(day: Day, **changes: Any) -> Day:
    """Return a validated copy of a day with changes applied."""
    return _rebuild(day, changes)


def update_itinerary(itinerary: Itinerary, **changes: Any) -> Itinerary:
    """Return a validated copy of an itinerary with changes applied."""
    return _rebuild(itinerary, changes)


def replace_day(itinerary: Itinerary, index: int, day: Day) -> Itinerary:
    """Return a validated copy of an itinerary with one day replaced."""
    if not 0 <= index < len(itinerary.days):
        raise IndexError(f"Day index {index} out of range")
    days = list(itinerary.days)
    days[index] = day
    return update_itinerary(itinerary, days=days)
