"""Real-time factor models - normalized signals supplied by data providers."""

from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, model_validator

from itinerary_engine.config import HEAT_TEMPERATURE_THRESHOLD, RAIN_PRECIPITATION_THRESHOLD
from itinerary_engine.models.common import CrowdLevel


class EventImpact(str, Enum):
    """Expected effect of a local event on the trip."""

    positive = "positive"
    negative = "negative"


def default_advisory(
    precipitation: float, temperature: float, condition: str | None = None
) -> str | None:
    """Derive a weather advisory from a normalized forecast."""
    if precipitation > RAIN_PRECIPITATION_THRESHOLD:
        return "High chance of rain - plan indoor activities"
    if temperature > HEAT_TEMPERATURE_THRESHOLD:
        return "Very hot - avoid outdoor activities during midday"
    if temperature < 5:
        return "Very cold - dress warmly and consider indoor alternatives"
    if condition and condition.lower() == "clear" and 20 < temperature < 30:
        return "Perfect weather for outdoor activities"
    return None


class WeatherForecast(BaseModel):
    """Daily forecast."""

    date: date
    precipitation: float = Field(default=0.0, ge=0, le=100, description="Percent")
    temperature: float = Field(default=20.0, description="Celsius")
    condition: str | None = None
    advisory: str | None = None

    @model_validator(mode="after")
    def fill_advisory(self) -> "WeatherForecast":
        """Derive an advisory when the provider sent none."""
        if self.advisory is None:
            self.advisory = default_advisory(self.precipitation, self.temperature, self.condition)
        return self


class LocalEvent(BaseModel):
    """Local event that may enhance or disrupt the trip."""

    id: str
    name: str
    date: date
    location: str = ""
    impact: EventImpact
    type: str = "event"
    description: str = ""
    coordinates: tuple[float, float] | None = None


class CrowdReport(BaseModel):
    """Crowd density for a location on a date."""

    location: str
    date: date
    level: CrowdLevel
    best_times: list[str] = Field(default_factory=list)
    peak_hours: list[str] = Field(default_factory=list)


class RealTimeFactors(BaseModel):
    """Bundle of signals driving adaptation generation."""

    weather: list[WeatherForecast] = Field(default_factory=list)
    events: list[LocalEvent] = Field(default_factory=list)
    crowd_density: list[CrowdReport] = Field(default_factory=list)
    # Road/transit status, advisory only
    transportation: dict[str, Any] = Field(default_factory=dict)
    last_updated: datetime | None = None
