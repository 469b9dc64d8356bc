"""Common types and enums shared across all models."""

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Geo(BaseModel):
    """Geographic coordinates (WGS84)."""

    lat: float = Field(..., ge=-90, le=90)
    lon: float = Field(..., ge=-180, le=180)


class Location(BaseModel):
    """Street address plus [longitude, latitude] pair."""

    model_config = ConfigDict(frozen=True)

    address: str = ""
    coordinates: tuple[float, float] = (0.0, 0.0)

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: tuple[float, float]) -> tuple[float, float]:
        """Ensure [longitude, latitude] are in WGS84 range."""
        lon, lat = v
        if not -180 <= lon <= 180 or not -90 <= lat <= 90:
            raise ValueError(f"coordinates out of range (expected [lon, lat]): {v}")
        return v

    @property
    def geo(self) -> Geo:
        """Coordinates as a Geo (note the lon/lat order of `coordinates`)."""
        lon, lat = self.coordinates
        return Geo(lat=lat, lon=lon)


class TravelStyle(str, Enum):
    """Travel style selecting the budget split."""

    luxury = "luxury"
    comfortable = "comfortable"
    budget = "budget"
    backpacker = "backpacker"
    default = "default"


class WeatherDependency(str, Enum):
    """How strongly an activity depends on the weather."""

    outdoor = "outdoor"
    indoor = "indoor"
    flexible = "flexible"


class CrowdLevel(str, Enum):
    """Crowd density level."""

    low = "low"
    medium = "medium"
    high = "high"
    extreme = "extreme"


class TransitMode(str, Enum):
    """Transit mode."""

    walking = "walking"
    driving = "driving"
    cycling = "cycling"
    transit = "transit"


class RiskLevel(str, Enum):
    """Overall risk of a trip situation."""

    low = "low"
    medium = "medium"
    high = "high"


class Provenance(BaseModel):
    """Provenance metadata for collaborator results."""

    source: str  # Collaborator identifier (e.g., "text.situation_analysis", "routing.route")
    ref_id: str | None = None
    source_url: str | None = None
    fetched_at: datetime
    cache_hit: bool | None = None
    response_digest: str | None = None
