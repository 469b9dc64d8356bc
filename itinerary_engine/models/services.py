"""Collaborator request/response payloads.

Requests are pydantic models so the executor can derive deterministic cache
keys from them.
"""

from enum import Enum

from pydantic import BaseModel, Field

from itinerary_engine.models.common import TransitMode


class ResponseSchema(str, Enum):
    """Shape of the JSON expected back from the text-generation collaborator."""

    situation_analysis = "situation_analysis"
    indoor_alternatives = "indoor_alternatives"
    budget_alternatives = "budget_alternatives"
    budget_savings = "budget_savings"


class CompletionRequest(BaseModel):
    """Prompt for the text-generation collaborator."""

    prompt: str
    schema_hint: ResponseSchema


class OptimalOrderRequest(BaseModel):
    """Waypoints as [longitude, latitude] pairs."""

    waypoints: list[tuple[float, float]]


class DirectionsRequest(BaseModel):
    """Route between two [longitude, latitude] points."""

    origin: tuple[float, float]
    destination: tuple[float, float]
    mode: TransitMode = TransitMode.driving


class DirectionsResult(BaseModel):
    """Normalized directions response."""

    duration_minutes: int = Field(..., ge=0)
    distance_meters: int = Field(..., ge=0)
    cost: float | None = Field(default=None, ge=0)
    mode: TransitMode = TransitMode.driving
