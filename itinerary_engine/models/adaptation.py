"""Adaptation models - scored, typed proposals to change an itinerary."""

from datetime import UTC, date, datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from itinerary_engine.models.factors import LocalEvent


class AdaptationType(str, Enum):
    """Signal category an adaptation responds to."""

    weather = "weather"
    event = "event"
    budget = "budget"
    crowd = "crowd"
    time = "time"


class Priority(str, Enum):
    """Adaptation priority."""

    low = "low"
    medium = "medium"
    high = "high"


class Impact(str, Enum):
    """Expected impact of applying an adaptation."""

    minor = "minor"
    moderate = "moderate"
    major = "major"
    positive = "positive"


class IndoorAlternative(BaseModel):
    """Indoor activity suggested for a rainy day."""

    name: str = Field(..., min_length=1)
    type: str = "indoor"
    description: str = ""
    estimated_cost: float = Field(default=0.0, ge=0)
    duration: str | None = None
    rating: float | None = Field(default=None, ge=0, le=5)


class BudgetAlternative(BaseModel):
    """Cheaper substitute for a spending category."""

    category: str
    original_cost: float = Field(..., ge=0)
    alternative_cost: float = Field(..., ge=0)
    savings: float = 0.0
    alternative: str = Field(..., min_length=1)
    quality_score: float | None = None


class AdaptationTarget(BaseModel):
    """Structured reference to the part of the itinerary an adaptation touches."""

    model_config = ConfigDict(frozen=True)

    day_date: date | None = None
    day_index: int | None = Field(default=None, ge=0)
    activity_ids: list[str] = Field(default_factory=list)
    location: str | None = None


class AdaptationData(BaseModel):
    """Type-specific payload."""

    model_config = ConfigDict(frozen=True)

    indoor_alternatives: list[IndoorAlternative] = Field(default_factory=list)
    event: LocalEvent | None = None
    budget_alternatives: list[BudgetAlternative] = Field(default_factory=list)
    recommended_times: list[str] = Field(default_factory=list)


class Adaptation(BaseModel):
    """A proposal to change part of an itinerary in response to a signal.

    `type` also accepts unknown strings so stored adaptations from newer
    producers can be loaded; the applier logs and ignores them.
    """

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    type: AdaptationType | str = Field(..., union_mode="left_to_right")
    priority: Priority
    reason: str
    suggested_change: str
    impact: Impact
    confidence: float = Field(..., ge=0, le=1)
    original_activity: str | None = None
    accepted: bool = False
    applied_at: datetime | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    target: AdaptationTarget = Field(default_factory=AdaptationTarget)
    data: AdaptationData = Field(default_factory=AdaptationData)

    @property
    def kind(self) -> str:
        """Type name, including types this engine does not know."""
        if isinstance(self.type, AdaptationType):
            return self.type.value
        return self.type

    def mark_applied(self, now: datetime) -> "Adaptation":
        """Return an accepted copy; applied_at is only stamped the first time."""
        return self.model_copy(
            update={"accepted": True, "applied_at": self.applied_at or now},
        )
