"""Budget models - category allocation and savings suggestions."""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, Field, model_validator

from itinerary_engine.models.common import TravelStyle

PERCENTAGE_TOLERANCE = 1e-6


class OptimizationMode(str, Enum):
    """What the optimizer should favour."""

    balanced = "balanced"
    budget = "budget"


class CategoryAllocation(BaseModel):
    """Spend target for one category."""

    percentage: float = Field(..., ge=0, le=1)
    total: float
    daily: float


class BudgetAllocation(BaseModel):
    """Per-category spend targets for an itinerary."""

    travel_style: TravelStyle
    total: float
    daily_average: float
    per_person: float
    accommodation: CategoryAllocation
    food: CategoryAllocation
    activities: CategoryAllocation
    transportation: CategoryAllocation
    potential_savings: float
    tips: list[str] = Field(default_factory=list)

    @model_validator(mode="after")
    def validate_percentages_sum_to_one(self) -> "BudgetAllocation":
        """Ensure the four category percentages sum to 1.0."""
        total = sum(
            c.percentage
            for c in (self.accommodation, self.food, self.activities, self.transportation)
        )
        if abs(total - 1.0) > PERCENTAGE_TOLERANCE:
            raise ValueError(f"Category percentages must sum to 1.0, got {total}")
        return self


class CategorySaving(BaseModel):
    """Savings suggestion for one category."""

    amount: float = Field(default=0.0, ge=0)
    method: str = ""


class BudgetSavings(BaseModel):
    """Category savings as returned by the text-generation collaborator."""

    accommodation_savings: CategorySaving | None = None
    transportation_savings: CategorySaving | None = None
    activity_savings: CategorySaving | None = None
    food_savings: CategorySaving | None = None
    total_savings: float = Field(default=0.0, ge=0)


class BudgetOptimization(BaseModel):
    """Outcome of a budget optimization pass."""

    total_savings: float = 0.0
    final_budget: float
    optimization_mode: OptimizationMode = OptimizationMode.balanced
    accommodation_savings: CategorySaving | None = None
    transportation_savings: CategorySaving | None = None
    activity_savings: CategorySaving | None = None
    food_savings: CategorySaving | None = None
    source: Literal["text_generation", "none", "fallback"] = "none"
