"""Optimization result models - consolidated output for the caller."""

from pydantic import BaseModel, Field

from itinerary_engine.models.adaptation import Adaptation
from itinerary_engine.models.analysis import SituationAnalysis
from itinerary_engine.models.budget import BudgetAllocation, BudgetOptimization, OptimizationMode
from itinerary_engine.models.itinerary import Itinerary


class OptimizationSummary(BaseModel):
    """Headline numbers for the change summary."""

    total_changes: int
    budget_savings: float
    time_optimization: int = Field(..., description="Transit minutes saved")
    experience_score: float


class OptimizationResult(BaseModel):
    """Everything one optimize() call produces."""

    itinerary: Itinerary
    adaptations: list[Adaptation]
    applied_adaptation_ids: list[str] = Field(default_factory=list)
    analysis: SituationAnalysis
    budget_allocation: BudgetAllocation
    budget_optimization: BudgetOptimization
    confidence: float
    mode: OptimizationMode
    summary: OptimizationSummary
    cancelled: bool = False
