"""Models package - re-exports for convenience."""

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
from itinerary_engine.models.budget import (
    BudgetAllocation,
    BudgetOptimization,
    BudgetSavings,
    CategoryAllocation,
    CategorySaving,
    OptimizationMode,
)
from itinerary_engine.models.common import (
    CrowdLevel,
    Geo,
    Location,
    Provenance,
    RiskLevel,
    TransitMode,
    TravelStyle,
    WeatherDependency,
)
from itinerary_engine.models.factors import (
    CrowdReport,
    EventImpact,
    LocalEvent,
    RealTimeFactors,
    WeatherForecast,
)
from itinerary_engine.models.itinerary import (
    Accommodation,
    Activity,
    Day,
    Itinerary,
    Meal,
    TransitLeg,
    replace_day,
    update_activity,
    update_day,
    update_itinerary,
)
from itinerary_engine.models.optimization import OptimizationResult, OptimizationSummary
from itinerary_engine.models.services import (
    CompletionRequest,
    DirectionsRequest,
    DirectionsResult,
    OptimalOrderRequest,
    ResponseSchema,
)

__all__ = [
    # Common
    "Geo",
    "Location",
    "TravelStyle",
    "WeatherDependency",
    "CrowdLevel",
    "TransitMode",
    "RiskLevel",
    "Provenance",
    # Itinerary
    "Itinerary",
    "Day",
    "Activity",
    "TransitLeg",
    "Accommodation",
    "Meal",
    "update_activity",
    "update_day",
    "update_itinerary",
    "replace_day",
    # Real-time factors
    "RealTimeFactors",
    "WeatherForecast",
    "LocalEvent",
    "EventImpact",
    "CrowdReport",
    # Adaptations
    "Adaptation",
    "AdaptationType",
    "AdaptationTarget",
    "AdaptationData",
    "Priority",
    "Impact",
    "IndoorAlternative",
    "BudgetAlternative",
    # Analysis
    "SituationAnalysis",
    # Budget
    "BudgetAllocation",
    "CategoryAllocation",
    "BudgetOptimization",
    "BudgetSavings",
    "CategorySaving",
    "OptimizationMode",
    # Collaborators
    "CompletionRequest",
    "ResponseSchema",
    "OptimalOrderRequest",
    "DirectionsRequest",
    "DirectionsResult",
    # Optimization
    "OptimizationResult",
    "OptimizationSummary",
]
