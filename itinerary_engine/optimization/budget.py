"""Budget allocation by travel style and collaborator-backed savings."""

import logging

from itinerary_engine.config import Settings, get_settings
from itinerary_engine.llm.client import TextGenerationService
from itinerary_engine.llm.prompts import budget_savings_prompt
from itinerary_engine.models.budget import (
    BudgetAllocation,
    BudgetOptimization,
    BudgetSavings,
    CategoryAllocation,
    OptimizationMode,
)
from itinerary_engine.models.common import TravelStyle
from itinerary_engine.models.itinerary import Day, Itinerary
from itinerary_engine.models.services import CompletionRequest, ResponseSchema
from itinerary_engine.tools.executor import CancelToken
from itinerary_engine.tools.fallback import CollaboratorRunner

logger = logging.getLogger(__name__)

TOOL_NAME = "text.budget_savings"

# (accommodation, food, activities, transportation)
STYLE_SPLITS: dict[TravelStyle, tuple[float, float, float, float]] = {
    TravelStyle.luxury: (0.50, 0.25, 0.20, 0.05),
    TravelStyle.comfortable: (0.40, 0.30, 0.25, 0.05),
    TravelStyle.budget: (0.30, 0.30, 0.30, 0.10),
    TravelStyle.backpacker: (0.20, 0.30, 0.40, 0.10),
    TravelStyle.default: (0.40, 0.30, 0.25, 0.05),
}

SAVINGS_TIPS = [
    "Book accommodations in advance for better rates",
    "Use public transportation when possible",
    "Look for free walking tours and activities",
    "Eat at local restaurants instead of tourist areas",
]


def parse_savings(raw: object, current_cost: float) -> BudgetSavings:
    """Validate a savings response against the current cost.

    A missing `total_savings` is derived from the category amounts.

    Raises:
        pydantic.ValidationError: If the payload is malformed
        ValueError: If the savings exceed the current cost
    """
    savings = BudgetSavings.model_validate(raw)
    if not savings.total_savings:
        categories = (
            savings.accommodation_savings,
            savings.transportation_savings,
            savings.activity_savings,
            savings.food_savings,
        )
        total = sum(c.amount for c in categories if c is not None)
        savings = savings.model_copy(update={"total_savings": total})
    if savings.total_savings > current_cost:
        raise ValueError(
            f"reported savings {savings.total_savings} exceed current cost {current_cost}"
        )
    return savings


class BudgetAllocator:
    """Splits a budget across categories and asks for savings when over budget."""

    def __init__(
        self,
        text_client: TextGenerationService,
        runner: CollaboratorRunner,
        settings: Settings | None = None,
    ) -> None:
        self._text_client = text_client
        self._runner = runner
        self._settings = settings or get_settings()

    def allocate(self, itinerary: Itinerary) -> BudgetAllocation:
        """Per-category spend targets for the itinerary's travel style."""
        budget = itinerary.budget
        daily = budget / itinerary.duration
        splits = STYLE_SPLITS.get(itinerary.travel_style, STYLE_SPLITS[TravelStyle.default])

        def category(percentage: float) -> CategoryAllocation:
            return CategoryAllocation(
                percentage=percentage,
                total=round(budget * percentage, 2),
                daily=round(daily * percentage, 2),
            )

        accommodation, food, activities, transportation = splits
        return BudgetAllocation(
            travel_style=itinerary.travel_style,
            total=budget,
            daily_average=round(daily, 2),
            per_person=round(budget / itinerary.travelers, 2),
            accommodation=category(accommodation),
            food=category(food),
            activities=category(activities),
            transportation=category(transportation),
            potential_savings=round(budget * self._settings.potential_savings_ratio, 2),
            tips=list(SAVINGS_TIPS),
        )

    async def optimize(
        self,
        itinerary: Itinerary,
        days: list[Day] | None = None,
        mode: OptimizationMode = OptimizationMode.balanced,
        cancel_token: CancelToken | None = None,
    ) -> BudgetOptimization:
        """Suggest savings for the planned days.

        Args:
            itinerary: Trip with the target budget
            days: Days to cost (defaults to the itinerary's own days)
            mode: `budget` asks for savings even when within budget
            cancel_token: Cancels the collaborator call

        Returns:
            Savings breakdown; zero savings when none are needed or the
            collaborator is unavailable
        """
        planned = itinerary.days if days is None else days
        current_cost = round(sum(day.total_cost for day in planned), 2)

        if current_cost <= itinerary.budget and mode != OptimizationMode.budget:
            return BudgetOptimization(
                total_savings=0.0, final_budget=current_cost, optimization_mode=mode
            )

        request = CompletionRequest(
            prompt=budget_savings_prompt(itinerary, current_cost, mode),
            schema_hint=ResponseSchema.budget_savings,
        )
        outcome = await self._runner.attempt(
            TOOL_NAME,
            lambda r: self._text_client.complete(r.prompt, r.schema_hint),
            request,
            parse=lambda raw: parse_savings(raw, current_cost),
            cancel_token=cancel_token,
        )
        if not outcome.ok:
            return BudgetOptimization(
                total_savings=0.0,
                final_budget=current_cost,
                optimization_mode=mode,
                source="fallback",
            )

        savings = outcome.or_else(BudgetSavings)
        logger.info(
            f"Budget savings for {itinerary.destination}: {savings.total_savings:.2f}",
            extra={"structured": {"current_cost": current_cost, "mode": mode.value}},
        )
        return BudgetOptimization(
            total_savings=savings.total_savings,
            final_budget=round(current_cost - savings.total_savings, 2),
            optimization_mode=mode,
            accommodation_savings=savings.accommodation_savings,
            transportation_savings=savings.transportation_savings,
            activity_savings=savings.activity_savings,
            food_savings=savings.food_savings,
            source="text_generation",
        )
