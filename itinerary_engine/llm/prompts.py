"""Prompt builders for the text-generation collaborator."""

import json
from datetime import date

from itinerary_engine.models.budget import OptimizationMode
from itinerary_engine.models.factors import RealTimeFactors
from itinerary_engine.models.itinerary import Itinerary


def _dump(items: object) -> str:
    return json.dumps(items, default=str)


def situation_analysis_prompt(itinerary: Itinerary, factors: RealTimeFactors) -> str:
    """Prompt asking for a qualitative risk/opportunity summary."""
    preferences = ", ".join(itinerary.preferences) or "Not specified"
    weather = [w.model_dump(mode="json") for w in factors.weather]
    events = [e.model_dump(mode="json") for e in factors.events]
    crowds = [c.model_dump(mode="json") for c in factors.crowd_density]

    return f"""Analyze this trip situation and provide insights.

ITINERARY:
- Destination: {itinerary.destination}
- Duration: {itinerary.duration} days
- Budget: ${itinerary.budget:.2f}
- Travelers: {itinerary.travelers}
- Preferences: {preferences}

REAL-TIME FACTORS:
Weather: {_dump(weather)}
Events: {_dump(events)}
Crowd Levels: {_dump(crowds)}
Transportation: {_dump(factors.transportation)}

Respond with this JSON object:
{{
  "weather_impact": "assessment of weather impact on outdoor activities",
  "event_opportunities": "local events that could enhance the trip",
  "crowd_concerns": "areas with high crowds and suggested alternatives",
  "transportation_issues": "any transportation disruptions or delays",
  "budget_opportunities": "opportunities to save money or get better value",
  "overall_risk": "low | medium | high",
  "confidence": 0.85,
  "key_recommendations": ["recommendation1", "recommendation2"]
}}"""


def indoor_alternatives_prompt(destination: str, day: date) -> str:
    """Prompt asking for indoor replacements for outdoor activities."""
    return f"""Find indoor alternatives for outdoor activities in {destination} on {day.isoformat()}.
Limit to the 5 best options.

Respond with a JSON array:
[
  {{
    "name": "Activity name",
    "type": "museum | shopping | entertainment | ...",
    "description": "Brief description",
    "estimated_cost": 25,
    "duration": "2-3 hours",
    "rating": 4.5
  }}
]"""


def budget_alternatives_prompt(itinerary: Itinerary) -> str:
    """Prompt asking for cheaper substitutes per spending category."""
    return f"""Find budget-friendly alternatives for activities in {itinerary.destination}.
Maintain experience quality while reducing costs.

Current budget: ${itinerary.budget:.2f}
Current planned cost: ${itinerary.total_cost:.2f}
Travelers: {itinerary.travelers}

Respond with a JSON array:
[
  {{
    "category": "accommodation | food | activities | transport",
    "original_cost": 100,
    "alternative_cost": 60,
    "savings": 40,
    "alternative": "Description of budget option",
    "quality_score": 4.2
  }}
]"""


def budget_savings_prompt(
    itinerary: Itinerary, current_cost: float, mode: OptimizationMode
) -> str:
    """Prompt asking for category-level savings."""
    return f"""Optimize the budget for a {itinerary.duration}-day trip to {itinerary.destination}.

Current cost: ${current_cost:.2f}
Target budget: ${itinerary.budget:.2f}
Travelers: {itinerary.travelers}
Mode: {mode.value}

Respond with this JSON object (amounts in the trip currency):
{{
  "accommodation_savings": {{"amount": 100, "method": "description"}},
  "transportation_savings": {{"amount": 50, "method": "description"}},
  "activity_savings": {{"amount": 75, "method": "description"}},
  "food_savings": {{"amount": 30, "method": "description"}},
  "total_savings": 255
}}"""
