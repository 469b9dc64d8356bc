"""Situation analysis model - qualitative risk/opportunity summary."""

from pydantic import BaseModel, Field

from itinerary_engine.models.common import RiskLevel


class SituationAnalysis(BaseModel):
    """Summary of how real-time factors affect a trip."""

    weather_impact: str = ""
    event_opportunities: str = ""
    crowd_concerns: str = ""
    transportation_issues: str = ""
    budget_opportunities: str = ""
    overall_risk: RiskLevel = RiskLevel.medium
    confidence: float = Field(default=0.5, ge=0, le=1)
    key_recommendations: list[str] = Field(default_factory=list)
    degraded: bool = False

    @classmethod
    def degraded_summary(cls) -> "SituationAnalysis":
        """Fixed summary used when the text-generation collaborator is unavailable."""
        return cls(
            weather_impact="Unable to analyze weather impact",
            overall_risk=RiskLevel.medium,
            confidence=0.5,
            degraded=True,
        )
