"""Text-generation collaborator with OpenAI integration.

Security: Reads API key from environment only, never hardcoded.
Provides a deterministic stub when no key is present (tests, local runs).

Clients return parsed JSON and raise on transport or parse failures; the
calling component's fallback decides what happens next.
"""

import json
import logging
from typing import Any, Protocol

from openai import AsyncOpenAI

from itinerary_engine.config import Settings, get_settings
from itinerary_engine.models.services import ResponseSchema

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = (
    "You are an expert travel planning assistant. You analyse trips and suggest "
    "practical, realistic changes with cost estimates. Always respond with valid JSON "
    "only, using exactly the keys requested, with no surrounding prose."
)


class TextGenerationService(Protocol):
    """Protocol for text-generation collaborators."""

    async def complete(self, prompt: str, schema: ResponseSchema) -> Any:
        """Generate a structured JSON response for a prompt.

        Args:
            prompt: Fully rendered prompt
            schema: Expected response shape

        Returns:
            Parsed JSON (dict or list)
        """
        ...


def extract_json(content: str) -> Any:
    """Parse JSON from model output, tolerating prose around the payload.

    Raises:
        ValueError: If no JSON object or array can be parsed
    """
    text = content.strip()
    if not text:
        raise ValueError("empty response")

    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    # Fall back to the outermost {...} or [...] span
    for opener, closer in (("{", "}"), ("[", "]")):
        start = text.find(opener)
        end = text.rfind(closer)
        if start != -1 and end > start:
            try:
                return json.loads(text[start : end + 1])
            except json.JSONDecodeError:
                continue

    raise ValueError(f"no JSON payload in response ({len(text)} chars)")


_STUB_RESPONSES: dict[ResponseSchema, Any] = {
    ResponseSchema.situation_analysis: {
        "weather_impact": "No live analysis available (stub)",
        "event_opportunities": "",
        "crowd_concerns": "",
        "transportation_issues": "",
        "budget_opportunities": "",
        "overall_risk": "medium",
        "confidence": 0.5,
        "key_recommendations": [],
    },
    ResponseSchema.indoor_alternatives: [],
    ResponseSchema.budget_alternatives: [],
    ResponseSchema.budget_savings: {"total_savings": 0},
}


class DeterministicStubClient:
    """Deterministic stub client for testing (no API key required)."""

    async def complete(self, prompt: str, schema: ResponseSchema) -> Any:
        """Return a canned response for the requested schema."""
        return json.loads(json.dumps(_STUB_RESPONSES[schema]))


class OpenAITextClient:
    """OpenAI-backed text-generation client."""

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ):
        """Initialize OpenAI client.

        Args:
            api_key: OpenAI API key (read from environment)
            model: Model name to use (default: gpt-4o-mini for cost efficiency)
            temperature: Sampling temperature
            max_tokens: Response token cap
        """
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def complete(self, prompt: str, schema: ResponseSchema) -> Any:
        """Generate a JSON response using the OpenAI API."""
        response = await self.client.chat.completions.create(
            model=self.model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": prompt},
            ],
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )

        content = response.choices[0].message.content or ""
        if len(content) > 20000:
            logger.warning(f"OpenAI response unexpectedly large ({len(content)} chars)")

        return extract_json(content)


def get_text_client(settings: Settings | None = None) -> TextGenerationService:
    """Factory function to get the appropriate client based on config.

    Returns:
        OpenAITextClient if API key is configured, DeterministicStubClient otherwise
    """
    settings = settings or get_settings()
    api_key = settings.openai_api_key

    if api_key and api_key.get_secret_value():
        logger.info("Using OpenAI client for text generation")
        return OpenAITextClient(
            api_key=api_key.get_secret_value(),
            model=settings.openai_model,
            temperature=settings.openai_temperature,
            max_tokens=settings.openai_max_tokens,
        )
    logger.warning("No OpenAI API key configured, using deterministic stub client")
    return DeterministicStubClient()
