"""Situation analysis via the text-generation collaborator."""

import logging

from itinerary_engine.config import Settings, get_settings
from itinerary_engine.llm.client import TextGenerationService
from itinerary_engine.llm.prompts import situation_analysis_prompt
from itinerary_engine.models.analysis import SituationAnalysis
from itinerary_engine.models.factors import RealTimeFactors
from itinerary_engine.models.itinerary import Itinerary
from itinerary_engine.models.services import CompletionRequest, ResponseSchema
from itinerary_engine.tools.executor import CancelToken
from itinerary_engine.tools.fallback import CollaboratorRunner

logger = logging.getLogger(__name__)

TOOL_NAME = "text.situation_analysis"


class SituationAnalyzer:
    """Turns an itinerary plus real-time factors into a risk/opportunity summary."""

    def __init__(
        self,
        text_client: TextGenerationService,
        runner: CollaboratorRunner,
        settings: Settings | None = None,
    ) -> None:
        self._text_client = text_client
        self._runner = runner
        self._settings = settings or get_settings()

    async def analyze(
        self,
        itinerary: Itinerary,
        factors: RealTimeFactors,
        cancel_token: CancelToken | None = None,
    ) -> SituationAnalysis:
        """Summarise the situation; never raises for collaborator failures.

        Identical requests within the cache TTL are served from the runner's
        cache without calling the collaborator again.
        """
        request = CompletionRequest(
            prompt=situation_analysis_prompt(itinerary, factors),
            schema_hint=ResponseSchema.situation_analysis,
        )

        outcome = await self._runner.attempt(
            TOOL_NAME,
            lambda r: self._text_client.complete(r.prompt, r.schema_hint),
            request,
            parse=SituationAnalysis.model_validate,
            cancel_token=cancel_token,
            cache_ttl_seconds=self._settings.analysis_cache_ttl_seconds,
        )
        if not outcome.ok:
            logger.warning(f"Situation analysis degraded for {itinerary.destination}")
        return outcome.or_else(SituationAnalysis.degraded_summary)
