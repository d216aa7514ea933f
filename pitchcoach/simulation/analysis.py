"""
End-of-session performance analysis.
"""
import logging
from typing import List

from .models import Message, AnalysisOutcome
from .schemas import parse_analysis_response, AnalysisValidationError
from .services import AnalysisService

logger = logging.getLogger("analysis")


class AnalysisTrigger:
    """One-shot transformation of a transcript into an AnalysisOutcome. Never raises."""

    def __init__(self, service: AnalysisService):
        self.service = service

    async def run(self, transcript: List[Message]) -> AnalysisOutcome:
        if not transcript:
            logger.info("Empty transcript, skipping analysis")
            return AnalysisOutcome(skipped=True)

        conversation = [m.to_history_entry() for m in transcript]
        try:
            raw = await self.service.analyze(conversation)
        except Exception as e:
            logger.error("Analysis service failed: %s", e)
            return AnalysisOutcome(error=f"Analysis unavailable: {e}")

        try:
            result = parse_analysis_response(raw)
        except AnalysisValidationError as e:
            logger.error("Analysis response rejected: %s", e)
            return AnalysisOutcome(error=str(e))

        logger.info(f"Analysis complete - score {result.score:.0f}")
        return AnalysisOutcome(result=result)
