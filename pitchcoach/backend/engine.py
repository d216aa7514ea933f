"""
Model-facing logic of the reference backend: client role-play and pitch scoring.
"""
import logging
from typing import Callable, Dict, List, Optional

from ..config import CHAT_TEMPERATURE, ANALYSIS_TEMPERATURE, TTS_VOICE, LANGUAGE_CODE
from ..simulation.models import AnalysisResult
from ..simulation.schemas import ChatRequest, ChatReply, parse_analysis_response, AnalysisValidationError
from ..infrastructure.llm import VertexRestClient
from .prompts import CoachPrompts

logger = logging.getLogger("coach_engine")

Synthesizer = Callable[[str], Optional[str]]


class AnalysisRejected(Exception):
    """The model's analysis could not be validated."""

    def __init__(self, message: str, raw: str):
        super().__init__(message)
        self.raw = raw


class ClientSimulator:
    """Plays the scenario's client and voices each reply."""

    def __init__(self, llm_client: VertexRestClient, synthesizer: Optional[Synthesizer] = None):
        self.llm_client = llm_client
        self.synthesizer = synthesizer

    def reply(self, request: ChatRequest) -> ChatReply:
        """
        Generate the client's next line.

        Raises:
            LLMError / ContentBlockedError: model call failed or was refused
        """
        system_instruction = CoachPrompts.client_simulator(
            request.scenario.title,
            request.scenario.description,
            request.initial_context,
        )
        history = [entry.model_dump() for entry in request.conversation_history]

        if history:
            message = request.user_transcript
        else:
            message = CoachPrompts.first_turn(request.user_transcript)

        text = self.llm_client.generate_chat(
            system_instruction,
            CoachPrompts.history_contents(history),
            message,
            temperature=CHAT_TEMPERATURE,
        ).strip()
        logger.info(f"Client reply ({len(history)} prior messages): {text}")

        return ChatReply(ai_response=text, audio_content=self._voice(text))

    def _voice(self, text: str) -> Optional[str]:
        if self.synthesizer is None or not text:
            return None
        try:
            return self.synthesizer(text)
        except Exception as e:
            # Text-only reply is still usable
            logger.warning(f"Speech synthesis failed, replying without audio: {e}")
            return None


class PitchAnalyzer:
    """Scores a finished rehearsal."""

    def __init__(self, llm_client: VertexRestClient):
        self.llm_client = llm_client

    def analyze(self, conversation: List[Dict[str, str]]) -> AnalysisResult:
        prompt = CoachPrompts.pitch_analysis(conversation)
        raw_response = self.llm_client.generate_content(prompt, temperature=ANALYSIS_TEMPERATURE)
        logger.info(f"Raw analysis response: {raw_response}")

        try:
            return parse_analysis_response(raw_response)
        except AnalysisValidationError as e:
            raise AnalysisRejected(str(e), raw_response) from e


def default_synthesizer(voice: str = TTS_VOICE, language: str = LANGUAGE_CODE) -> Synthesizer:
    """Google Cloud TTS bound to one voice."""
    from ..infrastructure.audio.speech.tts import synthesize_speech

    def synthesize(text: str) -> Optional[str]:
        return synthesize_speech(text, voice=voice, language=language)

    return synthesize
