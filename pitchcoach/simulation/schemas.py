"""
Structured data models and schemas for the rehearsal system.
"""
import json
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Dict, Any, List, Union

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from .models import AnalysisResult


class CaptureState(str, Enum):
    """Speech capture lifecycle. STOPPING marks a manual stop awaiting the engine's end event."""
    IDLE = "idle"
    LISTENING = "listening"
    STOPPING = "stopping"


class TurnState(str, Enum):
    """Turn-taking state of a session."""
    IDLE = "idle"
    AWAITING_USER = "awaiting_user"
    AI_THINKING = "ai_thinking"
    AI_SPEAKING = "ai_speaking"
    SESSION_ENDED = "session_ended"


class CaptureErrorKind(str, Enum):
    """User-facing categories for speech engine failures."""
    NO_SPEECH = "no_speech"
    AUDIO_UNAVAILABLE = "audio_unavailable"
    PERMISSION_DENIED = "permission_denied"
    START_FAILED = "start_failed"
    RESTART_FAILED = "restart_failed"
    OTHER = "other"


ENGINE_ERROR_CODES = {
    "no-speech": CaptureErrorKind.NO_SPEECH,
    "audio-capture": CaptureErrorKind.AUDIO_UNAVAILABLE,
    "not-allowed": CaptureErrorKind.PERMISSION_DENIED,
    "service-not-allowed": CaptureErrorKind.PERMISSION_DENIED,
}

CAPTURE_ERROR_MESSAGES = {
    CaptureErrorKind.NO_SPEECH: "No speech detected. Check your microphone and speak clearly.",
    CaptureErrorKind.AUDIO_UNAVAILABLE: "Audio capture problem. Check your microphone.",
    CaptureErrorKind.PERMISSION_DENIED: "Microphone permission refused.",
    CaptureErrorKind.START_FAILED: "Unable to start speech recognition.",
    CaptureErrorKind.RESTART_FAILED: "Speech recognition stopped and could not be restarted.",
}


@dataclass(frozen=True)
class CaptureError:
    """A speech capture failure reported to subscribers."""
    kind: CaptureErrorKind
    message: str
    code: Optional[str] = None

    @classmethod
    def from_engine(cls, code: Optional[str], detail: Optional[str] = None) -> "CaptureError":
        """Map an engine-specific error code to a user-facing category."""
        kind = ENGINE_ERROR_CODES.get(code or "", CaptureErrorKind.OTHER)
        message = CAPTURE_ERROR_MESSAGES.get(kind)
        if message is None:
            message = f"Speech recognition error: {code or 'unknown'}"
            if detail:
                message += f" ({detail})"
        return cls(kind=kind, message=message, code=code)


@dataclass(frozen=True)
class Segment:
    """One recognition result slice coming from a speech engine."""
    text: str
    is_final: bool


# =============================================================================
# WIRE SCHEMAS (/chat and /analyze)
# =============================================================================

class HistoryEntry(BaseModel):
    text: str
    sender: str


class ScenarioPayload(BaseModel):
    title: str
    description: str


class ChatRequest(BaseModel):
    """Body of POST /chat."""
    model_config = ConfigDict(populate_by_name=True)

    user_transcript: str = Field(alias="userTranscript")
    scenario: ScenarioPayload
    conversation_history: List[HistoryEntry] = Field(default_factory=list, alias="conversationHistory")
    initial_context: Optional[str] = Field(default=None, alias="initialContext")

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ChatReply(BaseModel):
    """Body of a successful POST /chat response."""
    model_config = ConfigDict(populate_by_name=True)

    ai_response: str = Field(alias="aiResponse")
    audio_content: Optional[str] = Field(default=None, alias="audioContent")


class AnalysisRequest(BaseModel):
    """Body of POST /analyze."""
    conversation: List[HistoryEntry] = Field(default_factory=list)


class AnalysisPayload(BaseModel):
    """Validated analysis report."""
    score: float = Field(ge=0, le=100)
    advice: List[StrictStr]
    improvements: List[StrictStr]

    @field_validator("score", mode="before")
    @classmethod
    def _score_must_be_numeric(cls, value: Any) -> Any:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(f"score must be a number, got {type(value).__name__}")
        return value

    def to_result(self) -> AnalysisResult:
        return AnalysisResult(
            score=float(self.score),
            advice=list(self.advice),
            improvements=list(self.improvements),
        )


class AnalysisValidationError(ValueError):
    """Raised when an analysis response cannot be parsed into a valid report."""


_FENCED_BLOCK = re.compile(r"```(?:json)?\s*(\{.*?\})\s*```", re.DOTALL | re.IGNORECASE)


def _extract_json_object(raw_response: str) -> Dict[str, Any]:
    try:
        # First try direct JSON parsing
        data = json.loads(raw_response)
    except json.JSONDecodeError:
        data = None
        # Then a fenced block, then the outermost braces
        candidates = [m.group(1) for m in _FENCED_BLOCK.finditer(raw_response)]
        start = raw_response.find("{")
        end = raw_response.rfind("}")
        if start != -1 and end > start:
            candidates.append(raw_response[start:end + 1])
        for candidate in candidates:
            try:
                data = json.loads(candidate)
                break
            except json.JSONDecodeError:
                continue
        if data is None:
            raise AnalysisValidationError(f"No JSON object found in analysis response: {raw_response!r}")

    if not isinstance(data, dict):
        raise AnalysisValidationError(f"Analysis response is not an object: {data!r}")
    return data


def parse_analysis_response(raw_response: Union[str, Dict[str, Any]]) -> AnalysisResult:
    """
    Parse an analysis service response into a validated report.

    Args:
        raw_response: Decoded JSON object, or raw text possibly wrapping one
            in a fenced block or surrounding prose

    Returns:
        AnalysisResult

    Raises:
        AnalysisValidationError: If no object can be extracted or its fields are malformed
    """
    if not isinstance(raw_response, (dict, str)):
        raise AnalysisValidationError(f"Analysis response is neither an object nor text: {raw_response!r}")
    data = raw_response if isinstance(raw_response, dict) else _extract_json_object(raw_response)

    try:
        return AnalysisPayload.model_validate(data).to_result()
    except ValidationError as e:
        raise AnalysisValidationError(f"Invalid analysis structure: {e}") from e
