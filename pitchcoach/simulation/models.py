"""
Data models for the rehearsal system.
"""
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Dict, List, Any


class Sender(str, Enum):
    """Who produced a message."""
    USER = "user"
    AI = "ai"


def new_message_id(sender: "Sender") -> str:
    """Opaque unique token for a message."""
    return f"{uuid.uuid4().hex}_{sender.value}"


@dataclass(frozen=True)
class Message:
    """A single utterance in the transcript."""
    id: str
    text: str
    sender: Sender
    audio: Optional[str] = None  # base64 synthesized speech, AI messages only

    def to_history_entry(self) -> Dict[str, str]:
        """Project to the wire shape used in conversation history."""
        return {"text": self.text, "sender": self.sender.value}


@dataclass(frozen=True)
class Scenario:
    """Client persona the salesperson rehearses against."""
    id: str
    title: str
    description: str

    @classmethod
    def from_dict(cls, data: Dict[str, str]) -> "Scenario":
        return cls(id=data["id"], title=data["title"], description=data["description"])

    def to_payload(self) -> Dict[str, str]:
        return {"title": self.title, "description": self.description}


@dataclass(frozen=True)
class AnalysisResult:
    """Final performance report for an ended session."""
    score: float
    advice: List[str] = field(default_factory=list)
    improvements: List[str] = field(default_factory=list)

    @property
    def summary(self) -> str:
        return ", ".join(self.advice)


@dataclass(frozen=True)
class AnalysisOutcome:
    """Result of the end-of-session analysis; ``result`` is None when unavailable."""
    result: Optional[AnalysisResult] = None
    error: Optional[str] = None
    skipped: bool = False

    @property
    def available(self) -> bool:
        return self.result is not None


@dataclass
class SessionContext:
    """Working set for one active session."""
    scenario: Scenario
    user_context: str = ""
    transcript: List[Message] = field(default_factory=list)
    elapsed_seconds: int = 0
    session_id: str = field(default_factory=lambda: f"session_{uuid.uuid4().hex[:12]}")

    def to_conversation(self) -> List[Dict[str, Any]]:
        """Full transcript in wire shape, as sent for analysis."""
        return [m.to_history_entry() for m in self.transcript]
