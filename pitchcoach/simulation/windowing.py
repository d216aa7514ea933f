"""
Bounded conversation history for the AI-response service.
"""
from typing import Dict, List, Optional

from ..config import TURN_WINDOW
from .models import Message


class HistoryWindower:
    """Keeps the last ``turn_window`` turns (two messages each) of a transcript."""

    def __init__(self, turn_window: int = TURN_WINDOW):
        if turn_window < 0:
            raise ValueError("turn_window must be >= 0")
        self.turn_window = turn_window

    @property
    def max_messages(self) -> int:
        return 2 * self.turn_window

    def window(self, transcript: List[Message], utterance: Optional[Message] = None) -> List[Dict[str, str]]:
        """
        Build the history sent alongside ``utterance``.

        The utterance itself is excluded (it travels separately) and only text
        and sender are forwarded.
        """
        if self.max_messages == 0:
            return []
        history = [m for m in transcript if utterance is None or m.id != utterance.id]
        return [m.to_history_entry() for m in history[-self.max_messages:]]
