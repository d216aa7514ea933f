"""Infrastructure components for PitchCoach.

This module contains low-level technical components: the coaching API
client, the LLM client used by the reference backend, the session store,
and audio I/O (imported from .audio on demand, it pulls in pyaudio).
"""

# Coaching API client
from .api import CoachApiClient, CoachApiError

# Rehearsal history
from .data import SessionRecord, SessionStore

# LLM infrastructure
from .llm import VertexRestClient, LLMError, ContentBlockedError

__all__ = [
    # API client
    "CoachApiClient", "CoachApiError",

    # History
    "SessionRecord", "SessionStore",

    # LLM client
    "VertexRestClient", "LLMError", "ContentBlockedError",
]
