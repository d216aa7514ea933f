"""Rehearsal session components.

This module contains the turn-taking logic of a pitch rehearsal: speech
capture, AI reply dispatch, playback, timing and end-of-session analysis.
"""

# Core orchestrator class
from .orchestrator import ConversationOrchestrator

# Data models
from .models import Message, Sender, Scenario, SessionContext, AnalysisResult, AnalysisOutcome

# Structured schemas and state management
from .schemas import (
    CaptureState, TurnState, CaptureError, CaptureErrorKind, Segment,
    ChatRequest, ChatReply, AnalysisRequest, AnalysisValidationError,
    parse_analysis_response
)

# Components
from .capture import SpeechEngine, SpeechEngineListener, SpeechCaptureManager
from .playback import AudioSink, AudioPlaybackController, PlaybackBusyError
from .windowing import HistoryWindower
from .timer import SessionTimer
from .analysis import AnalysisTrigger

# Service classes
from .services import (
    ChatService, AnalysisService, ChatServiceError,
    ApiChatService, ApiAnalysisService, build_api_services
)

# Event system
from .events import (
    SessionEventBus, EventLogger, SessionMetrics, EventType, SessionEvent
)

__all__ = [
    # Orchestrator
    "ConversationOrchestrator",

    # Data models
    "Message", "Sender", "Scenario", "SessionContext", "AnalysisResult", "AnalysisOutcome",

    # Schemas and state
    "CaptureState", "TurnState", "CaptureError", "CaptureErrorKind", "Segment",
    "ChatRequest", "ChatReply", "AnalysisRequest", "AnalysisValidationError",
    "parse_analysis_response",

    # Components
    "SpeechEngine", "SpeechEngineListener", "SpeechCaptureManager",
    "AudioSink", "AudioPlaybackController", "PlaybackBusyError",
    "HistoryWindower", "SessionTimer", "AnalysisTrigger",

    # Services
    "ChatService", "AnalysisService", "ChatServiceError",
    "ApiChatService", "ApiAnalysisService", "build_api_services",

    # Events
    "SessionEventBus", "EventLogger", "SessionMetrics", "EventType", "SessionEvent",
]
