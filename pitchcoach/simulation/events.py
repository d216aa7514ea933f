"""
Event-driven architecture for the rehearsal system.
"""
import logging
from abc import ABC
from typing import Dict, Any, List, Callable, Optional
from dataclasses import dataclass
from enum import Enum

logger = logging.getLogger("events")


class EventType(str, Enum):
    """Types of session events."""
    SESSION_STARTED = "session_started"
    UTTERANCE_RECEIVED = "utterance_received"
    UTTERANCE_QUEUED = "utterance_queued"
    AI_REQUEST_SENT = "ai_request_sent"
    AI_REPLY_RECEIVED = "ai_reply_received"
    PLAYBACK_STARTED = "playback_started"
    PLAYBACK_FINISHED = "playback_finished"
    CAPTURE_ERROR = "capture_error"
    STATE_CHANGED = "state_changed"
    SESSION_ENDED = "session_ended"
    ERROR_OCCURRED = "error_occurred"


@dataclass
class SessionEvent(ABC):
    """Base class for all session events."""
    event_type: EventType
    session_id: str
    timestamp: float
    data: Dict[str, Any]


@dataclass
class SessionStartedEvent(SessionEvent):
    """Event fired when a rehearsal session begins."""
    def __init__(self, session_id: str, timestamp: float, scenario_title: str, has_context: bool):
        super().__init__(
            event_type=EventType.SESSION_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"scenario_title": scenario_title, "has_context": has_context}
        )


@dataclass
class UtteranceReceivedEvent(SessionEvent):
    """Event fired when a finalized user utterance is appended."""
    def __init__(self, session_id: str, timestamp: float, message_id: str, text: str):
        super().__init__(
            event_type=EventType.UTTERANCE_RECEIVED,
            session_id=session_id,
            timestamp=timestamp,
            data={"message_id": message_id, "text": text}
        )


@dataclass
class UtteranceQueuedEvent(SessionEvent):
    """Event fired when an utterance arrives while a reply is still pending."""
    def __init__(self, session_id: str, timestamp: float, message_id: str, state: str):
        super().__init__(
            event_type=EventType.UTTERANCE_QUEUED,
            session_id=session_id,
            timestamp=timestamp,
            data={"message_id": message_id, "state": state}
        )


@dataclass
class AiRequestSentEvent(SessionEvent):
    """Event fired when a user utterance is dispatched to the AI-response service."""
    def __init__(self, session_id: str, timestamp: float, message_id: str, history_size: int):
        super().__init__(
            event_type=EventType.AI_REQUEST_SENT,
            session_id=session_id,
            timestamp=timestamp,
            data={"message_id": message_id, "history_size": history_size}
        )


@dataclass
class AiReplyReceivedEvent(SessionEvent):
    """Event fired when the simulated client answers."""
    def __init__(self, session_id: str, timestamp: float, message_id: str, text: str, has_audio: bool):
        super().__init__(
            event_type=EventType.AI_REPLY_RECEIVED,
            session_id=session_id,
            timestamp=timestamp,
            data={"message_id": message_id, "text": text, "has_audio": has_audio}
        )


@dataclass
class PlaybackStartedEvent(SessionEvent):
    """Event fired when synthesized speech starts playing."""
    def __init__(self, session_id: str, timestamp: float, payload_size: int):
        super().__init__(
            event_type=EventType.PLAYBACK_STARTED,
            session_id=session_id,
            timestamp=timestamp,
            data={"payload_size": payload_size}
        )


@dataclass
class PlaybackFinishedEvent(SessionEvent):
    """Event fired when playback ends, successfully or not."""
    def __init__(self, session_id: str, timestamp: float, succeeded: bool, error: Optional[str] = None):
        super().__init__(
            event_type=EventType.PLAYBACK_FINISHED,
            session_id=session_id,
            timestamp=timestamp,
            data={"succeeded": succeeded, "error": error}
        )


@dataclass
class CaptureErrorEvent(SessionEvent):
    """Event fired when the speech engine reports a failure."""
    def __init__(self, session_id: str, timestamp: float, kind: str, message: str):
        super().__init__(
            event_type=EventType.CAPTURE_ERROR,
            session_id=session_id,
            timestamp=timestamp,
            data={"kind": kind, "message": message}
        )


@dataclass
class StateChangedEvent(SessionEvent):
    """Event fired on every turn-state transition."""
    def __init__(self, session_id: str, timestamp: float, previous: str, current: str):
        super().__init__(
            event_type=EventType.STATE_CHANGED,
            session_id=session_id,
            timestamp=timestamp,
            data={"previous": previous, "current": current}
        )


@dataclass
class SessionEndedEvent(SessionEvent):
    """Event fired once the session reached its terminal state."""
    def __init__(self, session_id: str, timestamp: float, elapsed_seconds: int,
                 message_count: int, score: Optional[float], analysis_error: Optional[str]):
        super().__init__(
            event_type=EventType.SESSION_ENDED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "elapsed_seconds": elapsed_seconds,
                "message_count": message_count,
                "score": score,
                "analysis_error": analysis_error
            }
        )


@dataclass
class ErrorOccurredEvent(SessionEvent):
    """Event fired when an error occurs."""
    def __init__(self, session_id: str, timestamp: float, error_type: str,
                 error_message: str, component: str):
        super().__init__(
            event_type=EventType.ERROR_OCCURRED,
            session_id=session_id,
            timestamp=timestamp,
            data={
                "error_type": error_type,
                "error_message": error_message,
                "component": component
            }
        )


EventHandler = Callable[[SessionEvent], None]


class SessionEventBus:
    """Event bus for rehearsal session communication."""

    def __init__(self):
        self._global_handlers: List[EventHandler] = []

    def subscribe_all(self, handler: EventHandler) -> None:
        """Subscribe to all events."""
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def emit(self, event: SessionEvent) -> None:
        """
        Emit an event to all subscribers.

        Handler failures are logged and never reach the emitter.
        """
        logger.debug(f"Emitting event: {event.event_type} for session {event.session_id}")

        for handler in self._global_handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler for {event.event_type}: {e}")


class EventLogger:
    """Logs all events for debugging and analysis."""

    def __init__(self, log_level: int = logging.INFO):
        self.logger = logging.getLogger("event_logger")
        self.logger.setLevel(log_level)

    def handle_event(self, event: SessionEvent) -> None:
        """Log event details."""
        self.logger.info(f"Event: {event.event_type} | Session: {event.session_id} | Data: {event.data}")


class SessionMetrics:
    """Collects metrics from session events."""

    def __init__(self):
        self.reset()

    def handle_event(self, event: SessionEvent) -> None:
        """Update metrics based on event."""
        if event.event_type == EventType.SESSION_STARTED:
            self.sessions_started += 1
        elif event.event_type == EventType.SESSION_ENDED:
            self.sessions_ended += 1
        elif event.event_type == EventType.UTTERANCE_RECEIVED:
            self.utterances += 1
        elif event.event_type == EventType.UTTERANCE_QUEUED:
            self.utterances_queued += 1
        elif event.event_type == EventType.AI_REQUEST_SENT:
            self.ai_requests += 1
        elif event.event_type == EventType.AI_REPLY_RECEIVED:
            self.ai_replies += 1
        elif event.event_type == EventType.PLAYBACK_FINISHED and not event.data.get("succeeded"):
            self.playback_failures += 1
        elif event.event_type == EventType.CAPTURE_ERROR:
            self.capture_errors += 1
        elif event.event_type == EventType.ERROR_OCCURRED:
            self.errors_occurred += 1

    def get_metrics(self) -> Dict[str, int]:
        """Get current metrics snapshot."""
        return {
            "sessions_started": self.sessions_started,
            "sessions_ended": self.sessions_ended,
            "utterances": self.utterances,
            "utterances_queued": self.utterances_queued,
            "ai_requests": self.ai_requests,
            "ai_replies": self.ai_replies,
            "playback_failures": self.playback_failures,
            "capture_errors": self.capture_errors,
            "errors_occurred": self.errors_occurred
        }

    def reset(self) -> None:
        """Reset all metrics to zero."""
        self.sessions_started = 0
        self.sessions_ended = 0
        self.utterances = 0
        self.utterances_queued = 0
        self.ai_requests = 0
        self.ai_replies = 0
        self.playback_failures = 0
        self.capture_errors = 0
        self.errors_occurred = 0
