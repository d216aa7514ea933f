"""
Turn sequencing for a rehearsal session.

The orchestrator is the single owner of the transcript and the turn state:

    AWAITING_USER -> AI_THINKING -> AI_SPEAKING -> AWAITING_USER
                                 \\-> AWAITING_USER (reply without audio, or failure)

Everything runs on one event loop. Only utterances that arrive while
AWAITING_USER are dispatched; anything said while a reply is pending is kept
in the transcript (and so in later history) but never sent on its own.
"""
import asyncio
import logging
import time
from typing import Optional, Dict, Callable

from .models import Message, Sender, Scenario, SessionContext, AnalysisOutcome, new_message_id
from .schemas import TurnState, CaptureError, ChatRequest, ScenarioPayload
from .capture import SpeechCaptureManager
from .playback import AudioPlaybackController, AudioSink
from .windowing import HistoryWindower
from .timer import SessionTimer
from .analysis import AnalysisTrigger
from .services import ChatService, ChatServiceError
from .events import (
    SessionEventBus, EventLogger, SessionMetrics,
    SessionStartedEvent, UtteranceReceivedEvent, UtteranceQueuedEvent,
    AiRequestSentEvent, AiReplyReceivedEvent, PlaybackStartedEvent,
    PlaybackFinishedEvent, CaptureErrorEvent, StateChangedEvent,
    SessionEndedEvent, ErrorOccurredEvent
)

logger = logging.getLogger("orchestrator")


class ConversationOrchestrator:
    """
    Sequences capture, AI replies, playback and end-of-session analysis.

    Components are injected so the same orchestrator drives the microphone
    and console engines as well as the test doubles in ``testing.py``.
    """

    def __init__(self,
                 capture: SpeechCaptureManager,
                 chat_service: ChatService,
                 analysis_trigger: AnalysisTrigger,
                 audio_sink: AudioSink,
                 timer: Optional[SessionTimer] = None,
                 windower: Optional[HistoryWindower] = None,
                 event_bus: Optional[SessionEventBus] = None):
        self.capture = capture
        self.chat_service = chat_service
        self.analysis_trigger = analysis_trigger
        self.timer = timer or SessionTimer()
        self.windower = windower or HistoryWindower()

        # Initialize event system
        self.event_bus = event_bus or SessionEventBus()
        self.event_logger = EventLogger()
        self.metrics = SessionMetrics()
        self.event_bus.subscribe_all(self.event_logger.handle_event)
        self.event_bus.subscribe_all(self.metrics.handle_event)

        self.playback = AudioPlaybackController(
            audio_sink,
            capture,
            on_started=self._on_playback_started,
            on_finished=self._on_playback_finished,
            should_resume=self._should_resume_capture,
        )

        self.state = TurnState.IDLE
        self.context: Optional[SessionContext] = None
        self.last_processed_id: Optional[str] = None
        self.last_error: Optional[str] = None
        self.analysis_outcome: Optional[AnalysisOutcome] = None
        self.on_interim: Optional[Callable[[str], None]] = None
        self._analyzing = False
        self._pending: Optional[asyncio.Task] = None

    # ------------------------------------------------------------------
    # Session lifecycle
    # ------------------------------------------------------------------

    @property
    def session_active(self) -> bool:
        return (self.context is not None
                and self.state not in (TurnState.IDLE, TurnState.SESSION_ENDED)
                and not self._analyzing)

    @property
    def transcript(self):
        return self.context.transcript if self.context else []

    @property
    def interim_transcript(self) -> str:
        return self.capture.interim_transcript

    def start_session(self, scenario: Scenario, user_context: str = "") -> SessionContext:
        """
        Start a new session, tearing down any previous one.

        Must be called from within the running event loop.
        """
        if self.context is not None:
            self.reset()

        self.context = SessionContext(scenario=scenario, user_context=user_context.strip())
        self.last_processed_id = None
        self.last_error = None
        self.analysis_outcome = None

        self.capture.subscribe(self.handle_utterance, self._on_interim, self._on_capture_error)
        self._set_state(TurnState.AWAITING_USER)
        self._emit(SessionStartedEvent(
            self.context.session_id, time.time(), scenario.title, bool(self.context.user_context)
        ))
        logger.info(f"Session {self.context.session_id} started with scenario '{scenario.title}'")

        self._start_capture()
        return self.context

    def reset(self) -> None:
        """Drop the current session without analysis."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self.capture.stop()
        self.capture.unsubscribe()
        self.timer.reset()
        self._analyzing = False
        self._set_state(TurnState.IDLE)
        self.context = None
        logger.info("Session reset")

    async def end_session(self) -> AnalysisOutcome:
        """
        Stop capture and the timer, then analyse the full transcript.

        Always ends in SESSION_ENDED; analysis failures produce an outcome
        without a result instead of raising.
        """
        if self.state is TurnState.SESSION_ENDED and self.analysis_outcome is not None:
            return self.analysis_outcome
        if self.context is None:
            return AnalysisOutcome(skipped=True)
        if self._analyzing:
            return AnalysisOutcome(error="Analysis already in progress")

        ctx = self.context
        self._analyzing = True
        self.capture.stop()
        self.capture.unsubscribe()
        ctx.elapsed_seconds = self.timer.stop()
        transcript = list(ctx.transcript)
        logger.info(f"Ending session {ctx.session_id} after {ctx.elapsed_seconds}s with {len(transcript)} messages")

        try:
            outcome = await self.analysis_trigger.run(transcript)
        except Exception as e:
            logger.error("Analysis raised unexpectedly: %s", e)
            outcome = AnalysisOutcome(error=f"Analysis unavailable: {e}")
        finally:
            self._analyzing = False
            self._set_state(TurnState.SESSION_ENDED)

        self.analysis_outcome = outcome
        self._emit(SessionEndedEvent(
            ctx.session_id, time.time(), ctx.elapsed_seconds, len(transcript),
            outcome.result.score if outcome.result else None, outcome.error
        ))
        return outcome

    def resume_listening(self) -> None:
        """Explicit user request to listen again, e.g. after an AI failure."""
        if not self.session_active or self.state is TurnState.AI_SPEAKING:
            return
        self._start_capture()

    def stop_listening(self) -> None:
        self.capture.stop()

    # ------------------------------------------------------------------
    # Turn handling
    # ------------------------------------------------------------------

    def handle_utterance(self, text: str) -> Optional[Message]:
        """Append a finalized user utterance and dispatch it if nothing is pending."""
        if not self.session_active:
            logger.debug("Ignoring utterance outside an active session: %s", text)
            return None

        message = Message(id=new_message_id(Sender.USER), text=text, sender=Sender.USER)
        self.context.transcript.append(message)
        self._emit(UtteranceReceivedEvent(self.context.session_id, time.time(), message.id, text))

        if self.state is not TurnState.AWAITING_USER:
            logger.info(f"Utterance kept without dispatch while {self.state.value}")
            self._emit(UtteranceQueuedEvent(self.context.session_id, time.time(), message.id, self.state.value))
            return message

        self._dispatch(message)
        return message

    def _dispatch(self, message: Message) -> None:
        if message.id == self.last_processed_id:
            return
        self.last_processed_id = message.id
        self._set_state(TurnState.AI_THINKING)
        self._pending = asyncio.get_running_loop().create_task(self._request_reply(message))

    async def _request_reply(self, message: Message) -> None:
        ctx = self.context
        history = self.windower.window(ctx.transcript, message)
        request = ChatRequest(
            user_transcript=message.text,
            scenario=ScenarioPayload(**ctx.scenario.to_payload()),
            conversation_history=history,
            initial_context=ctx.user_context or None,
        )
        self._emit(AiRequestSentEvent(ctx.session_id, time.time(), message.id, len(history)))

        try:
            reply = await self.chat_service.reply(request)
        except ChatServiceError as e:
            self._handle_ai_failure(ctx, e.message, type(e).__name__)
            return
        except Exception as e:
            self._handle_ai_failure(ctx, str(e), type(e).__name__)
            return

        if ctx is not self.context or not self.session_active:
            logger.info("Discarding AI reply for a session that is no longer active")
            return

        text = reply.ai_response.strip()
        if not text:
            logger.warning("AI service returned an empty reply")
            self._set_state(TurnState.AWAITING_USER)
            self._start_capture()
            return

        ai_message = Message(
            id=new_message_id(Sender.AI), text=text, sender=Sender.AI,
            audio=reply.audio_content or None,
        )
        ctx.transcript.append(ai_message)
        self._emit(AiReplyReceivedEvent(
            ctx.session_id, time.time(), ai_message.id, text, ai_message.audio is not None
        ))

        if ai_message.audio:
            self._set_state(TurnState.AI_SPEAKING)
            await self.playback.play(ai_message.audio)
        else:
            self._set_state(TurnState.AWAITING_USER)
            self._start_capture()

    def _handle_ai_failure(self, ctx: SessionContext, error: str, error_type: str) -> None:
        logger.error("AI response failed: %s", error)
        self.last_error = error
        self._emit(ErrorOccurredEvent(ctx.session_id, time.time(), error_type, error, "ai_response"))
        if ctx is self.context and self.session_active:
            self._set_state(TurnState.AWAITING_USER)

    # ------------------------------------------------------------------
    # Capture and playback callbacks
    # ------------------------------------------------------------------

    def _start_capture(self) -> None:
        self.capture.start()
        if self.capture.is_listening:
            self.timer.start()

    def _on_interim(self, text: str) -> None:
        if self.on_interim:
            self.on_interim(text)

    def _on_capture_error(self, error: CaptureError) -> None:
        self.last_error = error.message
        if self.context:
            self._emit(CaptureErrorEvent(self.context.session_id, time.time(), error.kind.value, error.message))

    def _on_playback_started(self, size: int) -> None:
        if self.context:
            self._emit(PlaybackStartedEvent(self.context.session_id, time.time(), size))

    def _on_playback_finished(self, succeeded: bool, error: Optional[str]) -> None:
        if self.context:
            self._emit(PlaybackFinishedEvent(self.context.session_id, time.time(), succeeded, error))
        if self.session_active and self.state is TurnState.AI_SPEAKING:
            self._set_state(TurnState.AWAITING_USER)

    def _should_resume_capture(self) -> bool:
        return self.session_active

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _set_state(self, new_state: TurnState) -> None:
        if new_state is self.state:
            return
        previous = self.state
        self.state = new_state
        logger.debug(f"Turn state {previous.value} -> {new_state.value}")
        if self.capture.is_listening and self.playback.is_playing:
            logger.error("Capture and playback active at the same time")
        if self.context:
            self._emit(StateChangedEvent(self.context.session_id, time.time(), previous.value, new_state.value))

    def _emit(self, event) -> None:
        self.event_bus.emit(event)

    def get_metrics(self) -> Dict[str, int]:
        """Get current session metrics."""
        return self.metrics.get_metrics()
