"""
Continuous speech capture on top of a restart-on-drop speech engine.

Speech engines tend to stop on their own after a pause in speech. The
SpeechCaptureManager hides this: an end event that was not preceded by a
manual stop() restarts the engine once, so listening looks continuous to the
rest of the session. Engine errors are never retried.
"""
import logging
from abc import ABC, abstractmethod
from typing import Callable, List, Optional

from .schemas import CaptureState, CaptureError, CaptureErrorKind, CAPTURE_ERROR_MESSAGES, Segment

logger = logging.getLogger("capture")

FinalHandler = Callable[[str], None]
InterimHandler = Callable[[str], None]
ErrorHandler = Callable[[CaptureError], None]


class SpeechEngineListener(ABC):
    """Receives raw events from a speech engine. All calls happen on the event loop thread."""

    @abstractmethod
    def on_segments(self, segments: List[Segment]) -> None:
        """New recognition results, finalized and interim mixed."""

    @abstractmethod
    def on_engine_error(self, code: Optional[str], detail: Optional[str] = None) -> None:
        """Engine failure with its own error code."""

    @abstractmethod
    def on_engine_end(self) -> None:
        """Engine stopped, whether asked to or not."""


class SpeechEngine(ABC):
    """A speech-to-text engine that can be started and stopped repeatedly."""

    def __init__(self):
        self.listener: Optional[SpeechEngineListener] = None

    def attach(self, listener: SpeechEngineListener) -> None:
        self.listener = listener

    @abstractmethod
    def start(self) -> None:
        """Begin recognition. Raises if the engine cannot start."""

    @abstractmethod
    def stop(self) -> None:
        """Request the engine to stop; it reports on_engine_end once it has."""


class SpeechCaptureManager(SpeechEngineListener):
    """Wraps a SpeechEngine and surfaces finalized and interim text."""

    def __init__(self, engine: SpeechEngine):
        self.engine = engine
        self.engine.attach(self)
        self.state = CaptureState.IDLE
        self.transcript = ""
        self.interim_transcript = ""
        self.last_error: Optional[CaptureError] = None
        self._on_final: Optional[FinalHandler] = None
        self._on_interim: Optional[InterimHandler] = None
        self._on_error: Optional[ErrorHandler] = None

    @property
    def is_listening(self) -> bool:
        return self.state is CaptureState.LISTENING

    def subscribe(self,
                  on_final: FinalHandler,
                  on_interim: Optional[InterimHandler] = None,
                  on_error: Optional[ErrorHandler] = None) -> None:
        """Register the session's callbacks, replacing any previous subscriber."""
        self._on_final = on_final
        self._on_interim = on_interim
        self._on_error = on_error

    def unsubscribe(self) -> None:
        self._on_final = None
        self._on_interim = None
        self._on_error = None

    def start(self) -> None:
        """
        Start listening.

        No-op while already listening. While a manual stop is still pending the
        stop is cancelled instead; the engine's upcoming end event restarts it.
        """
        if self.state is CaptureState.LISTENING:
            return
        if self.state is CaptureState.STOPPING:
            logger.debug("Start requested during pending stop, will restart on engine end")
            self.transcript = ""
            self.interim_transcript = ""
            self.state = CaptureState.LISTENING
            return

        self.transcript = ""
        self.interim_transcript = ""
        self.last_error = None
        self.state = CaptureState.LISTENING
        try:
            self.engine.start()
        except Exception as e:
            logger.error("Failed to start speech engine: %s", e)
            self.state = CaptureState.IDLE
            self._report(CaptureError(
                kind=CaptureErrorKind.START_FAILED,
                message=CAPTURE_ERROR_MESSAGES[CaptureErrorKind.START_FAILED],
            ))
            return
        logger.info("Speech capture started")

    def stop(self) -> None:
        """Stop listening. Only effective while listening; idle stays idle."""
        if self.state is not CaptureState.LISTENING:
            return
        self.state = CaptureState.STOPPING
        logger.info("Speech capture stop requested")
        self.engine.stop()

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def on_segments(self, segments: List[Segment]) -> None:
        final_text = "".join(s.text for s in segments if s.is_final)
        interim_text = "".join(s.text for s in segments if not s.is_final)

        if final_text:
            self.transcript += final_text
        self.interim_transcript = interim_text
        if self._on_interim:
            self._on_interim(interim_text)

        final_text = final_text.strip()
        if not final_text:
            return
        logger.info("Finalized segment: %s", final_text)
        if self._on_final:
            self._on_final(final_text)

    def on_engine_error(self, code: Optional[str], detail: Optional[str] = None) -> None:
        error = CaptureError.from_engine(code, detail)
        logger.error("Speech engine error %s: %s", code, error.message)
        self.state = CaptureState.IDLE
        self._report(error)

    def on_engine_end(self) -> None:
        self.interim_transcript = ""

        if self.state is CaptureState.STOPPING:
            self.state = CaptureState.IDLE
            logger.info("Speech capture stopped")
        elif self.state is CaptureState.LISTENING:
            logger.info("Speech engine ended unexpectedly, restarting")
            try:
                self.engine.start()
            except Exception as e:
                logger.error("Speech engine restart failed: %s", e)
                self.state = CaptureState.IDLE
                self._report(CaptureError(
                    kind=CaptureErrorKind.RESTART_FAILED,
                    message=CAPTURE_ERROR_MESSAGES[CaptureErrorKind.RESTART_FAILED],
                ))

    def _report(self, error: CaptureError) -> None:
        self.last_error = error
        if self._on_error:
            self._on_error(error)
