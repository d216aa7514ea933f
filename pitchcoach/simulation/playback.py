"""
Playback of synthesized client speech.
"""
import base64
import binascii
import logging
from abc import ABC, abstractmethod
from typing import Callable, Optional

from .capture import SpeechCaptureManager

logger = logging.getLogger("playback")


class AudioSink(ABC):
    """Something that can play a decoded audio clip."""

    @abstractmethod
    async def play(self, audio: bytes) -> None:
        """Play the clip to completion. Raises if playback fails."""


class PlaybackBusyError(RuntimeError):
    """Raised when play() is called while another clip is still playing."""


class AudioPlaybackController:
    """
    Plays one synthesized-audio payload and hands control back to capture.

    Capture is stopped before playback so the client's voice is not recorded.
    Success, a rejected play() and an undecodable payload all end the same
    way: ``on_finished`` fires, then capture resumes if ``should_resume``
    allows it.
    """

    def __init__(self,
                 sink: AudioSink,
                 capture: SpeechCaptureManager,
                 on_started: Optional[Callable[[int], None]] = None,
                 on_finished: Optional[Callable[[bool, Optional[str]], None]] = None,
                 should_resume: Optional[Callable[[], bool]] = None):
        self.sink = sink
        self.capture = capture
        self.on_started = on_started
        self.on_finished = on_finished
        self.should_resume = should_resume or (lambda: True)
        self.is_playing = False

    async def play(self, payload: str) -> bool:
        """
        Play a base64 payload.

        Returns:
            True if the clip played to completion
        """
        if self.is_playing:
            raise PlaybackBusyError("A clip is already playing")

        self.is_playing = True
        if self.capture.is_listening:
            self.capture.stop()

        succeeded = False
        error: Optional[str] = None
        try:
            audio = base64.b64decode(payload, validate=True)
            if not audio:
                raise ValueError("empty audio payload")
            if self.on_started:
                self.on_started(len(audio))
            await self.sink.play(audio)
            succeeded = True
        except (binascii.Error, ValueError) as e:
            error = f"Invalid audio payload: {e}"
            logger.error(error)
        except Exception as e:
            error = f"Playback failed: {e}"
            logger.error(error)
        finally:
            self.is_playing = False

        logger.info("Playback finished (succeeded=%s)", succeeded)
        if self.on_finished:
            self.on_finished(succeeded, error)
        if self.should_resume():
            self.capture.start()
        return succeeded
