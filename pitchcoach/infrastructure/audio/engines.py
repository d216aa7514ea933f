"""
Speech engines backing SpeechCaptureManager.

MicrophoneSpeechEngine records one utterance per run with energy-based voice
activity detection and sends it to Google Cloud Speech. ConsoleSpeechEngine
reads typed lines from stdin, which is handy without a microphone.

Both do their blocking work on daemon threads and hand every listener call back
to the event loop with call_soon_threadsafe.
"""
import asyncio
import logging
import sys
import threading
from typing import Callable, List, Optional, TextIO

import numpy as np

from ...config import (
    CHANNELS, SAMPLE_RATE_CAPTURE, SAMPLE_RATE_TARGET, FRAME_MS, TARGET_RMS,
    MAX_UTTERANCE_SECONDS, VAD_SILENCE_THRESHOLD, VAD_SILENCE_DURATION,
    VAD_MIN_SPEECH_DURATION, VAD_IDLE_TIMEOUT, LANGUAGE_CODE
)
from ...simulation.capture import SpeechEngine
from ...simulation.schemas import Segment
from .processing import int16_bytes_to_float, stereo_to_mono, remove_dc, rms, resample, normalize_audio, to_pcm16
from .speech.stt import recognize_google_sync

logger = logging.getLogger("speech_engine")


class EngineFailure(Exception):
    """Raised inside an engine run; carries the engine error code reported to the listener."""

    def __init__(self, code: str, detail: str = ""):
        super().__init__(detail or code)
        self.code = code
        self.detail = detail


class MicrophoneSpeechEngine(SpeechEngine):
    """Microphone capture with Voice Activity Detection and Google STT."""

    def __init__(self,
                 input_device: Optional[int] = None,
                 num_channels: int = CHANNELS,
                 sr_capture: int = SAMPLE_RATE_CAPTURE,
                 frame_ms: int = FRAME_MS,
                 sr_target: int = SAMPLE_RATE_TARGET,
                 target_rms: float = TARGET_RMS,
                 silence_threshold: float = VAD_SILENCE_THRESHOLD,
                 silence_duration: float = VAD_SILENCE_DURATION,
                 min_speech_duration: float = VAD_MIN_SPEECH_DURATION,
                 idle_timeout: float = VAD_IDLE_TIMEOUT,
                 max_seconds: float = MAX_UTTERANCE_SECONDS,
                 language: str = LANGUAGE_CODE,
                 recognizer: Callable[[bytes, int, str], str] = recognize_google_sync):
        super().__init__()
        self.input_device = input_device
        self.num_channels = num_channels
        self.sr_capture = sr_capture
        self.frame_size = int(sr_capture * frame_ms / 1000)
        self.sr_target = sr_target
        self.target_rms = target_rms

        # Voice Activity Detection settings
        self.silence_threshold = silence_threshold
        self.silence_duration = silence_duration
        self.min_speech_duration = min_speech_duration
        self.idle_timeout = idle_timeout
        self.max_seconds = max_seconds

        self.language = language
        self.recognizer = recognizer

        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._stop_event: Optional[threading.Event] = None
        self._thread: Optional[threading.Thread] = None
        self.running = False

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Microphone engine already running")
        self._loop = asyncio.get_running_loop()
        self._stop_event = threading.Event()
        self.running = True
        self._thread = threading.Thread(target=self._run, args=(self._stop_event,), daemon=True)
        self._thread.start()

    def stop(self) -> None:
        if self._stop_event is not None:
            self._stop_event.set()

    def _post(self, fn, *args) -> None:
        if self._loop is not None and not self._loop.is_closed():
            self._loop.call_soon_threadsafe(fn, *args)

    def _run(self, stop_event: threading.Event) -> None:
        try:
            text = self._capture_and_recognize(stop_event)
            if text and not stop_event.is_set():
                self._post(self.listener.on_segments, [Segment(text=text, is_final=True)])
        except EngineFailure as e:
            logger.error(f"Microphone engine failed: {e.code} {e.detail}")
            self._post(self.listener.on_engine_error, e.code, e.detail)
        except Exception as e:
            logger.exception("Unexpected microphone engine failure")
            self._post(self.listener.on_engine_error, "unknown", str(e))
        finally:
            self.running = False
            self._post(self.listener.on_engine_end)

    def _open_stream(self, pyaudio, pa):
        try:
            return pa.open(
                format=pyaudio.paInt16,
                channels=self.num_channels,
                rate=self.sr_capture,
                input=True,
                frames_per_buffer=self.frame_size,
                input_device_index=self.input_device,
            )
        except OSError as e:
            detail = str(e)
            if "permission" in detail.lower() or "not authorized" in detail.lower():
                raise EngineFailure("not-allowed", detail)
            raise EngineFailure("audio-capture", detail)

    def _capture_and_recognize(self, stop_event: threading.Event) -> str:
        """Record one utterance; returns '' on stop, idle timeout or blank recognition."""
        frames = self._record_utterance(stop_event)
        if stop_event.is_set() or not frames:
            return ""

        mono = remove_dc(np.concatenate(frames))
        y = resample(mono, self.sr_capture, self.sr_target)
        y = normalize_audio(y, self.target_rms)
        pcm16 = to_pcm16(y)
        logger.info(f"Captured {len(mono) / self.sr_capture:.1f}s of speech, recognizing")

        try:
            return self.recognizer(pcm16.tobytes(), self.sr_target, self.language)
        except Exception as e:
            raise EngineFailure("network", str(e))

    def _record_utterance(self, stop_event: threading.Event) -> List[np.ndarray]:
        import pyaudio  # lazy: needs PortAudio, only used for live capture

        pa = pyaudio.PyAudio()
        try:
            stream = self._open_stream(pyaudio, pa)
            try:
                return self._vad_loop(stream, stop_event)
            finally:
                stream.stop_stream()
                stream.close()
        finally:
            pa.terminate()

    def _vad_loop(self, stream, stop_event: threading.Event) -> List[np.ndarray]:
        frame_duration = self.frame_size / self.sr_capture
        frames: List[np.ndarray] = []
        speech_started = False
        speech_time = 0.0
        silence_time = 0.0
        idle_time = 0.0

        while not stop_event.is_set():
            raw = stream.read(self.frame_size, exception_on_overflow=False)
            mono = stereo_to_mono(int16_bytes_to_float(raw, self.num_channels))
            level = rms(mono)

            if level > self.silence_threshold:
                if not speech_started:
                    logger.debug(f"Speech detected (level: {level:.4f})")
                speech_started = True
                speech_time += frame_duration
                silence_time = 0.0
            elif speech_started:
                silence_time += frame_duration
                if silence_time >= self.silence_duration:
                    if speech_time >= self.min_speech_duration:
                        frames.append(mono)
                        logger.debug(f"Speech ended (spoke for {speech_time:.1f}s)")
                        break
                    # Too short, treat as noise
                    speech_started = False
                    speech_time = silence_time = 0.0
                    frames = []
            else:
                idle_time += frame_duration
                if idle_time >= self.idle_timeout:
                    logger.debug("No speech before idle timeout, ending run")
                    return []

            if speech_started:
                frames.append(mono)
                if len(frames) * frame_duration >= self.max_seconds:
                    logger.info(f"Utterance reached {self.max_seconds:.0f}s limit")
                    break

        return frames


class ConsoleSpeechEngine(SpeechEngine):
    """
    Typed input as a speech engine: each non-empty line is one finalized utterance.

    Lines starting with "/" go to on_command instead. End of input is reported
    as the "/end" command. Lines typed while the engine is stopped are held
    until the next start().
    """

    def __init__(self, on_command: Optional[Callable[[str], None]] = None,
                 stream: Optional[TextIO] = None):
        super().__init__()
        self.on_command = on_command
        self.stream = stream or sys.stdin
        self.running = False
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._reader: Optional[threading.Thread] = None
        self._pending: List[str] = []

    def start(self) -> None:
        if self.running:
            raise RuntimeError("Console engine already running")
        self._loop = asyncio.get_running_loop()
        self.running = True
        if self._reader is None:
            self._reader = threading.Thread(target=self._read_lines, daemon=True)
            self._reader.start()
        if self._pending:
            self._loop.call_soon(self._flush_pending)

    def stop(self) -> None:
        if not self.running:
            return
        self.running = False
        self._loop.call_soon(self.listener.on_engine_end)

    def _read_lines(self) -> None:
        while True:
            line = self.stream.readline()
            eof = line == ""
            self._loop.call_soon_threadsafe(self._on_line, "/end" if eof else line)
            if eof:
                return

    def _on_line(self, line: str) -> None:
        if self.running:
            self._deliver(line)
        else:
            self._pending.append(line)

    def _flush_pending(self) -> None:
        while self.running and self._pending:
            self._deliver(self._pending.pop(0))

    def _deliver(self, line: str) -> None:
        text = line.strip()
        if not text:
            return
        if text.startswith("/"):
            if self.on_command is not None:
                self.on_command(text)
            return
        self.running = False
        self.listener.on_segments([Segment(text=text, is_final=True)])
        self.listener.on_engine_end()
