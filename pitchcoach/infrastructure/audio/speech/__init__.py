"""Speech-to-text and text-to-speech modules."""

from .tts import synthesize_speech, SubprocessAudioSink
from .stt import recognize_google_sync

__all__ = ["synthesize_speech", "SubprocessAudioSink", "recognize_google_sync"]
