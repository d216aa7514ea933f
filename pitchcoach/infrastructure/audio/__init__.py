"""
Audio I/O for live rehearsals.

- processing: signal helpers (levels, resampling, PCM16)
- speech: Google speech-to-text and text-to-speech, local clip playback
- engines: microphone and console speech engines
"""


# Lazy imports (avoid importing pyaudio and Google clients unless needed)
def __getattr__(name):
    if name in ("MicrophoneSpeechEngine", "ConsoleSpeechEngine"):
        from . import engines
        return getattr(engines, name)
    if name in ("synthesize_speech", "SubprocessAudioSink", "recognize_google_sync"):
        from . import speech
        return getattr(speech, name)
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")


__all__ = [
    "MicrophoneSpeechEngine",
    "ConsoleSpeechEngine",
    "synthesize_speech",
    "SubprocessAudioSink",
    "recognize_google_sync",
]
