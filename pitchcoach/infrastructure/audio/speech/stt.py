"""
Speech-to-text functionality using Google Cloud Speech.
"""
import logging

from google.cloud import speech
from ....config import LANGUAGE_CODE, SAMPLE_RATE_TARGET

logger = logging.getLogger("speech_stt")

_client = None


def _get_client() -> speech.SpeechClient:
    global _client
    if _client is None:
        _client = speech.SpeechClient()
    return _client


def recognize_google_sync(pcm16_bytes: bytes,
                          sr_hz: int = SAMPLE_RATE_TARGET,
                          language: str = LANGUAGE_CODE) -> str:
    """
    Synchronous Google Cloud Speech-to-Text recognition.
    Returns transcribed text or empty string if no speech detected.
    Service failures propagate to the caller.
    """
    audio = speech.RecognitionAudio(content=pcm16_bytes)
    config = speech.RecognitionConfig(
        encoding=speech.RecognitionConfig.AudioEncoding.LINEAR16,
        sample_rate_hertz=sr_hz,
        language_code=language,
        enable_automatic_punctuation=True,
    )

    resp = _get_client().recognize(config=config, audio=audio)
    texts = [r.alternatives[0].transcript for r in resp.results if r.alternatives]
    text = " ".join(texts).strip()
    logger.debug("Recognized %d chars", len(text))
    return text
