"""
Text-to-speech using Google Cloud TTS, and local playback of the returned clips.
"""
import asyncio
import base64
import logging
import os
import tempfile
from typing import Optional, Sequence, List

from google.cloud import texttospeech

from ....config import (
    LANGUAGE_CODE, TTS_VOICE, TTS_SAMPLE_RATE, TTS_SPEAKING_RATE, PLAYER_COMMANDS
)
from ....simulation.playback import AudioSink

logger = logging.getLogger("speech_tts")

_client = None


def _get_client() -> texttospeech.TextToSpeechClient:
    global _client
    if _client is None:
        _client = texttospeech.TextToSpeechClient()
    return _client


def synthesize_speech(text: str,
                      voice: str = TTS_VOICE,
                      language: str = LANGUAGE_CODE,
                      speaking_rate: float = TTS_SPEAKING_RATE) -> Optional[str]:
    """
    Synthesize text to a WAV clip.

    Returns:
        Base64-encoded audio, or None for blank text
    """
    if not text.strip():
        return None

    synthesis_input = texttospeech.SynthesisInput(text=text)
    voice_params = texttospeech.VoiceSelectionParams(language_code=language, name=voice)
    audio_config = texttospeech.AudioConfig(
        audio_encoding=texttospeech.AudioEncoding.LINEAR16,
        sample_rate_hertz=TTS_SAMPLE_RATE,
        speaking_rate=speaking_rate,
    )

    response = _get_client().synthesize_speech(
        input=synthesis_input, voice=voice_params, audio_config=audio_config
    )
    logger.info(f"Synthesized {len(response.audio_content)} bytes for {len(text)} chars")
    return base64.b64encode(response.audio_content).decode("ascii")


class SubprocessAudioSink(AudioSink):
    """Plays clips through the first available command-line player (afplay, aplay)."""

    def __init__(self, commands: Sequence[List[str]] = PLAYER_COMMANDS):
        self.commands = [list(c) for c in commands]

    async def play(self, audio: bytes) -> None:
        with tempfile.NamedTemporaryFile(suffix=".wav", delete=False) as tmp_file:
            wav_path = tmp_file.name
            tmp_file.write(audio)

        try:
            for command in self.commands:
                try:
                    proc = await asyncio.create_subprocess_exec(
                        *command, wav_path,
                        stdout=asyncio.subprocess.DEVNULL,
                        stderr=asyncio.subprocess.PIPE,
                    )
                except FileNotFoundError:
                    logger.debug(f"Player not found: {command[0]}")
                    continue

                try:
                    _, stderr = await proc.communicate()
                except asyncio.CancelledError:
                    proc.kill()
                    await proc.wait()
                    raise
                if proc.returncode != 0:
                    raise RuntimeError(
                        f"{command[0]} exited with {proc.returncode}: {stderr.decode(errors='replace').strip()}"
                    )
                return

            raise RuntimeError("No audio player available (tried %s)" % ", ".join(c[0] for c in self.commands))
        finally:
            try:
                os.unlink(wav_path)
            except OSError as e:
                logger.warning(f"Could not remove temp clip {wav_path}: {e}")
