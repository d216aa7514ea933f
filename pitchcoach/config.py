"""
PitchCoach Configuration System
===============================

This file contains ALL configuration for the PitchCoach rehearsal system.
- User settings at the top (things users might want to change)
- Internal constants at the bottom (technical defaults)
"""
import os
from dataclasses import dataclass
from typing import Optional, List, Dict


# =============================================================================
# USER SETTINGS - Edit these to customize a rehearsal session
# =============================================================================

# Coaching service (the /chat and /analyze endpoints)
API_BASE_URL = "http://127.0.0.1:8000/api"

# Backend only: Google Cloud project used for Gemini and TTS
GOOGLE_CLOUD_PROJECT = "your-project-id"  # Change this!
GOOGLE_APPLICATION_CREDENTIALS = None  # Optional: path to credentials JSON

# Session settings
WORKDIR = "./_sessions"
TURN_WINDOW = 2  # Conversational turns of history sent with each utterance
DEFAULT_SCENARIO_ID = "hesitant"

# Speech settings
ENABLE_VOICE = True
LANGUAGE_CODE = "en-US"
TTS_VOICE = "en-US-Neural2-D"

# Logging
LOG_FILE = "./_sessions/pitchcoach.log"
LOG_LEVEL = "INFO"


# =============================================================================
# SCENARIO CATALOG
# =============================================================================

SCENARIOS: List[Dict[str, str]] = [
    {
        "id": "hesitant",
        "title": "Hesitant Client",
        "description": "The client shows interest but voices doubts and needs reassurance.",
    },
    {
        "id": "pressed",
        "title": "Busy Client",
        "description": "The client has very little time and wants you to get to the point.",
    },
    {
        "id": "curious",
        "title": "Curious Client",
        "description": "The client asks many technical and detailed questions.",
    },
    {
        "id": "budget",
        "title": "Price-Sensitive Client",
        "description": "The client is very concerned about budget and is looking for the best deal.",
    },
]


# =============================================================================
# INTERNAL CONSTANTS - Don't change these unless you know what you're doing
# =============================================================================

# Coaching API
API_TIMEOUT = 60
CHAT_PATH = "/chat"
ANALYZE_PATH = "/analyze"

# Session timing
TIMER_INTERVAL = 1.0

# Audio capture
SAMPLE_RATE_CAPTURE = 48000
SAMPLE_RATE_TARGET = 16000
CHANNELS = 1
FRAME_MS = 30
TARGET_RMS = 0.06
MAX_UTTERANCE_SECONDS = 30.0

# Voice Activity Detection
VAD_SILENCE_THRESHOLD = 0.01
VAD_SILENCE_DURATION = 1.5
VAD_MIN_SPEECH_DURATION = 0.5
VAD_IDLE_TIMEOUT = 8.0  # Engine run ends after this long without any speech

# Playback
PLAYER_COMMANDS = (["afplay"], ["aplay", "-q"])

# TTS technical
TTS_SAMPLE_RATE = 24000
TTS_SPEAKING_RATE = 1.0

# LLM (backend)
VERTEX_LOCATION = "us-central1"
MODEL_NAME = "gemini-2.5-flash-lite"
LLM_TIMEOUT = 60
MAX_OUTPUT_TOKENS = 512
CHAT_TEMPERATURE = 0.7
ANALYSIS_TEMPERATURE = 0.0

# Backend server
SERVER_HOST = "127.0.0.1"
SERVER_PORT = 8000


# =============================================================================
# MAIN CONFIG OBJECT
# =============================================================================

@dataclass
class Config:
    """Main configuration object."""
    api_base_url: str = API_BASE_URL
    api_timeout: int = API_TIMEOUT
    google_cloud_project: Optional[str] = None
    google_application_credentials: Optional[str] = None
    workdir: str = WORKDIR
    turn_window: int = TURN_WINDOW
    enable_voice: bool = ENABLE_VOICE
    language_code: str = LANGUAGE_CODE
    tts_voice: str = TTS_VOICE
    log_file: str = LOG_FILE
    log_level: str = LOG_LEVEL

    def require_project(self) -> str:
        """Return the Google Cloud project, failing if it was never configured."""
        if not self.google_cloud_project or self.google_cloud_project == "your-project-id":
            raise ValueError("Please set GOOGLE_CLOUD_PROJECT in config.py or as environment variable")
        return self.google_cloud_project


def get_config() -> Config:
    """Load configuration, letting environment variables override the defaults above."""
    workdir = os.getenv("PITCHCOACH_WORKDIR") or WORKDIR
    return Config(
        api_base_url=(os.getenv("PITCHCOACH_API_URL") or API_BASE_URL).rstrip("/"),
        google_cloud_project=os.getenv("GOOGLE_CLOUD_PROJECT") or GOOGLE_CLOUD_PROJECT,
        google_application_credentials=os.getenv("GOOGLE_APPLICATION_CREDENTIALS") or GOOGLE_APPLICATION_CREDENTIALS,
        workdir=workdir,
        language_code=os.getenv("PITCHCOACH_LANGUAGE") or LANGUAGE_CODE,
        log_file=os.path.join(workdir, "pitchcoach.log"),
        log_level=os.getenv("PITCHCOACH_LOG_LEVEL") or LOG_LEVEL,
    )
