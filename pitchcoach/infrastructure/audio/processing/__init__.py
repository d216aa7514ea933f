"""Audio signal processing helpers."""

from .processing import (
    int16_bytes_to_float,
    stereo_to_mono,
    remove_dc,
    rms,
    resample,
    normalize_audio,
    to_pcm16,
)

__all__ = [
    "int16_bytes_to_float",
    "stereo_to_mono",
    "remove_dc",
    "rms",
    "resample",
    "normalize_audio",
    "to_pcm16",
]
