"""
Signal helpers used by the microphone engine: level metering, channel folding,
resampling and conversion to the PCM16 the recognizer expects.
"""
from math import gcd

import numpy as np
from scipy.signal import resample_poly

from ....config import TARGET_RMS


def int16_bytes_to_float(raw: bytes, channels: int = 1) -> np.ndarray:
    """Decode interleaved PCM16 bytes into float32 samples in [-1, 1], shape (n, channels)."""
    samples = np.frombuffer(raw, dtype=np.int16).astype(np.float32) / 32768.0
    return samples.reshape(-1, channels)


def stereo_to_mono(x: np.ndarray) -> np.ndarray:
    """Fold multi-channel audio to mono by averaging channels."""
    if x.ndim == 1:
        return x
    return np.mean(x, axis=1)


def remove_dc(x: np.ndarray) -> np.ndarray:
    """Remove DC offset from audio signal."""
    return x - np.mean(x)


def rms(x: np.ndarray) -> float:
    if x.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(x ** 2)))


def resample(mono: np.ndarray, sr_in: int, sr_out: int) -> np.ndarray:
    """Polyphase resample between arbitrary integer rates."""
    if sr_in == sr_out:
        return mono.astype(np.float32)
    g = gcd(sr_in, sr_out)
    return resample_poly(mono, up=sr_out // g, down=sr_in // g).astype(np.float32)


def normalize_audio(audio: np.ndarray, target_rms: float = TARGET_RMS) -> np.ndarray:
    """Normalize audio to target RMS level, gain capped at 20x."""
    level = rms(audio) + 1e-9
    gain = min(20.0, target_rms / level)
    return audio * gain


def to_pcm16(audio: np.ndarray) -> np.ndarray:
    return np.clip(audio * 32767, -32768, 32767).astype(np.int16)
