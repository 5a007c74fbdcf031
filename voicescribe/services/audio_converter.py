"""
Audio Converter - VoiceScribe

Conversions between Discord's decoded voice PCM and the recognizer input.

Discord delivers 48kHz stereo s16le; Vosk wants mono s16le at its model rate.
"""

import math
from pathlib import Path
from typing import Union

import numpy as np
from pydub import AudioSegment

from voicescribe.config import config


def pcm_to_segment(
    pcm: bytes,
    sample_rate: int = config.DISCORD_SAMPLE_RATE,
    channels: int = config.DISCORD_CHANNELS,
    sample_width: int = config.DISCORD_SAMPLE_WIDTH
) -> AudioSegment:
    """
    Wrap raw PCM in an AudioSegment.

    A trailing partial frame (can happen with a truncated packet) is dropped.
    """
    frame_width = channels * sample_width
    usable = len(pcm) - (len(pcm) % frame_width)
    return AudioSegment(
        data=pcm[:usable],
        sample_width=sample_width,
        frame_rate=sample_rate,
        channels=channels
    )


def to_recognizer_pcm(segment: AudioSegment, sample_rate: int = config.VOSK_SAMPLE_RATE) -> bytes:
    """Downmix to mono 16-bit at the recognizer rate."""
    segment = segment.set_channels(1).set_sample_width(2).set_frame_rate(sample_rate)
    return segment.raw_data


def save_wav(segment: AudioSegment, path: Union[str, Path]) -> Path:
    """Write a WAV file (no ffmpeg needed for wav)."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    segment.export(str(path), format="wav")
    return path


def load_wav(path: Union[str, Path]) -> AudioSegment:
    return AudioSegment.from_wav(str(path))


def pcm_duration_ms(
    pcm_length: int,
    sample_rate: int = config.DISCORD_SAMPLE_RATE,
    channels: int = config.DISCORD_CHANNELS,
    sample_width: int = config.DISCORD_SAMPLE_WIDTH
) -> int:
    """Duration in ms of pcm_length bytes."""
    return int(pcm_length * 1000 / (sample_rate * channels * sample_width))


def loudness_dbfs(pcm: bytes) -> float:
    """
    RMS level of s16le PCM in dBFS.

    Returns:
        -inf for empty or all-zero audio, 0.0 for full scale
    """
    samples = np.frombuffer(pcm[:len(pcm) - (len(pcm) % 2)], dtype=np.int16)
    if samples.size == 0:
        return -math.inf

    rms = np.sqrt(np.mean(samples.astype(np.float64) ** 2))
    if rms == 0:
        return -math.inf
    return float(20 * np.log10(rms / 32768.0))


def is_silent(pcm: bytes, threshold_db: float = config.SILENCE_THRESHOLD_DB) -> bool:
    return loudness_dbfs(pcm) < threshold_db
