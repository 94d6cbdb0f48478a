"""Host-side helpers: slice signals into frames, synthesize test tones, step an engine."""

from typing import Iterator, Optional

import numpy as np


def iter_frames(samples, frame_size: int, hop: Optional[int] = None) -> Iterator[np.ndarray]:
    """Yield consecutive frame_size blocks; a trailing partial block is dropped."""
    if frame_size <= 0:
        raise ValueError(f"frame_size must be positive, got {frame_size}")
    hop = frame_size if hop is None else hop
    if hop <= 0:
        raise ValueError(f"hop must be positive, got {hop}")

    signal = np.asarray(samples, dtype=np.float64).reshape(-1)
    for start in range(0, len(signal) - frame_size + 1, hop):
        yield signal[start:start + frame_size]


def sine_wave(freq: float, sample_rate: int, n: int, amplitude: float = 0.5, phase: float = 0.0) -> np.ndarray:
    t = np.arange(n) / sample_rate
    return amplitude * np.sin(2.0 * np.pi * freq * t + phase)


def pluck(
    freq: float,
    sample_rate: int,
    seconds: float,
    amplitude: float = 0.6,
    decay_per_second: float = 1.5,
) -> np.ndarray:
    """Exponentially decaying tone with a weak second harmonic, like a plucked string."""
    n = int(seconds * sample_rate)
    t = np.arange(n) / sample_rate
    envelope = amplitude * np.exp(-decay_per_second * t)
    tone = np.sin(2.0 * np.pi * freq * t) + 0.3 * np.sin(4.0 * np.pi * freq * t)
    return envelope * tone / 1.3


def drive(engine, samples, sample_rate: int, frame_size: int, hop: Optional[int] = None) -> list:
    """Run engine.process_frame over every frame of a signal; returns one result per frame."""
    return [engine.process_frame(frame, sample_rate) for frame in iter_frames(samples, frame_size, hop)]
