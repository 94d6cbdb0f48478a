"""
stringtuner - Pitch Estimator
Autocorrelation pitch detection with edge trimming and parabolic peak
refinement. Reports raw estimates; the caller applies its range policy.
"""

import math
from typing import Optional

import numpy as np

from config import ConfigurationError


class PitchEstimator:
    """
    Time-domain autocorrelation estimator for one monophonic frame.

    The frame is first trimmed to the span between its first quiet sample
    (scanning forward over the first half) and its last quiet sample
    (scanning backward over the second half). This drops loud attack edges
    but is an amplitude heuristic: a very soft onset can lose real signal.
    """

    def __init__(self, edge_threshold: float = 0.1):
        self.edge_threshold = edge_threshold

    def trim_bounds(self, samples: np.ndarray) -> tuple[int, int]:
        """Return (start, end) of the analysed slice, end exclusive."""
        size = len(samples)
        half = (size + 1) // 2
        quiet = np.abs(samples) < self.edge_threshold

        start = 0
        head = np.flatnonzero(quiet[:half])
        if head.size:
            start = int(head[0])

        end = size - 1
        tail_from = size - half + 1
        tail = np.flatnonzero(quiet[tail_from:size])
        if tail.size:
            end = tail_from + int(tail[-1])
        return start, end

    @staticmethod
    def autocorrelate(buf: np.ndarray) -> np.ndarray:
        """Unnormalized autocorrelation c[lag] for lag in [0, len(buf))."""
        n = len(buf)
        return np.correlate(buf, buf, mode="full")[n - 1:]

    def estimate(self, frame, sample_rate: int) -> Optional[float]:
        """Estimate the fundamental frequency in Hz, or None when no usable peak exists."""
        if not sample_rate > 0:
            raise ConfigurationError(f"Sample rate must be positive, got {sample_rate}")

        samples = np.asarray(frame, dtype=np.float64)
        start, end = self.trim_bounds(samples)
        buf = samples[start:end]
        n = len(buf)
        if n < 3:
            return None

        c = self.autocorrelate(buf)

        # Skip the falling slope of the zero-lag peak
        rising = np.flatnonzero(c[:-1] <= c[1:])
        d = int(rising[0]) if rising.size else n - 1

        t0 = d + int(np.argmax(c[d:]))
        if c[t0] <= 0 or t0 <= 0 or t0 >= n - 1:
            return None

        x1, x2, x3 = c[t0 - 1], c[t0], c[t0 + 1]
        a = (x1 + x3 - 2 * x2) / 2
        b = (x3 - x1) / 2
        period = float(t0)
        if a:
            period -= b / (2 * a)

        if period <= 0:
            return None
        freq = sample_rate / period
        if not math.isfinite(freq):
            return None
        return float(freq)
