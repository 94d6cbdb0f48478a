import numpy as np


class SignalGate:
    """RMS volume gate: only frames loud enough to carry a pitch get analyzed."""

    def __init__(self, energy_threshold: float = 0.008):
        self.energy_threshold = energy_threshold

    @staticmethod
    def rms(frame) -> float:
        samples = np.asarray(frame, dtype=np.float64)
        if samples.size == 0:
            return 0.0
        return float(np.sqrt(np.mean(samples ** 2)))

    def passes(self, frame) -> bool:
        """True when the frame RMS is strictly above the energy threshold."""
        return self.rms(frame) > self.energy_threshold
