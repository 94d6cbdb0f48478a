"""
stringtuner - Tuner Engine
Turns one frame of samples into a tuning detection: volume gate,
autocorrelation pitch estimate, stability lock, nearest-note match.
"""

import time
from dataclasses import dataclass, field
from typing import Optional

import numpy as np

from config import Config, ConfigurationError, NoteRef, validate_config
from logging_utils import log_event
from note_matcher import NoteMatcher
from pitch_estimator import PitchEstimator
from signal_gate import SignalGate
from stability_filter import EngineState, StabilityFilter, TunerState

IN_TUNE_CENTS = 5.0


@dataclass(frozen=True, eq=False)
class AudioFrame:
    """One fixed-size block of mono samples and the rate they were taken at"""
    samples: np.ndarray = field(repr=False)
    sample_rate: int

    def __post_init__(self):
        samples = np.asarray(self.samples, dtype=np.float64).reshape(-1)
        object.__setattr__(self, "samples", samples)

    def __len__(self) -> int:
        return len(self.samples)


@dataclass(frozen=True)
class DetectionEvent:
    """A locked pitch reading for the display layer"""
    frequency: float           # Estimated fundamental (Hz)
    matched_note: NoteRef      # Closest reference note
    cents_deviation: float     # Clamped to [-50, 50]

    @property
    def note_name(self) -> str:
        return self.matched_note.name

    @property
    def in_tune(self) -> bool:
        return abs(self.cents_deviation) < IN_TUNE_CENTS

    @property
    def needle_position(self) -> float:
        """Indicator position as a percentage of a linear scale (50 = centered)."""
        return 50.0 + self.cents_deviation


class TunerEngine:
    """
    Per-frame tuning engine.

    Not thread-safe: one instance per signal, driven by a single caller.
    Each process_frame call performs exactly one state transition.
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config if config is not None else Config()
        validate_config(self.config)

        self.gate = SignalGate(self.config.gate.energy_threshold)
        self.estimator = PitchEstimator(self.config.estimator.edge_threshold)
        self.stability = StabilityFilter(self.config.stability.delta_hz, self.config.stability.threshold)
        self.matcher = NoteMatcher(self.config.notes)
        self.freq_min = self.config.estimator.freq_min
        self.freq_max = self.config.estimator.freq_max

        self.state = EngineState()
        self._reset_session_stats()

    @property
    def tuner_state(self) -> TunerState:
        return self.stability.state_of(self.state)

    def reset(self) -> None:
        """Drop any lock and tracking history and start a new session."""
        self.state = EngineState()
        self._reset_session_stats()

    def process_frame(self, frame, sample_rate: Optional[int] = None) -> Optional[DetectionEvent]:
        """Analyze one frame. Returns a DetectionEvent while locked, otherwise None."""
        if isinstance(frame, AudioFrame):
            samples = frame.samples
            rate = frame.sample_rate if sample_rate is None else sample_rate
        else:
            samples = np.asarray(frame, dtype=np.float64).reshape(-1)
            rate = self.config.audio.sample_rate if sample_rate is None else sample_rate

        if not rate > 0:
            raise ConfigurationError(f"Sample rate must be positive, got {rate}")
        if len(samples) < 3:
            raise ConfigurationError(f"Frame must hold at least 3 samples, got {len(samples)}")

        was_locked = self.stability.is_locked(self.state)
        rms = self.gate.rms(samples)
        self._update_session_stats(rms)

        if not self.gate.passes(samples):
            self.stability.decay(self.state)
            if was_locked and not self.stability.is_locked(self.state):
                log_event("INFO", "Tuner", "Lock lost (silence)", count=self.state.stability_count)
            return None

        self._session_gated_frames += 1
        freq = self.estimator.estimate(samples, rate)
        if freq is None:
            return None
        self._session_estimates += 1

        if not self.freq_min <= freq < self.freq_max:
            self._session_out_of_range += 1
            log_event("DEBUG", "Tuner", "Estimate out of range", freq_hz=f"{freq:.2f}")
            return None

        locked = self.stability.observe(self.state, freq)
        if not locked:
            if was_locked:
                log_event("INFO", "Tuner", "Lock lost (unstable pitch)", freq_hz=f"{freq:.2f}")
            return None

        note, cents = self.matcher.match(freq)
        self._session_locked_frames += 1
        if not was_locked:
            self._session_locks += 1
            log_event("INFO", "Tuner", "Signal locked", note=note.name, freq_hz=f"{freq:.2f}", cents=f"{cents:+.1f}")
        return DetectionEvent(frequency=freq, matched_note=note, cents_deviation=cents)

    # ===== SESSION STATISTICS =====

    def _reset_session_stats(self) -> None:
        self._session_started_at = time.time()
        self._session_frame_count = 0
        self._session_gated_frames = 0
        self._session_estimates = 0
        self._session_out_of_range = 0
        self._session_locked_frames = 0
        self._session_locks = 0
        self._session_rms_min: float | None = None
        self._session_rms_max: float | None = None
        self._session_rms_sum = 0.0

    def _update_session_stats(self, rms: float) -> None:
        self._session_frame_count += 1
        self._session_rms_sum += rms
        if self._session_rms_min is None or rms < self._session_rms_min:
            self._session_rms_min = rms
        if self._session_rms_max is None or rms > self._session_rms_max:
            self._session_rms_max = rms

    def session_summary(self) -> dict:
        frames = self._session_frame_count
        return {
            "seconds": max(0.0, time.time() - self._session_started_at),
            "frames": frames,
            "gated_frames": self._session_gated_frames,
            "estimates": self._session_estimates,
            "out_of_range": self._session_out_of_range,
            "locked_frames": self._session_locked_frames,
            "locks": self._session_locks,
            "rms_min": float(self._session_rms_min or 0.0),
            "rms_max": float(self._session_rms_max or 0.0),
            "rms_mean": self._session_rms_sum / frames if frames else 0.0,
        }

    def log_session_summary(self) -> None:
        if self._session_frame_count <= 0:
            return

        summary = self.session_summary()
        log_event(
            "INFO",
            "Tuner",
            "Session summary",
            frames=summary["frames"],
            seconds=f"{summary['seconds']:.1f}",
            gated=summary["gated_frames"],
            estimates=summary["estimates"],
            out_of_range=summary["out_of_range"],
            locked=summary["locked_frames"],
            locks=summary["locks"],
            rms_min=f"{summary['rms_min']:.6f}",
            rms_max=f"{summary['rms_max']:.6f}",
            rms_mean=f"{summary['rms_mean']:.6f}",
        )
