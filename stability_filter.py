from dataclasses import dataclass
from enum import IntEnum


class TunerState(IntEnum):
    """Conceptual engine state, derived from the stability count"""
    IDLE = 0       # No consistent frames
    TRACKING = 1   # Some consistent frames, below the lock threshold
    LOCKED = 2     # Threshold reached, detections are reported


@dataclass
class EngineState:
    """Mutable per-engine tracking state. Owned by exactly one TunerEngine."""
    last_frequency: float = 0.0   # Hz of the last range-valid estimate, 0 = no reference yet
    stability_count: int = 0      # Consecutive frames agreeing within delta_hz


class StabilityFilter:
    """
    Hysteresis filter that only lets a pitch through once consecutive frames agree.

    Rules, applied to a caller-owned EngineState:
      - valid estimate within delta_hz of the previous one: count += 1
      - valid estimate further away: count = 0 (it becomes the new reference)
      - silent frame: count -= 1, floored at 0, reference kept
    A fresh state has no reference, so its first estimate seeds one and counts
    as the first consistent frame.
    """

    def __init__(self, delta_hz: float = 3.0, threshold: int = 3):
        self.delta_hz = delta_hz
        self.threshold = threshold

    def observe(self, state: EngineState, frequency: float) -> bool:
        """Feed one range-valid estimate. Returns True when the state is locked."""
        if state.last_frequency <= 0:
            state.stability_count = 1
        elif abs(frequency - state.last_frequency) < self.delta_hz:
            state.stability_count += 1
        else:
            state.stability_count = 0

        state.last_frequency = frequency
        return self.is_locked(state)

    def decay(self, state: EngineState) -> None:
        """Silent frame: count drops by exactly one, never below zero."""
        if state.stability_count > 0:
            state.stability_count -= 1

    def is_locked(self, state: EngineState) -> bool:
        return state.stability_count >= self.threshold

    def state_of(self, state: EngineState) -> TunerState:
        if self.is_locked(state):
            return TunerState.LOCKED
        if state.stability_count > 0:
            return TunerState.TRACKING
        return TunerState.IDLE
