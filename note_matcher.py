import math
from typing import Sequence

from config import ConfigurationError, NoteRef

MAX_CENTS = 50.0


def cents_between(frequency: float, reference: float) -> float:
    """Signed pitch distance in cents (100 cents = one semitone)."""
    return 1200.0 * math.log2(frequency / reference)


def match_note(frequency: float, table: Sequence[NoteRef]) -> tuple[NoteRef, float]:
    """Closest table entry by absolute Hz difference and the clamped cents deviation.

    Ties go to the earliest entry. Cents are clamped to [-50, 50].

    Raises:
        ConfigurationError: If the table is empty.
        ValueError: If frequency is not positive.
    """
    if not table:
        raise ConfigurationError("Note table must not be empty")
    if not frequency > 0:
        raise ValueError(f"Frequency must be > 0, got {frequency}")

    closest = table[0]
    min_diff = math.inf
    for note in table:
        diff = abs(note.frequency - frequency)
        if diff < min_diff:
            min_diff = diff
            closest = note

    cents = cents_between(frequency, closest.frequency)
    cents = max(-MAX_CENTS, min(MAX_CENTS, cents))
    return closest, cents


class NoteMatcher:
    """Nearest-note lookup over a fixed reference table."""

    def __init__(self, table: Sequence[NoteRef]):
        if not table:
            raise ConfigurationError("Note table must not be empty")
        self.table = tuple(table)

    def match(self, frequency: float, table: Sequence[NoteRef] | None = None) -> tuple[NoteRef, float]:
        return match_note(frequency, self.table if table is None else table)
