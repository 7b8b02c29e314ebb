"""
RatioTable - per-note frequency ratios over a contiguous note window.

Holds the float32 ratio array, the lowest note index and the derived
fine-step table. Structural edits return a new table so the owning
Tuning can swap it in atomically.
"""

from typing import Optional

import numpy as np

from tunelib.config import DEFAULT_FALLBACK_RATIO
from .generators import (
    RATIO_DTYPE,
    empty_fine_table,
    geometric_fine_table,
    group_geometric_fine_table,
    is_valid_ratio,
    scale_ratios,
)
from .types import NoteRange, TuningType


class RatioTable:
    """Ratios for notes note_min .. note_min + size - 1."""

    def __init__(self, ratios: np.ndarray, note_min: int):
        self._ratios = np.array(ratios, dtype=RATIO_DTYPE)
        self._note_min = int(note_min)
        self._note_max = self._note_min + self._ratios.size - 1
        self._fine = empty_fine_table()
        self._fine_period = 1

    @property
    def note_min(self) -> int:
        return self._note_min

    @property
    def size(self) -> int:
        return int(self._ratios.size)

    @property
    def note_range(self) -> NoteRange:
        return NoteRange(self._note_min, self._note_max)

    @property
    def has_fine_table(self) -> bool:
        return self._fine.size > 0

    def is_valid_note(self, note: int) -> bool:
        return self._note_min <= note <= self._note_max

    def ratio(self, note: int) -> float:
        """Ratio of note, or the fallback ratio outside the window."""
        if not self._note_min <= note <= self._note_max:
            return DEFAULT_FALLBACK_RATIO
        return float(self._ratios[note - self._note_min])

    def fine_ratio(self, note: int, fine_step: int, fine_step_count: int) -> float:
        """
        Ratio fine_step steps above note, with 1 <= fine_step <= fine_step_count.

        Uses the precomputed rows when available, otherwise interpolates
        between note and note + 1. The last note has no upper neighbour and
        keeps its own ratio.
        """
        base = self.ratio(note)
        if self._fine.size:
            row = note % self._fine_period
            return base * float(self._fine[row, fine_step - 1])
        if not self.is_valid_note(note + 1):
            return base
        upper = float(self._ratios[note + 1 - self._note_min])
        return base * (upper / base) ** (fine_step / (fine_step_count + 1))

    def values(self) -> np.ndarray:
        """Read-only copy of the ratios."""
        values = self._ratios.copy()
        values.flags.writeable = False
        return values

    def with_ratio(self, note: int, ratio: float) -> Optional["RatioTable"]:
        """Copy with one entry replaced, or None if the stored value would not be positive."""
        if not self.is_valid_note(note) or not is_valid_ratio(ratio):
            return None
        ratios = self._ratios.copy()
        ratios[note - self._note_min] = ratio
        if not np.isfinite(ratios[note - self._note_min]) or ratios[note - self._note_min] <= 0:
            return None
        return RatioTable(ratios, self._note_min)

    def scaled(self, factor: float) -> Optional["RatioTable"]:
        """Copy with every entry multiplied by factor."""
        ratios = scale_ratios(self._ratios, factor)
        if ratios is None:
            return None
        return RatioTable(ratios, self._note_min)

    def rebuild_fine(self, tuning_type: TuningType, group_size: int,
                     group_ratio: float, fine_step_count: int) -> None:
        """Recompute the fine-step table for the given tuning parameters."""
        if tuning_type is TuningType.GEOMETRIC:
            self._fine = geometric_fine_table(group_size, group_ratio, fine_step_count)
            self._fine_period = 1
        elif tuning_type is TuningType.GROUP_GEOMETRIC:
            self._fine = group_geometric_fine_table(
                self._ratios, self._note_min, group_size, fine_step_count)
            self._fine_period = max(group_size, 1)
        else:
            # General tunings interpolate on the fly
            self._fine = empty_fine_table()
            self._fine_period = 1
