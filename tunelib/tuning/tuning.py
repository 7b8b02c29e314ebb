"""
Tuning - note index to frequency ratio mapping.

A Tuning is built by TuningBuilder (see factory.py) and afterwards only
changed through the mutators below. Every mutator validates first and
returns a TuningResult; on anything but OK the instance is untouched.

Queries (get_ratio, get_step_distance, is_valid_note) only read the
tables and are meant to be called from the render path.
"""

from typing import Dict, Optional, Tuple

import numpy as np

from tunelib.config import (
    DEFAULT_FALLBACK_RATIO,
    FINE_STEP_COUNT_MAX,
    LETTER_NAMED_GROUP_MAX,
    MIDDLE_PERIOD_NUMBER,
    NOTE_INDEX_MAX,
    NOTE_INDEX_MIN,
)
from tunelib.utils.logger import logger
from .generators import (
    geometric_ratios,
    group_geometric_ratios,
    is_valid_ratio,
    quantize_ratio,
    step_count_range_sufficient,
)
from .ratio_table import RatioTable
from .types import NoteRange, TuningResult, TuningType


class Tuning:
    """
    Alternative note tuning.

    Do not instantiate directly; use the create_* factories or the codec,
    which validate every invariant before constructing.
    """

    def __init__(self, name: str, tuning_type: TuningType, table: RatioTable,
                 group_size: int, group_ratio: float, fine_step_count: int,
                 note_names: Optional[Dict[int, str]] = None):
        self._name = name
        self._type = tuning_type
        self._table = table
        self._group_size = group_size
        self._group_ratio = group_ratio
        self._fine_step_count = fine_step_count
        self._note_names: Dict[int, str] = dict(note_names or {})
        self._table.rebuild_fine(tuning_type, group_size, group_ratio, fine_step_count)

    def __repr__(self) -> str:
        first, last = self.get_note_range()
        return (f"Tuning(name={self._name!r}, type={self._type.name}, "
                f"range=[{first}, {last}], group_size={self._group_size}, "
                f"group_ratio={self._group_ratio}, fine_steps={self._fine_step_count})")

    # === Accessors ===

    @property
    def name(self) -> str:
        return self._name

    def set_name(self, name: str) -> None:
        self._name = name

    @property
    def tuning_type(self) -> TuningType:
        return self._type

    @property
    def group_size(self) -> int:
        return self._group_size

    @property
    def group_ratio(self) -> float:
        return self._group_ratio

    @property
    def fine_step_count(self) -> int:
        return self._fine_step_count

    @property
    def note_min(self) -> int:
        return self._table.note_min

    @property
    def note_names(self) -> Dict[int, str]:
        return dict(self._note_names)

    @property
    def ratios(self) -> np.ndarray:
        """Read-only copy of the ratio table, lowest note first."""
        return self._table.values()

    # === Queries ===

    def get_note_range(self) -> NoteRange:
        return self._table.note_range

    def is_valid_note(self, note: int) -> bool:
        return self._table.is_valid_note(note)

    def get_ratio(self, note: int, fine_steps: int = 0) -> float:
        """
        Ratio of note shifted by fine_steps.

        fine_steps may span several notes; it is split into a note delta and
        a remainder in [0, fine_step_count]. Out-of-range notes give the
        fallback ratio 1.0 (see lookup_ratio for an explicit result).
        """
        steps_per_note = self._fine_step_count + 1
        if self._fine_step_count == 0 or fine_steps == 0:
            return self._table.ratio(note + fine_steps)

        if fine_steps < 0 or fine_steps > self._fine_step_count:
            note += fine_steps // steps_per_note
            fine_steps %= steps_per_note

        if not self._table.is_valid_note(note):
            return DEFAULT_FALLBACK_RATIO
        if fine_steps == 0:
            return self._table.ratio(note)
        return self._table.fine_ratio(note, fine_steps, self._fine_step_count)

    def lookup_ratio(self, note: int) -> Tuple[TuningResult, float]:
        """Like get_ratio(note) but reports OUT_OF_RANGE instead of silently falling back."""
        if not self._table.is_valid_note(note):
            return TuningResult.OUT_OF_RANGE, DEFAULT_FALLBACK_RATIO
        return TuningResult.OK, self._table.ratio(note)

    def get_step_distance(self, from_note: int, to_note: int,
                          from_steps: int = 0, to_steps: int = 0) -> int:
        """Directed distance in fine steps between (from_note + from_steps) and (to_note + to_steps)."""
        return (to_note - from_note) * (self._fine_step_count + 1) + to_steps - from_steps

    def get_note_name(self, note: int, include_octave: bool = True) -> Optional[str]:
        """
        Display name of note, or None if note is outside the range.

        Display only; do not parse the result.
        """
        if not self._table.is_valid_note(note):
            return None

        if self._group_size < 1:
            return self._note_names.get(note, str(note))

        degree = note % self._group_size
        octave = str(MIDDLE_PERIOD_NUMBER + note // self._group_size) if include_octave else ""
        if degree in self._note_names:
            return self._note_names[degree] + octave

        # Default notation: degree letter with ':' fill (C:5), or hex for large groups
        if self._group_size <= LETTER_NAMED_GROUP_MAX:
            name = chr(ord('A') + degree) + ":"
        else:
            name = f"{degree % 16:X}{(degree // 16) % 16:X}"
            if degree > 0xFF:
                name = name.lower()
        return name + octave

    # === Mutators ===

    def set_ratio(self, note: int, ratio: float) -> TuningResult:
        """Overwrite one entry of a general tuning."""
        if self._type is not TuningType.GENERAL:
            return TuningResult.WRONG_TYPE
        table = self._table.with_ratio(note, ratio)
        if table is None:
            return TuningResult.INVALID_PARAMETER
        self._swap_table(table)
        return TuningResult.OK

    def multiply(self, factor: float) -> TuningResult:
        """Scale every ratio in range by factor. Periodicity is preserved."""
        table = self._table.scaled(factor)
        if table is None:
            return TuningResult.INVALID_PARAMETER
        self._swap_table(table)
        logger.tuning(self._name, f"ratios multiplied by {factor}")
        return TuningResult.OK

    def change_group_size(self, group_size: int) -> TuningResult:
        """Regenerate the table with a new period length."""
        if group_size < 1:
            return TuningResult.INVALID_PARAMETER
        return self._regenerate(group_size, self._group_ratio)

    def change_group_ratio(self, group_ratio: float) -> TuningResult:
        """Regenerate the table with a new per-period multiplier."""
        if not is_valid_ratio(group_ratio):
            return TuningResult.INVALID_PARAMETER
        return self._regenerate(self._group_size, quantize_ratio(group_ratio))

    def set_fine_step_count(self, count: int) -> Tuple[int, bool]:
        """
        Set the number of fine steps between two notes.

        The request is clamped into [0, FINE_STEP_COUNT_MAX]; a count whose
        step distances would overflow over the current range is rejected and
        the previous count kept.

        Returns:
            (count now in effect, whether it equals the requested count)
        """
        clamped = min(max(int(count), 0), FINE_STEP_COUNT_MAX)
        if not step_count_range_sufficient(clamped, self.get_note_range()):
            logger.tuning(self._name, f"fine step count {count} rejected",
                          details="step distance budget exceeded")
            return self._fine_step_count, False

        if clamped != self._fine_step_count:
            self._fine_step_count = clamped
            self._table.rebuild_fine(self._type, self._group_size,
                                     self._group_ratio, clamped)
        return self._fine_step_count, self._fine_step_count == count

    def set_note_name(self, note: int, text: str) -> TuningResult:
        if not isinstance(text, str) or not NOTE_INDEX_MIN <= note <= NOTE_INDEX_MAX:
            return TuningResult.INVALID_PARAMETER
        self._note_names[note] = text
        return TuningResult.OK

    def clear_note_name(self, note: int, erase_all: bool = False) -> TuningResult:
        if erase_all:
            self._note_names.clear()
            return TuningResult.OK
        if note not in self._note_names:
            return TuningResult.NOT_FOUND
        del self._note_names[note]
        return TuningResult.OK

    # === Internals ===

    def _swap_table(self, table: RatioTable) -> None:
        table.rebuild_fine(self._type, self._group_size, self._group_ratio,
                           self._fine_step_count)
        self._table = table

    def _regenerate(self, group_size: int, group_ratio: float) -> TuningResult:
        """Rebuild a periodic table from new group parameters; replace only on success."""
        note_range = self.get_note_range()

        if self._type is TuningType.GEOMETRIC:
            ratios = geometric_ratios(group_size, group_ratio, note_range)
        elif self._type is TuningType.GROUP_GEOMETRIC:
            # Current ratios of the first period starting at note 0 become the new seed
            if not note_range.covers(0) or note_range.last < group_size - 1:
                ratios = None
            else:
                offset = -note_range.first
                seed = self._table.values()[offset:offset + group_size]
                ratios = group_geometric_ratios(seed, group_ratio, note_range, 0)
        else:
            return TuningResult.WRONG_TYPE

        if ratios is None:
            logger.tuning(self._name, "regeneration rejected",
                          details=f"group_size={group_size}, group_ratio={group_ratio}")
            return TuningResult.INVALID_PARAMETER

        table = RatioTable(ratios, note_range.first)
        table.rebuild_fine(self._type, group_size, group_ratio, self._fine_step_count)
        self._table = table
        self._group_size = group_size
        self._group_ratio = group_ratio
        logger.tuning(self._name, "regenerated",
                      details=f"group_size={group_size}, group_ratio={group_ratio}")
        return TuningResult.OK
