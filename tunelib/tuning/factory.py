"""
Tuning construction.

TuningBuilder collects raw tuning fields (from a factory call or from a
parsed .tun stream), validates them and only then builds a Tuning. It is
the single construction path: a failed build logs why and returns None,
never a half-built instance.

Field meaning of `ratios` depends on the type:
    GENERAL          full table, one ratio per note (None = all 1.0)
    GROUP_GEOMETRIC  seed for one period, placed at note `ratio_start`
    GEOMETRIC        unused; the table is derived from group size/ratio

`stored_ratios` is a full persisted table for the periodic types. The
regenerated table must reproduce it within PERIODIC_TABLE_RTOL, after which
the stored values themselves become the table. For GEOMETRIC it also carries
any uniform scale applied with Tuning.multiply().
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np

from tunelib.config import (
    FINE_STEP_COUNT_MAX,
    NOTE_INDEX_MAX,
    NOTE_INDEX_MIN,
    NOTE_MIN_DEFAULT,
    PERIODIC_TABLE_RTOL,
    RATIO_TABLE_SIZE_DEFAULT,
)
from tunelib.utils.logger import logger
from .generators import (
    RATIO_DTYPE,
    equal_division_seed,
    general_ratios,
    geometric_ratios,
    group_geometric_ratios,
    is_valid_range,
    is_valid_ratio,
    quantize_ratio,
    scale_ratios,
    step_count_range_sufficient,
)
from .ratio_table import RatioTable
from .tuning import Tuning
from .types import NoteRange, TuningType


def _ratio_errors(values, label: str) -> List[str]:
    """Check a ratio sequence is a non-empty 1-D run of positive finite numbers."""
    try:
        array = np.asarray(values, dtype=np.float64)
    except (TypeError, ValueError):
        return [f"{label} must be numbers"]
    if array.ndim != 1 or array.size == 0:
        return [f"{label} must be a non-empty sequence"]
    if not np.all(np.isfinite(array)) or np.any(array <= 0):
        return [f"{label} must all be > 0"]
    return []


@dataclass
class TuningBuilder:
    name: str = ""
    tuning_type: TuningType = TuningType.GENERAL
    note_min: int = NOTE_MIN_DEFAULT
    table_size: int = RATIO_TABLE_SIZE_DEFAULT
    ratios: Optional[Sequence[float]] = None
    ratio_start: Optional[int] = None  # Note of ratios[0]; defaults to note_min
    stored_ratios: Optional[Sequence[float]] = None
    group_size: int = 0
    group_ratio: float = 0.0
    fine_step_count: int = 0
    note_names: Dict[int, str] = field(default_factory=dict)

    @property
    def note_range(self) -> NoteRange:
        return NoteRange(self.note_min, self.note_min + self.table_size - 1)

    @property
    def seed_start(self) -> int:
        return self.note_min if self.ratio_start is None else self.ratio_start

    def validate(self) -> List[str]:
        """Return a list of invariant violations (empty when buildable)."""
        errors = []

        if not isinstance(self.name, str):
            errors.append(f"name must be string, got {type(self.name).__name__}")
        if not isinstance(self.tuning_type, TuningType):
            errors.append(f"unknown tuning type {self.tuning_type!r}")
            return errors

        note_range = self.note_range
        if self.table_size < 1:
            errors.append(f"table_size must be >= 1, got {self.table_size}")
            return errors
        if not is_valid_range(note_range):
            errors.append(f"note range [{note_range.first}, {note_range.last}] "
                          f"outside [{NOTE_INDEX_MIN}, {NOTE_INDEX_MAX}]")

        if not 0 <= self.fine_step_count <= FINE_STEP_COUNT_MAX:
            errors.append(f"fine_step_count must be 0-{FINE_STEP_COUNT_MAX}, "
                          f"got {self.fine_step_count}")
        elif not step_count_range_sufficient(self.fine_step_count, note_range):
            errors.append(f"fine_step_count {self.fine_step_count} too large "
                          f"for {self.table_size} notes")

        if self.ratios is not None:
            ratio_errors = _ratio_errors(self.ratios, "ratios")
            errors.extend(ratio_errors)
            if ratio_errors:
                return errors

        if self.stored_ratios is not None:
            errors.extend(_ratio_errors(self.stored_ratios, "stored ratios"))
            if len(self.stored_ratios) != self.table_size:
                errors.append(f"stored table has {len(self.stored_ratios)} ratios, "
                              f"range needs {self.table_size}")

        if self.tuning_type is TuningType.GENERAL:
            if self.group_size < 0:
                errors.append(f"group_size must be >= 0, got {self.group_size}")
            if not (self.group_ratio == 0.0 or is_valid_ratio(self.group_ratio)):
                errors.append(f"group_ratio must be >= 0, got {self.group_ratio}")
            if self.ratios is not None and len(self.ratios) != self.table_size:
                errors.append(f"general tuning needs {self.table_size} ratios, "
                              f"got {len(self.ratios)}")
        else:
            if self.group_size < 1:
                errors.append(f"group_size must be >= 1, got {self.group_size}")
            if not is_valid_ratio(self.group_ratio):
                errors.append(f"group_ratio must be > 0, got {self.group_ratio}")

        if self.tuning_type is TuningType.GROUP_GEOMETRIC:
            if self.ratios is None:
                errors.append("group-geometric tuning needs seed ratios")
            else:
                if len(self.ratios) != self.group_size:
                    errors.append(f"seed has {len(self.ratios)} ratios, "
                                  f"group_size is {self.group_size}")
                start = self.seed_start
                if not note_range.covers(start) or note_range.last - start < len(self.ratios) - 1:
                    errors.append(f"seed at note {start} does not fit in "
                                  f"[{note_range.first}, {note_range.last}]")

        for note, text in self.note_names.items():
            if not isinstance(note, int) or not NOTE_INDEX_MIN <= note <= NOTE_INDEX_MAX:
                errors.append(f"note name key {note!r} is not an int16 note index")
            if not isinstance(text, str):
                errors.append(f"note name for {note!r} must be string")

        return errors

    def build(self) -> Optional[Tuning]:
        """Validate and construct; None (with a warning logged) on any violation."""
        errors = self.validate()
        if errors:
            logger.rejected("TUN", "Tuning", errors)
            return None

        ratios = self._generate()
        if ratios is None:
            logger.rejected("TUN", "Tuning", f"{self.tuning_type.name} table out of float32 range")
            return None

        if self.stored_ratios is not None and self.tuning_type.is_periodic:
            stored = np.asarray(self.stored_ratios, dtype=np.float64)
            if not np.allclose(ratios, stored, rtol=PERIODIC_TABLE_RTOL, atol=0.0):
                logger.rejected("TUN", "Tuning", f"stored table is not {self.tuning_type.name}")
                return None
            # Regeneration only validates; the persisted values are kept exactly
            ratios = stored.astype(RATIO_DTYPE)

        group_ratio = float(self.group_ratio)
        if self.tuning_type.is_periodic:
            group_ratio = quantize_ratio(group_ratio)

        tuning = Tuning(
            name=self.name,
            tuning_type=self.tuning_type,
            table=RatioTable(ratios, self.note_min),
            group_size=self.group_size,
            group_ratio=group_ratio,
            fine_step_count=self.fine_step_count,
            note_names=self.note_names,
        )
        logger.tuning(self.name, "created", details=repr(tuning))
        return tuning

    def _generate(self) -> Optional[np.ndarray]:
        note_range = self.note_range
        if self.tuning_type is TuningType.GEOMETRIC:
            ratios = geometric_ratios(self.group_size, self.group_ratio, note_range)
            if ratios is None or self.stored_ratios is None:
                return ratios
            # Recover a uniform multiplier from the stored table, referenced at note 0 when present
            ref = -self.note_min if note_range.covers(0) else 0
            factor = float(self.stored_ratios[ref]) / float(ratios[ref])
            if factor == 1.0:
                return ratios
            return scale_ratios(ratios, factor)
        if self.tuning_type is TuningType.GROUP_GEOMETRIC:
            return group_geometric_ratios(self.ratios, self.group_ratio, note_range, self.seed_start)
        if self.ratios is None:
            return np.ones(self.table_size, dtype=np.float32)
        return general_ratios(self.ratios)


# === Factories ===

def default_note_range() -> NoteRange:
    return NoteRange(NOTE_MIN_DEFAULT, NOTE_MIN_DEFAULT + RATIO_TABLE_SIZE_DEFAULT - 1)


def _symmetric_range(seed_length: int) -> NoteRange:
    """Default window, widened symmetrically around 0 to hold a seed placed at note 0."""
    last = max(default_note_range().last, seed_length - 1)
    return NoteRange(-last - 1, last)


def create_general(name: str) -> Optional[Tuning]:
    """General tuning over the default range with every ratio 1.0."""
    return TuningBuilder(name=name, tuning_type=TuningType.GENERAL).build()


def create_geometric(name: str, group_size: int, group_ratio: float,
                     fine_step_count: int = 0,
                     note_range: Optional[NoteRange] = None) -> Optional[Tuning]:
    """Geometric tuning: ratio(n) = group_ratio ** (n / group_size)."""
    if note_range is None:
        note_range = default_note_range()
    return TuningBuilder(
        name=name,
        tuning_type=TuningType.GEOMETRIC,
        note_min=note_range.first,
        table_size=note_range.size,
        group_size=group_size,
        group_ratio=group_ratio,
        fine_step_count=fine_step_count,
    ).build()


def create_group_geometric(name: str, group_size: int, group_ratio: float,
                           fine_step_count: int = 0) -> Optional[Tuning]:
    """Group-geometric tuning seeded with an equal division of group_ratio."""
    seed = equal_division_seed(group_size, group_ratio)
    if seed is None:
        logger.rejected("TUN", "Tuning", f"group_size={group_size}, group_ratio={group_ratio}")
        return None
    return create_group_geometric_from_ratios(name, seed.tolist(), group_ratio, fine_step_count)


def create_group_geometric_from_ratios(name: str, ratios: Sequence[float], group_ratio: float,
                                       fine_step_count: int = 0) -> Optional[Tuning]:
    """Group-geometric tuning repeating `ratios` (placed at note 0) every len(ratios) notes."""
    ratios = list(ratios)
    note_range = _symmetric_range(len(ratios))
    return TuningBuilder(
        name=name,
        tuning_type=TuningType.GROUP_GEOMETRIC,
        note_min=note_range.first,
        table_size=note_range.size,
        ratios=ratios,
        ratio_start=0,
        group_size=len(ratios),
        group_ratio=group_ratio,
        fine_step_count=fine_step_count,
    ).build()
