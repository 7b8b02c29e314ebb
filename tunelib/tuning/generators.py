"""
Ratio table generators.

Pure functions: each takes tuning parameters and returns a fresh float32
ratio array (or fine-step array), or None when the parameters cannot
describe a valid table. Nothing here touches a Tuning instance, so callers
can build a replacement table and swap it in only once it exists.

Ratios are computed in float64 and stored as float32, the precision used
by the .tun format. Seeds and group ratios are quantized to float32 before
use so a table regenerated from its persisted parameters is bit-identical.
"""

import math
from typing import Optional, Sequence

import numpy as np

from tunelib.config import (
    FINE_TABLE_SIZE_MAX,
    NOTE_INDEX_MAX,
    NOTE_INDEX_MIN,
    STEP_INDEX_MAX,
)
from .types import NoteRange

RATIO_DTYPE = np.float32


def empty_fine_table() -> np.ndarray:
    return np.empty((0, 0), dtype=RATIO_DTYPE)


def quantize_ratio(value: float) -> float:
    """Round a ratio to the stored float32 precision."""
    return float(np.float32(value))


def is_valid_ratio(value) -> bool:
    try:
        value = float(value)
    except (TypeError, ValueError):
        return False
    return math.isfinite(value) and value > 0.0


def is_valid_range(note_range: NoteRange) -> bool:
    """Non-empty and representable as int16 note indices."""
    return (not note_range.is_empty
            and note_range.first >= NOTE_INDEX_MIN
            and note_range.last <= NOTE_INDEX_MAX)


def step_count_range_sufficient(fine_step_count: int, note_range: NoteRange) -> bool:
    """Whether step distances across the whole range fit in int32."""
    if note_range.is_empty or fine_step_count < 0:
        return False
    return fine_step_count <= STEP_INDEX_MAX // note_range.size


def _finish(ratios: np.ndarray) -> Optional[np.ndarray]:
    # Overflow to inf or underflow to 0 in float32 breaks the positivity invariant
    table = ratios.astype(RATIO_DTYPE)
    if not np.all(np.isfinite(table)) or not np.all(table > 0):
        return None
    return table


def scale_ratios(ratios: np.ndarray, factor: float) -> Optional[np.ndarray]:
    """Every entry multiplied by factor."""
    if not is_valid_ratio(factor):
        return None
    return _finish(ratios.astype(np.float64) * float(factor))


def general_ratios(ratios: Sequence[float]) -> Optional[np.ndarray]:
    """Verbatim table for a general tuning."""
    values = np.asarray(ratios, dtype=np.float64)
    if values.ndim != 1 or values.size == 0:
        return None
    if not np.all(np.isfinite(values)) or np.any(values <= 0):
        return None
    return _finish(values)


def geometric_ratios(group_size: int, group_ratio: float,
                     note_range: NoteRange) -> Optional[np.ndarray]:
    """ratio(n) = group_ratio ** (n / group_size) over note_range."""
    if group_size < 1 or not is_valid_ratio(group_ratio) or not is_valid_range(note_range):
        return None

    notes = np.arange(note_range.first, note_range.last + 1, dtype=np.float64)
    ratios = np.power(quantize_ratio(group_ratio), notes / group_size)
    return _finish(ratios)


def equal_division_seed(group_size: int, group_ratio: float) -> Optional[np.ndarray]:
    """Seed splitting group_ratio into group_size equal steps."""
    if group_size < 1 or not is_valid_ratio(group_ratio):
        return None
    degrees = np.arange(group_size, dtype=np.float64)
    return np.power(quantize_ratio(group_ratio), degrees / group_size)


def group_geometric_ratios(seed: Sequence[float], group_ratio: float,
                           note_range: NoteRange, start: int) -> Optional[np.ndarray]:
    """
    Repeat seed (placed at note `start`) across note_range.

    Notes above the seed are multiplied by group_ratio once per period,
    notes below are divided. The seed must lie fully inside the range.
    """
    values = np.asarray(seed, dtype=np.float64)
    if values.ndim != 1 or values.size == 0:
        return None
    if not is_valid_ratio(group_ratio) or not is_valid_range(note_range):
        return None
    if not note_range.covers(start) or note_range.last - start < values.size - 1:
        return None
    if not np.all(np.isfinite(values)) or np.any(values <= 0):
        return None

    values = values.astype(RATIO_DTYPE).astype(np.float64)
    offsets = np.arange(note_range.first, note_range.last + 1, dtype=np.int64) - start
    periods, degrees = np.divmod(offsets, values.size)
    ratios = values[degrees] * np.power(quantize_ratio(group_ratio), periods.astype(np.float64))
    return _finish(ratios)


def interpolation_steps(step_ratio: float, fine_step_count: int) -> np.ndarray:
    """Logarithmic subdivision: step_ratio ** (k / (fine_step_count + 1)), k = 1..count."""
    k = np.arange(1, fine_step_count + 1, dtype=np.float64)
    return np.power(step_ratio, k / (fine_step_count + 1))


def geometric_fine_table(group_size: int, group_ratio: float,
                         fine_step_count: int) -> np.ndarray:
    """Single fine-step row; every note interval of a geometric tuning is the same."""
    if fine_step_count <= 0 or group_size < 1 or not is_valid_ratio(group_ratio):
        return empty_fine_table()
    step_ratio = quantize_ratio(group_ratio) ** (1.0 / group_size)
    row = interpolation_steps(step_ratio, fine_step_count)
    return row.reshape(1, fine_step_count).astype(RATIO_DTYPE)


def group_geometric_fine_table(ratios: np.ndarray, note_min: int, group_size: int,
                               fine_step_count: int) -> np.ndarray:
    """
    One fine-step row per group degree (note mod group_size).

    Returns an empty table when the rows would exceed FINE_TABLE_SIZE_MAX or
    the range is too short to see every degree's interval; callers then
    interpolate on the fly.
    """
    if fine_step_count <= 0 or group_size < 1:
        return empty_fine_table()
    if group_size > FINE_TABLE_SIZE_MAX // fine_step_count:
        return empty_fine_table()
    if ratios.size < 2:
        return empty_fine_table()

    values = ratios.astype(np.float64)
    note_steps = values[1:] / values[:-1]
    degrees = np.mod(np.arange(note_min, note_min + values.size - 1), group_size)
    seen, first_index = np.unique(degrees, return_index=True)
    if seen.size < group_size:
        return empty_fine_table()

    k = np.arange(1, fine_step_count + 1, dtype=np.float64) / (fine_step_count + 1)
    rows = np.power(note_steps[first_index][:, None], k[None, :])
    return rows.astype(RATIO_DTYPE)
