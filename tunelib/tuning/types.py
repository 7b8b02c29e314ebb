"""
Shared tuning types: tuning kinds, result codes and note ranges.
"""

from enum import Enum, IntEnum
from typing import NamedTuple

from tunelib.config import (
    TYPE_TAG_GENERAL,
    TYPE_TAG_GEOMETRIC,
    TYPE_TAG_GROUP_GEOMETRIC,
)


class TuningType(IntEnum):
    """Tuning kinds. Values are the 2-bit tags of the current file format."""
    GENERAL = TYPE_TAG_GENERAL                  # Arbitrary ratio per note
    GROUP_GEOMETRIC = TYPE_TAG_GROUP_GEOMETRIC  # Arbitrary ratios within a group, repeated by group ratio
    GEOMETRIC = TYPE_TAG_GEOMETRIC              # ratio(n) = group_ratio ** (n / group_size)

    @property
    def is_periodic(self) -> bool:
        return self is not TuningType.GENERAL


class TuningResult(Enum):
    """Outcome of a mutating tuning operation."""
    OK = "ok"
    INVALID_PARAMETER = "invalid_parameter"
    WRONG_TYPE = "wrong_type"
    OUT_OF_RANGE = "out_of_range"
    NOT_FOUND = "not_found"

    def __bool__(self) -> bool:
        return self is TuningResult.OK


class SerializationResult(Enum):
    """Outcome of a codec operation."""
    SUCCESS = "success"
    FAILURE = "failure"

    def __bool__(self) -> bool:
        return self is SerializationResult.SUCCESS


class NoteRange(NamedTuple):
    """Inclusive note window [first, last]."""
    first: int
    last: int

    @property
    def size(self) -> int:
        return self.last - self.first + 1

    @property
    def is_empty(self) -> bool:
        return self.first > self.last

    def covers(self, note: int) -> bool:
        return self.first <= note <= self.last
