"""
Tuning module - alternative note tunings and the .tun codec.
"""

from .types import (
    NoteRange,
    SerializationResult,
    TuningResult,
    TuningType,
)

from .tuning import Tuning

from .factory import (
    TuningBuilder,
    create_general,
    create_geometric,
    create_group_geometric,
    create_group_geometric_from_ratios,
)

from .codec import (
    deserialize,
    deserialize_legacy,
    serialize,
)

from .tuning_files import (
    TuningManager,
    TuningFileError,
)

__all__ = [
    "NoteRange",
    "SerializationResult",
    "TuningResult",
    "TuningType",
    "Tuning",
    "TuningBuilder",
    "create_general",
    "create_geometric",
    "create_group_geometric",
    "create_group_geometric_from_ratios",
    "deserialize",
    "deserialize_legacy",
    "serialize",
    "TuningManager",
    "TuningFileError",
]
