"""
.tun binary codec.

Reads the current format (v5) and the obsolete v3 format into one model,
writes only the current format. Both parsers fill a TuningBuilder which
then performs the same validation as the factories, so a stream either
yields a fully valid Tuning or nothing.

Current format (little-endian):
  - 4-byte "TUNE" magic, uint8 version (5)
  - uint8 type byte: low 2 bits are the type tag, upper bits zero
  - int16 first note, int16 last note, int16 group size
  - float32 group ratio, uint16 fine step count
  - uint16 ratio count (== last - first + 1), float32 ratios
  - uint16-prefixed UTF-8 name
  - uint16 note name count, then (int16 note, uint16-prefixed UTF-8 text)

Legacy format (v3): "CTRTI_B." header block with uint32 sizes and the old
bit-hierarchy type tags (0 general, 1 ratio-general, 3 group-geometric,
7 geometric), an "CTRTI_E." end marker, then the ratio/fine tables and
group parameters closed by "RTI_END.".

Neither serialize nor deserialize raise; they report a SerializationResult.
"""

import struct
from typing import BinaryIO, Dict, Optional, Tuple

import numpy as np

from tunelib.config import (
    LEGACY_BEGIN_MAGIC,
    LEGACY_END_MAGIC,
    LEGACY_TABLE_END_MAGIC,
    LEGACY_TEXT_ENCODING,
    LEGACY_TYPE_TAG_GENERAL,
    LEGACY_TYPE_TAG_GEOMETRIC,
    LEGACY_TYPE_TAG_GROUP_GEOMETRIC,
    LEGACY_TYPE_TAG_RATIO_GENERAL,
    LEGACY_VERSION,
    TUN_MAGIC,
    TUN_VERSION,
    TYPE_TAG_MASK,
)
from tunelib.utils.logger import logger
from .factory import TuningBuilder
from .generators import RATIO_DTYPE
from .tuning import Tuning
from .types import NoteRange, SerializationResult, TuningType

LEGACY_TYPE_TAGS = {
    LEGACY_TYPE_TAG_GENERAL: TuningType.GENERAL,
    LEGACY_TYPE_TAG_RATIO_GENERAL: TuningType.GENERAL,
    LEGACY_TYPE_TAG_GROUP_GEOMETRIC: TuningType.GROUP_GEOMETRIC,
    LEGACY_TYPE_TAG_GEOMETRIC: TuningType.GEOMETRIC,
}

_HEADER = struct.Struct('<BBhhhfHH')  # version, type, first, last, group size, group ratio, fine steps, count
_LEGACY_FIELDS = struct.Struct('<hhf')  # note_min, group_size, group_ratio

UINT16_MAX = 0xFFFF


class CodecError(Exception):
    """Malformed, truncated or unrepresentable tuning data."""


class _StreamReader:
    """Exact-size reads from a binary stream; short reads raise CodecError."""

    def __init__(self, stream: BinaryIO):
        self._stream = stream

    def read_bytes(self, count: int) -> bytes:
        data = self._stream.read(count)
        if data is None or len(data) != count:
            got = 0 if data is None else len(data)
            raise CodecError(f"truncated stream: wanted {count} bytes, got {got}")
        return bytes(data)

    def unpack(self, st: struct.Struct) -> tuple:
        return st.unpack(self.read_bytes(st.size))

    def read_int(self, fmt: str) -> int:
        return self.unpack(struct.Struct('<' + fmt))[0]

    def read_text(self, length_fmt: str, encoding: str) -> str:
        length = self.read_int(length_fmt)
        raw = self.read_bytes(length)
        try:
            return raw.decode(encoding)
        except UnicodeDecodeError as e:
            raise CodecError(f"undecodable text: {e}")

    def read_ratios(self, count: int) -> np.ndarray:
        return np.frombuffer(self.read_bytes(4 * count), dtype='<f4').astype(RATIO_DTYPE)

    def expect(self, magic: bytes, what: str) -> None:
        if self.read_bytes(len(magic)) != magic:
            raise CodecError(f"missing {what} marker")


# =============================================================================
# READING
# =============================================================================

def _parse_current(reader: _StreamReader) -> TuningBuilder:
    """Parse a v5 body (magic already consumed)."""
    (version, type_byte, first, last, group_size, group_ratio,
     fine_steps, ratio_count) = reader.unpack(_HEADER)

    if version != TUN_VERSION:
        raise CodecError(f"unsupported version {version}")
    if type_byte & ~TYPE_TAG_MASK:
        raise CodecError(f"reserved type bits set: {type_byte:#04x}")
    try:
        tuning_type = TuningType(type_byte & TYPE_TAG_MASK)
    except ValueError:
        raise CodecError(f"unknown type tag {type_byte:#04b}")

    note_range = NoteRange(first, last)
    if note_range.is_empty:
        raise CodecError(f"empty note range [{first}, {last}]")
    if ratio_count != note_range.size:
        raise CodecError(f"ratio count {ratio_count} does not match range [{first}, {last}]")

    ratios = reader.read_ratios(ratio_count)
    name = reader.read_text('H', 'utf-8')

    note_names: Dict[int, str] = {}
    for _ in range(reader.read_int('H')):
        note = reader.read_int('h')
        if note in note_names:
            raise CodecError(f"duplicate note name for note {note}")
        note_names[note] = reader.read_text('H', 'utf-8')

    return _builder_from_fields(name, tuning_type, first, ratios, group_size,
                                group_ratio, fine_steps, note_names)


def _legacy_count(reader: _StreamReader, what: str) -> int:
    count = reader.read_int('I')
    if count > UINT16_MAX + 1:
        raise CodecError(f"implausible legacy {what} count {count}")
    return count


def _parse_legacy(reader: _StreamReader) -> TuningBuilder:
    """Parse a v3 body (begin magic already consumed)."""
    version = reader.read_int('h')
    if version != LEGACY_VERSION:
        raise CodecError(f"unsupported legacy version {version}")

    name = reader.read_text('I', LEGACY_TEXT_ENCODING)
    reader.read_int('h')  # edit mask, no longer used
    tag = reader.read_int('h')
    if tag not in LEGACY_TYPE_TAGS:
        raise CodecError(f"unknown legacy type tag {tag}")

    note_names: Dict[int, str] = {}
    for _ in range(reader.read_int('I')):
        note = reader.read_int('h')
        note_names[note] = reader.read_text('I', LEGACY_TEXT_ENCODING)
    reader.expect(LEGACY_END_MAGIC, "legacy header end")

    fine_steps = reader.read_int('h')  # range checked by TuningBuilder
    ratios = reader.read_ratios(_legacy_count(reader, "ratio"))
    reader.read_ratios(_legacy_count(reader, "fine ratio"))  # stored fine ratios are derived data
    note_min, group_size, group_ratio = reader.unpack(_LEGACY_FIELDS)
    reader.expect(LEGACY_TABLE_END_MAGIC, "ratio table end")

    if ratios.size == 0:
        raise CodecError("empty legacy ratio table")

    return _builder_from_fields(name, LEGACY_TYPE_TAGS[tag], note_min, ratios,
                                group_size, group_ratio, fine_steps, note_names)


def _builder_from_fields(name: str, tuning_type: TuningType, note_min: int,
                         ratios: np.ndarray, group_size: int, group_ratio: float,
                         fine_steps: int, note_names: Dict[int, str]) -> TuningBuilder:
    """Shared post-parse step: map persisted fields onto builder fields."""
    builder = TuningBuilder(
        name=name,
        tuning_type=tuning_type,
        note_min=note_min,
        table_size=int(ratios.size),
        group_size=group_size,
        group_ratio=float(group_ratio),
        fine_step_count=fine_steps,
        note_names=note_names,
    )

    if tuning_type is TuningType.GENERAL:
        builder.ratios = ratios.tolist()
        return builder

    # Periodic tables are regenerated and checked against what was stored
    builder.stored_ratios = ratios.tolist()
    if tuning_type is TuningType.GROUP_GEOMETRIC:
        if group_size < 1 or group_size > ratios.size:
            raise CodecError(f"group size {group_size} does not fit {ratios.size} ratios")
        # Prefer the period starting at note 0, where factories place the seed
        note_range = builder.note_range
        start = 0 if note_range.covers(0) and note_range.last >= group_size - 1 else note_min
        offset = start - note_min
        builder.ratios = ratios[offset:offset + group_size].tolist()
        builder.ratio_start = start
    return builder


def _build(builder: TuningBuilder, source: str) -> Tuple[SerializationResult, Optional[Tuning]]:
    tuning = builder.build()
    if tuning is None:
        logger.rejected("CODEC", f"{source} tuning stream", "invariant violation")
        return SerializationResult.FAILURE, None
    logger.codec(f"Read {source} tuning '{tuning.name}'")
    return SerializationResult.SUCCESS, tuning


def deserialize(stream: BinaryIO) -> Tuple[SerializationResult, Optional[Tuning]]:
    """
    Read a tuning in either format, detected from the leading magic.

    Returns:
        (SUCCESS, tuning) or (FAILURE, None)
    """
    reader = _StreamReader(stream)
    try:
        magic = reader.read_bytes(len(TUN_MAGIC))
        if magic == TUN_MAGIC:
            builder, source = _parse_current(reader), "v5"
        elif magic == LEGACY_BEGIN_MAGIC[:len(magic)]:
            rest = reader.read_bytes(len(LEGACY_BEGIN_MAGIC) - len(magic))
            if magic + rest != LEGACY_BEGIN_MAGIC:
                raise CodecError("unrecognized magic")
            builder, source = _parse_legacy(reader), "legacy"
        else:
            raise CodecError(f"unrecognized magic {magic!r}")
    except CodecError as e:
        logger.rejected("CODEC", "Tuning stream", str(e))
        return SerializationResult.FAILURE, None
    except OSError as e:
        logger.error("Failed to read tuning stream", component="CODEC", details=str(e))
        return SerializationResult.FAILURE, None

    return _build(builder, source)


def deserialize_legacy(stream: BinaryIO) -> Tuple[SerializationResult, Optional[Tuning]]:
    """Read a tuning that must be in the legacy v3 format."""
    reader = _StreamReader(stream)
    try:
        reader.expect(LEGACY_BEGIN_MAGIC, "legacy begin")
        builder = _parse_legacy(reader)
    except CodecError as e:
        logger.rejected("CODEC", "Legacy tuning stream", str(e))
        return SerializationResult.FAILURE, None
    except OSError as e:
        logger.error("Failed to read tuning stream", component="CODEC", details=str(e))
        return SerializationResult.FAILURE, None

    return _build(builder, "legacy")


# =============================================================================
# WRITING
# =============================================================================

def _pack_text(text: str) -> bytes:
    raw = text.encode('utf-8')
    if len(raw) > UINT16_MAX:
        raise CodecError(f"text too long ({len(raw)} bytes)")
    return struct.pack('<H', len(raw)) + raw


def encode(tuning: Tuning) -> bytes:
    """Current-format bytes for tuning; raises CodecError if a field does not fit."""
    first, last = tuning.get_note_range()
    ratios = tuning.ratios
    if ratios.size > UINT16_MAX:
        raise CodecError(f"ratio table too large ({ratios.size} notes)")
    note_names = tuning.note_names
    if len(note_names) > UINT16_MAX:
        raise CodecError(f"too many note names ({len(note_names)})")

    try:
        header = _HEADER.pack(
            TUN_VERSION,
            int(tuning.tuning_type),
            first,
            last,
            tuning.group_size,
            tuning.group_ratio,
            tuning.fine_step_count,
            ratios.size,
        )
    except struct.error as e:
        raise CodecError(f"header field out of range: {e}")

    parts = [TUN_MAGIC, header, ratios.astype('<f4').tobytes(), _pack_text(tuning.name),
             struct.pack('<H', len(note_names))]
    for note in sorted(note_names):
        parts.append(struct.pack('<h', note))
        parts.append(_pack_text(note_names[note]))
    return b''.join(parts)


def serialize(tuning: Tuning, stream: BinaryIO) -> SerializationResult:
    """Write tuning in the current format. Legacy-read tunings are upgraded."""
    try:
        payload = encode(tuning)
    except CodecError as e:
        logger.rejected("CODEC", f"Serializing '{tuning.name}'", str(e))
        return SerializationResult.FAILURE

    try:
        stream.write(payload)
    except OSError as e:
        logger.error(f"Failed to write tuning '{tuning.name}'", component="CODEC", details=str(e))
        return SerializationResult.FAILURE

    logger.codec(f"Wrote tuning '{tuning.name}'", details=f"{len(payload)} bytes")
    return SerializationResult.SUCCESS
