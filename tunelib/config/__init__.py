"""
Central Configuration
All tuning constants, limits and format tags in one place
"""

# === FILES ===
TUNING_FILE_EXTENSION = '.tun'

# === DEFAULTS ===
# Used by the convenience factories when no explicit range is given
NOTE_MIN_DEFAULT = -64
RATIO_TABLE_SIZE_DEFAULT = 128
DEFAULT_FALLBACK_RATIO = 1.0  # Returned for notes outside the valid range

# Fine steps between two consecutive notes
FINE_STEP_COUNT_MAX = 1000
# Largest fine-step table kept for group-geometric tunings (group_size * fine steps)
FINE_TABLE_SIZE_MAX = 1000

# === INDEX WIDTHS ===
# Note indices are persisted as int16, step distances are int32
NOTE_INDEX_MIN = -32768
NOTE_INDEX_MAX = 32767
STEP_INDEX_MAX = 2 ** 31 - 1

# Relative tolerance when checking a persisted periodic table against its regeneration
PERIODIC_TABLE_RTOL = 1e-4

# Middle period number used when rendering octave suffixes for periodic tunings
MIDDLE_PERIOD_NUMBER = 5

# Groups up to this size get letter names (A:, B:, ...), larger ones hex names
LETTER_NAMED_GROUP_MAX = 26

# === CURRENT FORMAT (v5) ===
TUN_MAGIC = b'TUNE'
TUN_VERSION = 5

# 2-bit type tags stored in the header
TYPE_TAG_GENERAL = 0b00
TYPE_TAG_GROUP_GEOMETRIC = 0b01
TYPE_TAG_GEOMETRIC = 0b11
TYPE_TAG_MASK = 0b11

# === LEGACY FORMAT (v3) ===
LEGACY_BEGIN_MAGIC = b'CTRTI_B.'
LEGACY_END_MAGIC = b'CTRTI_E.'
LEGACY_TABLE_END_MAGIC = b'RTI_END.'
LEGACY_VERSION = 3
LEGACY_TEXT_ENCODING = 'latin-1'

# Old bit-hierarchy type tags: each type extends the bits of its parent
LEGACY_TYPE_TAG_GENERAL = 0
LEGACY_TYPE_TAG_RATIO_GENERAL = 1
LEGACY_TYPE_TAG_GROUP_GEOMETRIC = 3
LEGACY_TYPE_TAG_GEOMETRIC = 7

# === PATHS ===
APP_NAME = 'tunelib'
TUNINGS_DIR_ENV = 'TUNELIB_DIR'
