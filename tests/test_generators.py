"""
Tests for ratio table generators and the tuning factories.
"""

import numpy as np
import pytest

from tunelib.config import NOTE_MIN_DEFAULT, RATIO_TABLE_SIZE_DEFAULT
from tunelib.tuning import (
    NoteRange,
    TuningBuilder,
    TuningType,
    create_general,
    create_geometric,
    create_group_geometric,
    create_group_geometric_from_ratios,
)
from tunelib.tuning.generators import (
    equal_division_seed,
    geometric_ratios,
    group_geometric_fine_table,
    group_geometric_ratios,
    step_count_range_sufficient,
)


DEFAULT_RANGE = NoteRange(NOTE_MIN_DEFAULT, NOTE_MIN_DEFAULT + RATIO_TABLE_SIZE_DEFAULT - 1)


class TestGeometricRatios:
    """Tests for the pure geometric table builder."""

    def test_one_ratio_per_note(self):
        """Table covers the whole range."""
        table = geometric_ratios(12, 2.0, DEFAULT_RANGE)
        assert table.size == 128
        assert table.dtype == np.float32

    def test_note_zero_is_unity(self):
        """ratio(0) == 1 for a geometric table."""
        table = geometric_ratios(12, 2.0, NoteRange(0, 24))
        assert table[0] == 1.0
        assert table[12] == pytest.approx(2.0)
        assert table[24] == pytest.approx(4.0)

    def test_invalid_group_size(self):
        """Group size below 1 is rejected."""
        assert geometric_ratios(0, 2.0, DEFAULT_RANGE) is None
        assert geometric_ratios(-5, 2.0, DEFAULT_RANGE) is None

    def test_invalid_group_ratio(self):
        """Non-positive group ratio is rejected."""
        assert geometric_ratios(12, 0.0, DEFAULT_RANGE) is None
        assert geometric_ratios(12, -2.0, DEFAULT_RANGE) is None
        assert geometric_ratios(12, float('nan'), DEFAULT_RANGE) is None

    def test_empty_range(self):
        """first > last is rejected."""
        assert geometric_ratios(12, 2.0, NoteRange(5, 4)) is None

    def test_float32_overflow_rejected(self):
        """Ratios that overflow float32 would break positivity."""
        assert geometric_ratios(1, 2.0, NoteRange(0, 300)) is None


class TestGroupGeometricRatios:
    """Tests for the periodic table builder."""

    def test_seed_placed_at_start(self):
        """Seed appears verbatim at the start note."""
        table = group_geometric_ratios([1.0, 1.25, 1.5], 2.0, NoteRange(-6, 8), 0)
        assert table[6] == pytest.approx(1.0)
        assert table[7] == pytest.approx(1.25)
        assert table[8] == pytest.approx(1.5)

    def test_extends_both_directions(self):
        """Notes above multiply, notes below divide by the group ratio."""
        table = group_geometric_ratios([1.0, 1.25, 1.5], 2.0, NoteRange(-6, 8), 0)
        assert table[9] == pytest.approx(2.0)      # note 3
        assert table[14] == pytest.approx(6.0)     # note 8
        assert table[5] == pytest.approx(0.75)     # note -1
        assert table[0] == pytest.approx(0.25)     # note -6

    def test_seed_must_fit_in_range(self):
        """Seed running past the last note is rejected."""
        assert group_geometric_ratios([1.0, 1.2, 1.5], 2.0, NoteRange(-4, 1), 0) is None
        assert group_geometric_ratios([1.0], 2.0, NoteRange(0, 10), 11) is None

    def test_rejects_bad_seed(self):
        """Empty or non-positive seeds are rejected."""
        assert group_geometric_ratios([], 2.0, DEFAULT_RANGE, 0) is None
        assert group_geometric_ratios([1.0, 0.0], 2.0, DEFAULT_RANGE, 0) is None
        assert group_geometric_ratios([1.0, -1.5], 2.0, DEFAULT_RANGE, 0) is None

    def test_equal_division_seed(self):
        """Equal division splits the group ratio into equal steps."""
        seed = equal_division_seed(4, 2.0)
        assert seed.tolist() == pytest.approx([1.0, 2 ** 0.25, 2 ** 0.5, 2 ** 0.75])
        assert equal_division_seed(0, 2.0) is None


class TestFineTables:
    """Tests for fine step table construction and step budgets."""

    def test_group_fine_table_shape(self):
        """One row per degree, one column per fine step."""
        ratios = group_geometric_ratios([1.0, 1.2, 1.5], 2.0, DEFAULT_RANGE, 0)
        fine = group_geometric_fine_table(ratios, DEFAULT_RANGE.first, 3, 4)
        assert fine.shape == (3, 4)

    def test_group_fine_table_budget(self):
        """Too many degrees x fine steps falls back to no table."""
        ratios = geometric_ratios(12, 2.0, DEFAULT_RANGE)
        fine = group_geometric_fine_table(ratios, DEFAULT_RANGE.first, 12, 100)
        assert fine.size == 0

    def test_step_budget(self):
        """Step distances must fit in int32 across the whole range."""
        assert step_count_range_sufficient(1000, DEFAULT_RANGE)
        assert not step_count_range_sufficient(1000, NoteRange(0, 2 ** 22))
        assert not step_count_range_sufficient(0, NoteRange(1, 0))


class TestFactories:
    """Tests for create_* factories."""

    def test_create_general_defaults(self):
        """General tuning spans the default range with unit ratios."""
        tuning = create_general("plain")
        assert tuning.tuning_type is TuningType.GENERAL
        assert tuning.get_note_range() == NoteRange(-64, 63)
        assert tuning.group_size == 0
        assert np.all(tuning.ratios == 1.0)

    def test_twelve_tet_scenario(self):
        """12-TET: one octave up doubles, two octaves quadruple."""
        tuning = create_geometric("12tet", 12, 2.0, 0)
        assert tuning.tuning_type is TuningType.GEOMETRIC
        assert tuning.get_ratio(12) == pytest.approx(2.0)
        assert tuning.get_ratio(24) == pytest.approx(4.0)
        assert tuning.get_ratio(0) == pytest.approx(1.0)

    def test_custom_ratios_scenario(self):
        """Custom seed repeats with the group ratio."""
        tuning = create_group_geometric_from_ratios("custom", [1.0, 1.2, 1.5], 2.0, 0)
        assert tuning.tuning_type is TuningType.GROUP_GEOMETRIC
        assert tuning.group_size == 3
        assert tuning.get_ratio(3) == pytest.approx(2.0)
        assert tuning.get_ratio(4) == pytest.approx(2.4)

    def test_custom_range_symmetric(self):
        """Default window for seeded tunings is symmetric around zero."""
        tuning = create_group_geometric_from_ratios("custom", [1.0, 1.2, 1.5], 2.0)
        assert tuning.get_note_range() == NoteRange(-64, 63)

    def test_long_seed_widens_range(self):
        """Range grows to cover a seed longer than the default window."""
        seed = [1.0 + i / 100 for i in range(100)]
        tuning = create_group_geometric_from_ratios("long", seed, 2.0)
        assert tuning.get_note_range() == NoteRange(-100, 99)
        assert tuning.get_ratio(99) == pytest.approx(1.99)

    def test_group_geometric_equal_division(self):
        """Seedless group-geometric tuning divides the period equally."""
        tuning = create_group_geometric("19edo", 19, 2.0, 0)
        assert tuning.tuning_type is TuningType.GROUP_GEOMETRIC
        assert tuning.get_ratio(19) == pytest.approx(2.0)
        assert tuning.get_ratio(1) == pytest.approx(2 ** (1 / 19), rel=1e-6)

    def test_geometric_custom_range(self):
        """Caller-supplied range is honoured."""
        tuning = create_geometric("narrow", 12, 2.0, 0, note_range=NoteRange(0, 12))
        assert tuning.get_note_range() == NoteRange(0, 12)
        assert not tuning.is_valid_note(-1)

    def test_fine_step_count_applied(self):
        """Factories apply the requested fine step count."""
        tuning = create_geometric("fine", 12, 2.0, 10)
        assert tuning.fine_step_count == 10

    @pytest.mark.parametrize("args", [
        (0, 2.0, 0),
        (-3, 2.0, 0),
        (12, 0.0, 0),
        (12, -2.0, 0),
        (12, 2.0, 1001),
        (12, 2.0, -1),
    ])
    def test_create_geometric_rejects(self, args):
        """Invalid parameters yield no instance."""
        assert create_geometric("bad", *args) is None

    def test_create_geometric_rejects_empty_range(self):
        """Empty range yields no instance."""
        assert create_geometric("bad", 12, 2.0, 0, note_range=NoteRange(10, 5)) is None

    @pytest.mark.parametrize("ratios,group_ratio", [
        ([], 2.0),
        ([1.0, -1.2], 2.0),
        ([1.0, 0.0], 2.0),
        ([1.0, 1.5], 0.0),
        ([1.0, float('inf')], 2.0),
    ])
    def test_create_from_ratios_rejects(self, ratios, group_ratio):
        """Malformed seeds yield no instance."""
        assert create_group_geometric_from_ratios("bad", ratios, group_ratio) is None

    def test_create_group_geometric_rejects(self):
        """Non-positive group size yields no instance."""
        assert create_group_geometric("bad", 0, 2.0) is None


class TestTuningBuilder:
    """Tests for builder validation."""

    def test_valid_builder_has_no_errors(self):
        """Defaults describe a valid general tuning."""
        assert TuningBuilder(name="ok").validate() == []

    def test_general_ratio_count_must_match(self):
        """General tables need one ratio per note."""
        builder = TuningBuilder(ratios=[1.0, 2.0], table_size=3)
        errors = builder.validate()
        assert any("needs 3 ratios" in e for e in errors)
        assert builder.build() is None

    def test_note_range_outside_int16(self):
        """Range must be representable on disk."""
        builder = TuningBuilder(note_min=32700, table_size=128)
        assert builder.validate()
        assert builder.build() is None

    def test_note_name_keys_checked(self):
        """Note name keys must be int16 note indices."""
        builder = TuningBuilder(note_names={40000: "far"})
        assert builder.validate()

    def test_stored_table_must_match_geometric(self):
        """A stored periodic table that isn't geometric is rejected."""
        stored = np.ones(128)
        builder = TuningBuilder(
            tuning_type=TuningType.GEOMETRIC,
            group_size=12,
            group_ratio=2.0,
            stored_ratios=stored,
        )
        assert builder.build() is None
