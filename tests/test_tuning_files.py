"""
Tests for TuningManager - .tun file save/load/list/delete.
"""

import os

import numpy as np
import pytest

from tunelib.tuning import TuningFileError, TuningManager, TuningType
from tunelib.utils.app_paths import get_tunings_dir
from tests.helpers.tun_streams import build_legacy_stream


class TestSaveLoad:
    """Round trips through the filesystem."""

    def test_save_and_load(self, tunings_dir, twelve_tet):
        """Saved file loads back to the same tuning."""
        manager = TuningManager(tunings_dir)
        path = manager.save(twelve_tet)
        assert path == tunings_dir / "12tet.tun"
        loaded = manager.load(path)
        assert loaded.name == "12tet"
        assert loaded.tuning_type is TuningType.GEOMETRIC
        np.testing.assert_array_equal(loaded.ratios, twelve_tet.ratios)

    def test_explicit_name(self, tunings_dir, custom_scale):
        manager = TuningManager(tunings_dir)
        assert manager.save(custom_scale, name="just").name == "just.tun"

    def test_no_overwrite_adds_suffix(self, tunings_dir, twelve_tet):
        """Existing files are kept; new ones get a numeric suffix."""
        manager = TuningManager(tunings_dir)
        first = manager.save(twelve_tet)
        second = manager.save(twelve_tet)
        third = manager.save(twelve_tet)
        assert first.name == "12tet.tun"
        assert second.name == "12tet_1.tun"
        assert third.name == "12tet_2.tun"

    def test_overwrite(self, tunings_dir, twelve_tet, general_tuning):
        manager = TuningManager(tunings_dir)
        path = manager.save(twelve_tet, name="slot")
        assert manager.save(general_tuning, name="slot", overwrite=True) == path
        assert manager.load(path).tuning_type is TuningType.GENERAL

    def test_sanitized_filename(self, tunings_dir, twelve_tet):
        """Path separators and reserved characters are replaced."""
        manager = TuningManager(tunings_dir)
        path = manager.save(twelve_tet, name="a/b:c")
        assert path.name == "a_b_c.tun"
        assert path.parent == tunings_dir

    def test_empty_name(self, tunings_dir, twelve_tet):
        """A blank tuning name still produces a file."""
        twelve_tet.set_name("   ")
        assert TuningManager(tunings_dir).save(twelve_tet).name == "tuning.tun"

    def test_no_temp_files_left(self, tunings_dir, twelve_tet):
        """Atomic writes clean up after themselves."""
        TuningManager(tunings_dir).save(twelve_tet)
        assert [p.name for p in tunings_dir.iterdir()] == ["12tet.tun"]

    def test_load_legacy_file(self, tunings_dir):
        """Legacy files on disk load like current ones."""
        path = tunings_dir / "old.tun"
        path.write_bytes(build_legacy_stream([1.0, 1.5, 2.0], name="old"))
        loaded = TuningManager(tunings_dir).load(path)
        assert loaded.name == "old"
        assert loaded.get_ratio(-63) == pytest.approx(1.5)


class TestErrors:
    """File-level failures raise TuningFileError."""

    def test_load_missing(self, tunings_dir):
        with pytest.raises(TuningFileError, match="not found"):
            TuningManager(tunings_dir).load(tunings_dir / "nope.tun")

    def test_load_invalid(self, tunings_dir):
        path = tunings_dir / "junk.tun"
        path.write_bytes(b"not a tuning at all")
        with pytest.raises(TuningFileError, match="Invalid"):
            TuningManager(tunings_dir).load(path)

    def test_refuse_overwrite(self, tunings_dir, twelve_tet):
        manager = TuningManager(tunings_dir)
        path = manager.save(twelve_tet)
        with pytest.raises(TuningFileError, match="already exists"):
            manager.write_tuning_file(path, twelve_tet, allow_overwrite=False)

    def test_unserializable(self, tunings_dir, twelve_tet):
        """Codec failures surface as TuningFileError and write nothing."""
        twelve_tet.set_name("x" * 70000)
        manager = TuningManager(tunings_dir)
        with pytest.raises(TuningFileError):
            manager.write_tuning_file(tunings_dir / "long.tun", twelve_tet)
        assert list(tunings_dir.iterdir()) == []


class TestListDelete:
    """Tests for list_tunings / delete."""

    def test_newest_first(self, tunings_dir, twelve_tet, custom_scale):
        manager = TuningManager(tunings_dir)
        older = manager.save(twelve_tet)
        newer = manager.save(custom_scale)
        os.utime(older, (1_000_000, 1_000_000))
        os.utime(newer, (2_000_000, 2_000_000))
        assert manager.list_tunings() == [newer, older]

    def test_ignores_other_files(self, tunings_dir, twelve_tet):
        manager = TuningManager(tunings_dir)
        (tunings_dir / "notes.txt").write_text("hello")
        path = manager.save(twelve_tet)
        assert manager.list_tunings() == [path]

    def test_delete(self, tunings_dir, twelve_tet):
        manager = TuningManager(tunings_dir)
        path = manager.save(twelve_tet)
        assert manager.delete(path) is True
        assert not path.exists()
        assert manager.delete(path) is False


class TestTuningsDir:
    """Default directory resolution."""

    def test_env_override(self, tmp_path, monkeypatch):
        """TUNELIB_DIR points the manager at an explicit directory."""
        target = tmp_path / "from_env"
        monkeypatch.setenv("TUNELIB_DIR", str(target))
        assert get_tunings_dir() == target.resolve()
        assert TuningManager().tunings_dir == target.resolve()
        assert target.is_dir()

    def test_created_on_demand(self, tmp_path):
        target = tmp_path / "nested" / "dir"
        TuningManager(target)
        assert target.is_dir()
