"""
Tuning file manager - save/load .tun files.

Sits above the result-value codec and raises TuningFileError, the way
callers handling files expect.
"""

import io
import os
import tempfile
from pathlib import Path
from typing import List, Optional

from tunelib.config import TUNING_FILE_EXTENSION
from tunelib.utils.app_paths import get_tunings_dir
from tunelib.utils.logger import logger
from .codec import deserialize, serialize
from .tuning import Tuning


class TuningFileError(Exception):
    """Raised when tuning file operations fail."""


class TuningManager:
    """
    Manages a directory of .tun files.

    Usage:
        manager = TuningManager()

        filepath = manager.save(tuning)
        tuning = manager.load(filepath)
    """

    def __init__(self, tunings_dir: Optional[Path] = None):
        self.tunings_dir = Path(tunings_dir) if tunings_dir else get_tunings_dir()
        self.tunings_dir.mkdir(parents=True, exist_ok=True)

    def write_tuning_file(
        self,
        dest_path: Path,
        tuning: Tuning,
        *,
        allow_overwrite: bool = True
    ) -> None:
        """
        Write tuning to file atomically.

        1. Serialize into memory in the current .tun format
        2. Write temp file in dirname(dest_path)
        3. Commit using os.replace(temp, dest_path)

        Raises:
            TuningFileError: If serialization or the write fails, or the file
                exists when allow_overwrite=False
        """
        dest_path = Path(dest_path)

        if not allow_overwrite and dest_path.exists():
            raise TuningFileError(f"File already exists: {dest_path}")

        buffer = io.BytesIO()
        if not serialize(tuning, buffer):
            raise TuningFileError(f"Cannot serialize tuning '{tuning.name}'")

        dest_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            fd, temp_path = tempfile.mkstemp(
                suffix='.tmp',
                prefix='.tuning_',
                dir=dest_path.parent
            )
            try:
                with os.fdopen(fd, 'wb') as f:
                    f.write(buffer.getvalue())
                os.replace(temp_path, dest_path)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise TuningFileError(f"Failed to write tuning: {e}")

        logger.files(f"Saved tuning '{tuning.name}'", details=str(dest_path))

    def save(self, tuning: Tuning, name: Optional[str] = None, overwrite: bool = False) -> Path:
        """
        Save tuning to the tunings directory.

        Args:
            tuning: Tuning to save
            name: Optional filename (without extension). Defaults to the tuning name.
            overwrite: If True, overwrite existing file. If False, add numeric suffix.

        Returns:
            Path to saved file
        """
        base = self._sanitize_filename(name or tuning.name) or "tuning"
        filepath = self.tunings_dir / (base + TUNING_FILE_EXTENSION)

        if filepath.exists() and not overwrite:
            counter = 1
            while filepath.exists():
                filepath = self.tunings_dir / f"{base}_{counter}{TUNING_FILE_EXTENSION}"
                counter += 1

        self.write_tuning_file(filepath, tuning, allow_overwrite=overwrite or not filepath.exists())
        return filepath

    def load(self, filepath: Path) -> Tuning:
        """
        Load tuning from a .tun file (current or legacy format).

        Raises:
            TuningFileError: If the file doesn't exist, can't be read or is invalid
        """
        filepath = Path(filepath)
        if not filepath.exists():
            raise TuningFileError(f"Tuning file not found: {filepath}")

        try:
            with open(filepath, 'rb') as f:
                result, tuning = deserialize(f)
        except OSError as e:
            raise TuningFileError(f"Failed to read tuning file: {e}")

        if not result or tuning is None:
            raise TuningFileError(f"Invalid tuning file: {filepath}")

        logger.files(f"Loaded tuning '{tuning.name}'", details=str(filepath))
        return tuning

    def list_tunings(self) -> List[Path]:
        """
        List all tuning files in the tunings directory.

        Returns:
            List of .tun paths, newest first
        """
        tunings = list(self.tunings_dir.glob(f"*{TUNING_FILE_EXTENSION}"))
        tunings.sort(key=lambda p: p.stat().st_mtime, reverse=True)
        return tunings

    def delete(self, filepath: Path) -> bool:
        """Delete a tuning file. Returns False if it didn't exist."""
        filepath = Path(filepath)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def _sanitize_filename(self, name: str) -> str:
        """Remove invalid filename characters."""
        invalid = '<>:"/\\|?*'
        result = name
        for char in invalid:
            result = result.replace(char, "_")
        return result.strip()
