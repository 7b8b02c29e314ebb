"""Pytest configuration - ensure consistent CWD and provide fixtures."""
from __future__ import annotations

import os
from pathlib import Path
import pytest

from tunelib.tuning import (
    create_general,
    create_geometric,
    create_group_geometric_from_ratios,
)

ROOT = Path(__file__).resolve().parents[1]

def pytest_sessionstart(session):
    os.chdir(ROOT)


# Fixtures used by multiple test files

@pytest.fixture
def project_root():
    """Return path to project root."""
    return ROOT


@pytest.fixture
def twelve_tet():
    """12-tone equal temperament over the default range."""
    return create_geometric("12tet", 12, 2.0, 0)


@pytest.fixture
def custom_scale():
    """Three-degree group-geometric scale repeating at the octave."""
    return create_group_geometric_from_ratios("custom", [1.0, 1.2, 1.5], 2.0, 0)


@pytest.fixture
def general_tuning():
    """General tuning with every ratio 1.0."""
    return create_general("general")


@pytest.fixture
def tunings_dir(tmp_path):
    """Empty directory for .tun files."""
    path = tmp_path / "tunings"
    path.mkdir()
    return path
