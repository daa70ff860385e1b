from __future__ import annotations

import random
from pathlib import Path

import pytest
from hypothesis import HealthCheck, settings

from account_migration.utils.settings import load_settings

# ---- Deterministic Testing Configuration ---------------------

# Global deterministic seed
DETERMINISTIC_SEED = 42


@pytest.fixture(autouse=True)
def set_deterministic_seed():
    """Set deterministic seed for all tests"""
    random.seed(DETERMINISTIC_SEED)
    yield
    # Reset after test
    random.seed()


# Hypothesis settings for all property-based tests
settings.register_profile(
    "deterministic",
    deadline=None,
    max_examples=200,
    derandomize=False,
    database=None,
    # Autouse isolation fixtures are function scoped; property tests never touch disk
    suppress_health_check=[HealthCheck.function_scoped_fixture],
)
settings.load_profile("deterministic")


# ---- Isolation of settings and checkpoints -------------------


@pytest.fixture(autouse=True)
def checkpoint_dir(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Point every checkpoint at a per-test directory and reset env overrides."""
    directory = tmp_path / "checkpoints"
    monkeypatch.setenv("MIGRATION_CHECKPOINT_DIR", str(directory))
    monkeypatch.delenv("MIGRATION_CONFIG", raising=False)
    monkeypatch.delenv("MIGRATION_MAX_FILES", raising=False)
    monkeypatch.delenv("MIGRATION_FILE_OPEN_LIMIT", raising=False)
    load_settings.cache_clear()
    yield directory
    load_settings.cache_clear()


@pytest.fixture
def export_dir(tmp_path: Path) -> Path:
    directory = tmp_path / "export"
    directory.mkdir()
    return directory
