"""Pytest configuration and shared fixtures for Starbox tests."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest


# Add project root to path so imports work
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

CONFIG_PATH = PROJECT_ROOT / "config" / "default_config.yaml"


def pytest_configure(config: pytest.Config) -> None:
    """Configure logging for tests."""
    logging.basicConfig(
        level=logging.INFO,
        format="%(name)s [%(levelname)s] %(message)s",
    )


@pytest.fixture
def config_path() -> Path:
    """Path to the default generator configuration."""
    return CONFIG_PATH


@pytest.fixture
def starbox_config():
    """Default configuration shrunk to a test-sized cube map."""
    from starfield.constants import load_config

    return load_config(CONFIG_PATH).with_overrides(
        resolution=16,
        star_count_thousands=2,
        seed=1234,
    )
