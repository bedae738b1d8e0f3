"""
Live chain test configuration.
"""

from __future__ import annotations

import pytest

from chainharness.config import get_harness_config
from chainharness.monitoring import configure_logging


@pytest.fixture(scope="session", autouse=True)
def live_logging() -> None:
    """Readable (or JSON in CI) logs for the session setup phases."""
    config = get_harness_config()
    configure_logging(config.log_level, json_output=config.log_json)
