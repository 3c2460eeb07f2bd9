"""Pytest configuration and fixtures."""
import logging

import pytest


@pytest.fixture(autouse=True)
def reset_package_logger():
    """Drop handlers the CLI installs so they never outlive a test's captured streams."""
    yield
    logger = logging.getLogger("wbs_scheduler")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
