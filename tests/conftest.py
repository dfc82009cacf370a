"""Root conftest.py for the CreatorTent test suite.

This file contains project-wide fixtures and pytest configuration.
"""

from collections.abc import Generator

import pytest

from src.core.config import get_settings
from src.core.context import RequestContext
from src.core.error_context import _configured_fields


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests that test individual components in isolation"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests that drive the ASGI app"
    )


@pytest.fixture(autouse=True)
def clear_settings_cache() -> Generator[None]:
    """Clear cached settings so environment changes made by a test apply.

    The sensitive field list derived from settings is cached separately and is
    cleared with it.
    """
    get_settings.cache_clear()
    _configured_fields.cache_clear()

    yield

    get_settings.cache_clear()
    _configured_fields.cache_clear()


@pytest.fixture(autouse=True)
def clean_request_context() -> Generator[None]:
    """Keep correlation and user IDs from leaking between tests."""
    RequestContext.clear()
    yield
    RequestContext.clear()
