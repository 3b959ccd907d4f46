"""
Root pytest configuration for the Django project.

pytest-django loads config.test_settings (see pyproject.toml).
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import pytest


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_views.py, test_services.py, test_tasks.py, etc. -> integration
    - test_models.py, test_session.py, test_push.py, etc. -> unit
    - Unmatched files -> integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    integration_patterns = [
        "test_views.py",
        "test_services.py",
        "test_tasks.py",
        "test_consumers.py",
        "test_realtime.py",
        "test_store.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_session.py",
        "test_push.py",
    ]

    for item in items:
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)
