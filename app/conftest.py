"""
Root pytest configuration for the Django project.

This module configures pytest-django and provides project-wide fixtures.
App-specific fixtures are defined in each app's tests/conftest.py.
"""

import os

import django
import pytest

# Ensure Django settings are configured before any tests run
os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")


def pytest_configure():
    """Configure Django settings before tests run."""
    django.setup()

    from django.conf import settings

    # Use fast password hasher for tests
    settings.PASSWORD_HASHERS = [
        "django.contrib.auth.hashers.MD5PasswordHasher",
    ]
    # No sleeping between conflict retries
    settings.FINANCE_ALLOCATION_RETRY_BACKOFF_MS = 0


def pytest_collection_modifyitems(items):
    """
    Auto-mark tests based on filename patterns.

    Mapping:
    - test_scenarios.py → e2e (end-to-end settlement workflows)
    - test_views.py, test_*_service.py, test_concurrency.py, etc. → integration
    - test_models.py, test_types.py, test_validators.py, etc. → unit
    - Unmatched files → integration (safe default for Django)

    Explicit markers on test functions/classes take precedence.
    """
    e2e_patterns = ["test_scenarios.py"]

    integration_patterns = [
        "test_views.py",
        "test_ledger_service.py",
        "test_instrument_service.py",
        "test_allocation_service.py",
        "test_auto_allocation.py",
        "test_concurrency.py",
        "test_numbering.py",
        "test_invariants.py",
        "test_admin.py",
        "test_health.py",
    ]

    unit_patterns = [
        "test_models.py",
        "test_types.py",
        "test_validators.py",
        "test_exceptions.py",
        "test_signals.py",
        "test_locks.py",
        "test_model_mixins.py",
    ]

    for item in items:
        # Skip if test already has unit/integration/e2e marker
        existing_markers = {m.name for m in item.iter_markers()}
        if existing_markers & {"unit", "integration", "e2e"}:
            continue

        filename = str(item.fspath).split("/")[-1]

        if any(pattern in filename for pattern in e2e_patterns):
            item.add_marker(pytest.mark.e2e)
        elif any(pattern in filename for pattern in integration_patterns):
            item.add_marker(pytest.mark.integration)
        elif any(pattern in filename for pattern in unit_patterns):
            item.add_marker(pytest.mark.unit)
        else:
            item.add_marker(pytest.mark.integration)


@pytest.fixture
def user(db):
    """A regular active user."""
    from django.contrib.auth import get_user_model

    return get_user_model().objects.create_user(
        username="clerk",
        email="clerk@example.com",
        password="testpass123",
    )


@pytest.fixture
def api_client():
    """Unauthenticated DRF test client."""
    from rest_framework.test import APIClient

    return APIClient()


@pytest.fixture
def authenticated_client(api_client, user):
    """DRF test client authenticated as `user`."""
    api_client.force_authenticate(user=user)
    return api_client


def _patch_postgresql_flush_for_cascade():
    """
    Patch PostgreSQL flush to always use CASCADE.

    Transactional tests (the threaded allocation race) flush the database
    with TRUNCATE, which fails on tables referenced by PROTECT foreign keys
    unless CASCADE is used.
    """
    from django.db.backends.postgresql import operations

    original_sql_flush = operations.DatabaseOperations.sql_flush

    def sql_flush_with_cascade(
        self, style, tables, *, reset_sequences=False, allow_cascade=False
    ):
        return original_sql_flush(
            self, style, tables, reset_sequences=reset_sequences, allow_cascade=True
        )

    operations.DatabaseOperations.sql_flush = sql_flush_with_cascade


_patch_postgresql_flush_for_cascade()
