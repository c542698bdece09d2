"""
Base service layer patterns for business logic encapsulation.

Services encapsulate business logic separate from views and models.
Views handle HTTP concerns, models handle data, services handle logic.
Expected business failures are raised as core.exceptions subclasses and
mapped to HTTP responses by the views.

Usage:
    from core.services import BaseService

    class EntryService(BaseService):
        @classmethod
        def post(cls, **fields) -> LedgerEntry:
            with cls.atomic():
                entry = LedgerEntry.objects.create(**fields)

            cls.get_logger().info(f"Posted entry {entry.id}")
            return entry
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator


class BaseService:
    """
    Base class for service layer classes.

    Provides common utilities for services:
    - Logging setup per service
    - Database transaction management

    Design Notes:
        - Use @staticmethod or @classmethod (no instance state)
        - Services should be stateless
        - Raise core.exceptions subclasses for business rule failures
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """
        Get logger for this service.

        Returns a logger named after the service class for
        easy filtering in logs.
        """
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        """
        Execute operations in a database transaction.

        All database operations within this context manager are
        wrapped in a transaction. If any operation fails, all
        changes are rolled back.

        Example:
            with cls.atomic():
                note = DebitNote.objects.create(...)
                LedgerEntry.objects.create(...)
                # If the entry insert fails, the note is rolled back too

        Note:
            Nested calls create savepoints, as with transaction.atomic().
        """
        with transaction.atomic():
            yield
