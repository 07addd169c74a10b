# accounting/services/unit_of_work.py

"""
======================================================
PATH: accounting/services/unit_of_work.py
======================================================
ATOMIC UNIT

Wraps a multi-step accounting write (entry + lines, closing protocol,
reopen cascade) in one database transaction.

Rules:
- Domain rejections (AccountingServiceError) propagate unchanged
- Database / model-validation failures roll the whole unit back and
  surface as ONE ConsistencyError
- Nothing is retried
"""

from __future__ import annotations

import logging
from contextlib import contextmanager

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from accounting.services.exceptions import AccountingServiceError, ConsistencyError

logger = logging.getLogger(__name__)


@contextmanager
def atomic_unit(operation: str, **context):
    try:
        with transaction.atomic():
            yield
    except AccountingServiceError:
        raise
    except (DatabaseError, ValidationError) as exc:
        logger.exception(
            "Accounting unit rolled back",
            extra={"operation": operation, **context},
        )
        raise ConsistencyError(
            f"{operation} failed and was rolled back: {exc}",
            operation=operation,
            **context,
        ) from exc
