# Overview: Transaction helpers shared by the write workflows.

from __future__ import annotations

import logging
from contextlib import contextmanager

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConflictError, PosError
from ..extensions import db


logger = logging.getLogger(__name__)


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


@contextmanager
def atomic(operation: str):
    """
    Run a unit of work that either commits in full or rolls back in full.

    Domain errors propagate unchanged after the rollback. Optimistic locking
    and uniqueness failures detected at flush/commit become ConflictError.
    No retry is attempted; the caller decides whether to resubmit.
    """
    try:
        yield db.session
        db.session.commit()
    except PosError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        logger.warning("Concurrent modification during %s: %s", operation, exc)
        raise ConflictError(
            "The record was modified by another request; reload and try again",
            {"operation": operation},
        ) from exc
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity violation during %s: %s", operation, exc.orig)
        raise ConflictError(
            "The change conflicts with existing data",
            {"operation": operation},
        ) from exc
    except OperationalError:
        db.session.rollback()
        logger.exception("Database failure during %s", operation)
        raise
    except Exception:
        db.session.rollback()
        raise
