"""
Transaction boundary shared by every mutating service call.

Usage::

    with unit_of_work(self.session):
        consultant.status = "APPROVED"

On normal exit the session is committed. On any exception it is rolled back;
domain errors (NotFoundError, ValidationError, ConflictError) propagate
unchanged, raw SQLAlchemy failures are logged and re-raised as StorageError.
Callers that want to react to a specific IntegrityError (unique constraint
races) catch it inside the block, before it reaches this wrapper.
"""

import logging
from contextlib import contextmanager

from sqlalchemy.exc import SQLAlchemyError

from grc_portal.core.exceptions import StorageError

logger = logging.getLogger(__name__)


@contextmanager
def unit_of_work(session):
    try:
        yield session
        session.commit()
    except SQLAlchemyError as exc:
        session.rollback()
        logger.exception("Storage failure, transaction rolled back")
        raise StorageError(str(exc)) from exc
    except Exception:
        session.rollback()
        raise


def read_or_raise(fn, *args, **kwargs):
    """Run a read query, surfacing driver failures as StorageError."""
    try:
        return fn(*args, **kwargs)
    except SQLAlchemyError as exc:
        logger.exception("Storage failure during read")
        raise StorageError(str(exc)) from exc
