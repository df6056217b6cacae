"""
Session management utilities for database operations.

This module provides the context manager used by every store operation so
that each mutation is one transaction: commit on success, rollback on error.
"""

from contextlib import contextmanager
from sqlalchemy.exc import SQLAlchemyError
from db.database import db


@contextmanager
def session_scope():
    """
    Provide a transactional scope around a series of operations.

    This context manager handles:
    - Automatic commit on success
    - Automatic rollback on exceptions
    - Session cleanup

    Usage:
        with session_scope() as session:
            session.add(KvEntry(namespace='users', key=email, value=payload))
            # Session is automatically committed here
        # Session is automatically removed here

    Raises:
        The original exception if one occurs during the transaction
    """
    session = db.session
    try:
        yield session
        session.commit()
    except SQLAlchemyError:
        session.rollback()
        raise
    except Exception:
        session.rollback()
        raise
    finally:
        # Flask-SQLAlchemy's scoped_session remove() is safer than close()
        # It removes the session from the registry without closing the connection
        db.session.remove()
