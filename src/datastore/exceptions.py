"""
Datastore exception classes.
"""
import sqlite3

import psycopg


class DatastoreError(Exception):
    """Base class for all datastore module errors.
    """


class NotInTransaction(DatastoreError):
    """Commit or rollback requested on an adapter that owns no transaction.
    """

    def __init__(self, message: str = 'not in transaction') -> None:
        super().__init__(message)


class UnexpectedState(DatastoreError):
    """Operation not allowed in the adapter's current state.
    """


class DuplicateKey(DatastoreError):
    """Backend uniqueness violation, normalized from the driver error.

    `field` holds the offending column or constraint name when the backend
    reports one.
    """

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.field = field


class ShapeMismatch(DatastoreError):
    """Result row cannot be decoded into the requested destination.
    """


class ValidationError(DatastoreError):
    """Changeset applied while holding validation errors.
    """

    def __init__(self, errors: list) -> None:
        super().__init__('; '.join(str(e) for e in errors))
        self.errors = list(errors)


BackendError = (
    psycopg.Error,
    sqlite3.Error,
    )
