"""Exceptions raised by the storage layer.

Repositories translate SQLAlchemy errors into these so callers never import
SQLAlchemy to handle a failed write.
"""


class DatabaseError(Exception):
    """Base exception for storage failures."""
    pass


class DatabaseConnectionError(DatabaseError):
    """No usable engine: DATABASE_URL missing or the server unreachable."""
    pass


class DatabaseConstraintError(DatabaseError):
    """A write violated a uniqueness constraint (e.g. duplicate email)."""
    pass


class DatabaseOperationError(DatabaseError):
    """Any other failed read or write."""
    pass
