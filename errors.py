"""
Error taxonomy shared by the catalogs.

Each error carries the HTTP status it maps to; main.py renders them as
``{"detail": message}``.
"""

import logging
from contextlib import contextmanager

from pymongo.errors import PyMongoError

logger = logging.getLogger(__name__)


class CatalogError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(CatalogError):
    """Referenced entity (by id, name or title) does not exist."""

    status_code = 404


class ConflictError(CatalogError):
    """A uniqueness constraint would be violated."""

    status_code = 409


class BadRequestError(CatalogError):
    """Malformed identifier, missing required field or out-of-range value."""

    status_code = 400


class InternalFailureError(CatalogError):
    status_code = 500


@contextmanager
def store_errors(message: str):
    """Wrap unexpected store errors into InternalFailureError."""
    try:
        yield
    except CatalogError:
        raise
    except PyMongoError as exc:
        logger.exception(message)
        raise InternalFailureError(message) from exc
