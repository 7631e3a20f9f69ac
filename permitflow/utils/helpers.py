"""Shared service helpers.

get_or_raise:  primary-key lookup that raises NotFoundError
coerce_id:  validate an id taken from a request payload
commit_or_raise:  commit the session, converting driver failures to StorageError
"""
import logging

from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from permitflow.core.exceptions import ConflictError, NotFoundError, StorageError, ValidationError
from permitflow.models import db

logger = logging.getLogger(__name__)


def get_or_raise(model, pk, label=None):
    """Fetch a model instance by primary key or raise NotFoundError."""
    label = label or model.__name__
    obj = db.session.get(model, pk) if pk is not None else None
    if obj is None:
        raise NotFoundError(label, pk)
    return obj


def coerce_id(value, field):
    """Return ``value`` as an integer key, accepting digit strings.

    Raises ValidationError for anything else (objects, lists, floats, booleans).
    """
    if isinstance(value, str) and value.strip().isdecimal():
        return int(value)
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{field} must be an integer", details={field: "must be an integer"})
    return value


def commit_or_raise():
    """Commit the current SQLAlchemy session.

    IntegrityError → ConflictError (duplicate / constraint violation)
    Any other SQLAlchemyError → StorageError

    The session is rolled back before raising, so the caller's in-memory
    objects are expired and nothing half-written survives.
    """
    try:
        db.session.commit()
    except IntegrityError as exc:
        db.session.rollback()
        logger.warning("Integrity error on commit: %s", exc.orig)
        raise ConflictError("Duplicate or constraint violation") from exc
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.exception("Database error on commit")
        raise StorageError() from exc
