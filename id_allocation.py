"""
Manual primary key allocation for tables whose ids are not database generated.

The next id is max(id) + 1. Each attempt runs in a savepoint so a
uniqueness conflict only discards that attempt; the id is then bumped and
the insert retried. On PostgreSQL a transaction-scoped advisory lock keyed
on the table serializes allocators, so conflicts only come from writers
that bypass this module.
"""
import logging
import zlib

from sqlalchemy import func, text
from sqlalchemy.exc import IntegrityError

from errors import ResourceExhausted
from extensions import db

logger = logging.getLogger(__name__)

MAX_INSERT_ATTEMPTS = 3
UNIQUE_VIOLATION = '23505'


def is_unique_violation(exc):
    """True when an IntegrityError was caused by a unique/primary key conflict."""
    orig = getattr(exc, 'orig', None)
    if getattr(orig, 'pgcode', None) == UNIQUE_VIOLATION:
        return True
    return 'UNIQUE constraint failed' in str(orig)


def _lock_table(model):
    if db.session.get_bind().dialect.name != 'postgresql':
        return
    key = zlib.crc32(model.__tablename__.encode('utf-8'))
    db.session.execute(text('SELECT pg_advisory_xact_lock(:key)'), {'key': key})


def _max_id(model):
    return db.session.query(func.max(model.id)).scalar() or 0


def insert_with_next_id(model, build_row, conflict_check=None, max_attempts=MAX_INSERT_ATTEMPTS):
    """Insert build_row(next_id) into model's table, retrying on id conflicts.

    conflict_check is called after a uniqueness violation and may raise to
    report a conflict on another unique key (e.g. a duplicate survey).
    The caller owns the outer transaction and must commit it.
    """
    _lock_table(model)
    next_id = _max_id(model) + 1

    for attempt in range(1, max_attempts + 1):
        row = build_row(next_id)
        try:
            with db.session.begin_nested():
                db.session.add(row)
            return row
        except IntegrityError as exc:
            if not is_unique_violation(exc):
                raise
            if conflict_check is not None:
                conflict_check()
            logger.warning(
                "%s id %s already taken (attempt %s of %s)",
                model.__tablename__, next_id, attempt, max_attempts,
            )
            next_id += 1

    raise ResourceExhausted(
        f'Could not allocate a {model.__tablename__} id after {max_attempts} attempts. Please try again.'
    )
