"""Helpers for the session store."""

from datetime import datetime
from typing import Any, Dict

from pytz import UTC
from sqlalchemy import Table, create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import DBAPIError

from .exceptions import ConfigurationError

MYSQL_TABLEACCESS_DENIED = 1142
"""MySQL error ER_TABLEACCESS_DENIED_ERROR."""

SQLSTATE_INSUFFICIENT_PRIVILEGE = '42501'


def now() -> datetime:
    """Get the current time as a naive UTC :class:`.datetime`."""
    return datetime.now(tz=UTC).replace(tzinfo=None)


def normalize_table_name(table_name: str) -> str:
    """Strip any enclosing backticks; the dialect does its own quoting."""
    name = table_name.strip('`')
    if not name:
        raise ConfigurationError('Table name may not be empty')
    return name


def get_engine(url: str, **kwargs: Any) -> Engine:
    """Create an engine for ``url``, with connections shareable by threads."""
    args: Dict[str, Any] = {}
    if 'sqlite' in url:
        args = {"check_same_thread": False}
    return create_engine(url, connect_args=args, **kwargs)


def create_table(engine: Engine, table: Table) -> None:
    """Create ``table`` unless it already exists."""
    table.create(bind=engine, checkfirst=True)


def is_permission_denied(error: DBAPIError) -> bool:
    """
    Determine whether a DDL failure was caused by missing privileges.

    Covers MySQL (error 1142) and drivers that expose the SQLSTATE as
    ``pgcode`` or ``sqlstate``.
    """
    orig = getattr(error, 'orig', None)
    if orig is None:
        return False
    args = getattr(orig, 'args', ())
    if args and args[0] == MYSQL_TABLEACCESS_DENIED:
        return True
    for attr in ('pgcode', 'sqlstate'):
        if getattr(orig, attr, None) == SQLSTATE_INSUFFICIENT_PRIVILEGE:
            return True
    return False
