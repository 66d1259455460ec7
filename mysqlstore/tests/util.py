"""Testing helpers."""

import os
import tempfile
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import text

from .. import util
from ..store import SessionStore

KEY = 'a-signing-key-that-is-long-enough-for-hs256'
OLD_KEY = 'an-older-signing-key-still-accepted-for-now'


@contextmanager
def temporary_store(max_age: int = 3600, table_name: str = 'sessions',
                    *keys: str) -> Generator[SessionStore, None, None]:
    """Provide a session store on a throwaway SQLite database file."""
    with tempfile.TemporaryDirectory() as directory:
        url = 'sqlite:///' + os.path.join(directory, 'sessions.db')
        store = SessionStore(util.get_engine(url), table_name, '/', max_age,
                             *(keys or (KEY,)))
        try:
            yield store
        finally:
            store.close()


def count_rows(store: SessionStore, session_id: str = '') -> int:
    """Count the rows in the session table, optionally for one ID."""
    query = f'SELECT COUNT(*) FROM "{store.table_name}"'
    params = {}
    if session_id:
        query += ' WHERE id = :id'
        params['id'] = int(session_id)
    with store._connect() as connection:
        return int(connection.execute(text(query), params).scalar())
