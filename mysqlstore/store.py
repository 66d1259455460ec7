"""
SQL-backed session store.

Session data is kept in a single table (see :mod:`.models`); the client only
holds a signed cookie carrying the session ID. All statements are built and
compiled once, when the store is initialized, and are shared by every caller,
including the background sweeper in :mod:`.cleanup`. Consistency between
concurrent callers is left to the database.
"""

import logging
from datetime import timedelta
from typing import Any, ContextManager, Dict, Optional

from sqlalchemy import DateTime, MetaData, Table, bindparam, select
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from werkzeug.wrappers import Request, Response

from . import cleanup, codecs, util
from .cleanup import DEFAULT_INTERVAL, CleanupHandle
from .domain import Options, Session
from .exceptions import InitializationFailed, InvalidCookie, StoreClosed, \
    SessionCreationFailed, SessionDeletionFailed, SessionExpired, \
    SessionUpdateFailed, UnknownSession
from .models import session_table
from .registry import get_registry

logger = logging.getLogger(__name__)


class SessionStore(object):
    """
    Stores sessions in a relational database.

    Instances are safe to share between threads: the engine provides a
    connection pool, and the prepared statements are never mutated.
    """

    def __init__(self, engine: Engine, table_name: str, path: str,
                 max_age: int, *keys: codecs.Key) -> None:
        """
        Create the session table if needed and prepare statements.

        Parameters
        ----------
        engine : :class:`.Engine`
        table_name : str
        path : str
            Cookie path.
        max_age : int
            Session lifetime in seconds.
        keys : str or bytes
            Signing keys. The first key signs; all are tried when verifying.

        Raises
        ------
        :class:`.InitializationFailed`
            Raised if the table cannot be created (for reasons other than
            missing privileges) or if a statement cannot be prepared.
        :class:`.ConfigurationError`
            Raised if no signing key is given or the table name is empty.

        """
        self.codecs = codecs.codecs_from_keys(*keys, max_age=max_age)
        # Stored data carries no signed expiry; expires_on governs it.
        self._data_codecs = codecs.codecs_from_keys(*keys, max_age=0)
        self.options = Options(path=path, max_age=max_age)
        self._engine: Optional[Engine] = engine
        self._table = session_table(util.normalize_table_name(table_name),
                                    MetaData())
        self._create_table()
        self._prepare()
        logger.debug('Session store ready on table %s', self._table.name)

    @classmethod
    def from_url(cls, url: str, table_name: str, path: str, max_age: int,
                 *keys: codecs.Key) -> 'SessionStore':
        """Create a store with a new engine for the database at ``url``."""
        return cls(util.get_engine(url), table_name, path, max_age, *keys)

    @property
    def table_name(self) -> str:
        return str(self._table.name)

    def _create_table(self) -> None:
        try:
            util.create_table(self._engine, self._table)
        except DBAPIError as e:
            if not util.is_permission_denied(e):
                raise InitializationFailed(f'Cannot create table: {e}') from e
            # Assume the table has been provisioned for us.
            logger.warning('Not permitted to create table %s; assuming it'
                           ' exists', self._table.name)
        except SQLAlchemyError as e:
            raise InitializationFailed(f'Cannot create table: {e}') from e

    def _prepare(self) -> None:
        table = self._table
        try:
            self._build_statements(table)
            for statement in (self._insert, self._delete, self._update,
                              self._select, self._cleanup):
                statement.compile(dialect=self._engine.dialect)
        except SQLAlchemyError as e:
            raise InitializationFailed(f'Cannot prepare statement: {e}') from e

    def _build_statements(self, table: Table) -> None:
        self._insert = table.insert().values(
            session_data=bindparam('data'),
            expires_on=bindparam('expires', type_=DateTime)
        )
        self._delete = table.delete().where(table.c.id == bindparam('id'))
        self._update = table.update() \
            .where(table.c.id == bindparam('session_id')) \
            .values(session_data=bindparam('data'))
        self._select = select(
            table.c.id,
            table.c.session_data,
            (table.c.expires_on < bindparam('now', type_=DateTime))
            .label('expired')
        ).where(table.c.id == bindparam('id'))
        self._cleanup = table.delete() \
            .where(table.c.expires_on < bindparam('now', type_=DateTime))

    def _connect(self) -> ContextManager[Connection]:
        if self._engine is None:
            raise StoreClosed('Session store is closed')
        return self._engine.begin()

    def close(self) -> None:
        """
        Release the connection pool.

        Stop any sweeper started with :meth:`cleanup` first. Every later call
        to the store raises :class:`.StoreClosed`.
        """
        if self._engine is not None:
            self._engine.dispose()
        self._engine = None
        logger.debug('Session store on table %s closed', self._table.name)

    def get(self, request: Request, name: str) -> Session:
        """Get the session called ``name`` from the request registry."""
        return get_registry(request).get(self, name)

    def new(self, request: Request, name: str) -> Session:
        """
        Create a session, loading its data if the request carries a cookie.

        A missing, invalid or expired cookie, or a cookie that refers to a
        session that is unknown or expired, gives a fresh session; no
        exception is raised for any of these.
        """
        session = Session(self, name, options=self.options)
        cookie = request.cookies.get(name)
        if cookie is None:
            return session
        try:
            session.session_id = str(
                codecs.decode_multi(name, cookie, self.codecs)
            )
            self.load(session)
        except (InvalidCookie, UnknownSession, SessionExpired) as e:
            logger.debug('Starting a new session %s: %s', name, e)
            session.session_id = ''
            session.values = {}
            return session
        session.is_new = False
        return session

    def save(self, request: Request, response: Response,
             session: Session) -> None:
        """Persist ``session`` and set the signed session ID cookie."""
        if not session.session_id:
            self.insert(session)
        else:
            self.update(session)
        cookie = codecs.encode_multi(session.name, session.session_id,
                                     self.codecs)
        _set_cookie(response, session.name, cookie, session.options)

    def delete(self, response: Response, session: Session) -> None:
        """Expire the client cookie, clear ``session`` and delete its row."""
        opts = session.options
        response.delete_cookie(session.name, path=opts.path,
                               domain=opts.domain, secure=opts.secure,
                               httponly=opts.http_only,
                               samesite=opts.same_site)
        session.values.clear()
        self.delete_by_id(session.session_id)

    def insert(self, session: Session) -> str:
        """
        Insert a new row for ``session``.

        Returns
        -------
        str
            The database-assigned session ID, also set on ``session``.

        Raises
        ------
        :class:`.SessionCreationFailed`
        :class:`.EncodingFailed`

        """
        data = codecs.encode_multi(session.name, session.values,
                                   self._data_codecs)
        # Expiry has one-second resolution on every dialect.
        expires = (util.now() + timedelta(seconds=self.options.max_age)) \
            .replace(microsecond=0)
        try:
            with self._connect() as connection:
                result = connection.execute(self._insert, {'data': data,
                                                           'expires': expires})
                row_id = result.inserted_primary_key[0]
        except SQLAlchemyError as e:
            raise SessionCreationFailed(f'Failed to create: {e}') from e
        session.session_id = str(row_id)
        logger.debug('Created session %s', session.session_id)
        return session.session_id

    def update(self, session: Session) -> None:
        """Replace the stored data of ``session``, inserting it if needed."""
        if not session.session_id:
            self.insert(session)
            return
        data = codecs.encode_multi(session.name, session.values,
                                   self._data_codecs)
        try:
            with self._connect() as connection:
                connection.execute(self._update, {
                    'data': data,
                    'session_id': _row_id(session)
                })
        except SQLAlchemyError as e:
            raise SessionUpdateFailed(f'Failed to update: {e}') from e

    def load(self, session: Session) -> Dict[str, Any]:
        """
        Load the stored values of ``session``.

        Expired rows are left in place for the sweeper to remove.

        Returns
        -------
        dict
            The session values, also set on ``session``.

        Raises
        ------
        :class:`.UnknownSession`
        :class:`.SessionExpired`
        :class:`.InvalidCookie`
            Raised if the stored data does not verify.

        """
        params = {'id': _row_id(session), 'now': util.now()}
        with self._connect() as connection:
            row = connection.execute(self._select, params).first()
        if row is None:
            raise UnknownSession(f'No such session: {session.session_id}')
        if row.expired:
            logger.debug('Session has expired: %s', session.session_id)
            raise SessionExpired(f'Session {session.session_id} has expired')
        values = codecs.decode_multi(session.name, row.session_data,
                                     self._data_codecs)
        if not isinstance(values, dict):
            raise InvalidCookie('Stored session data is malformed')
        session.values = values
        return values

    def delete_by_id(self, session_id: str) -> None:
        """Delete the row of a session by ID."""
        try:
            row_id = int(session_id)
        except (TypeError, ValueError):
            return      # Never inserted.
        try:
            with self._connect() as connection:
                connection.execute(self._delete, {'id': row_id})
        except SQLAlchemyError as e:
            raise SessionDeletionFailed(f'Failed to delete: {e}') from e
        logger.debug('Deleted session %s', session_id)

    def purge_expired(self) -> int:
        """
        Delete every session whose expiry time has passed.

        Returns
        -------
        int
            Number of rows deleted.

        """
        try:
            with self._connect() as connection:
                result = connection.execute(self._cleanup,
                                            {'now': util.now()})
                deleted = int(result.rowcount)
        except SQLAlchemyError as e:
            raise SessionDeletionFailed(f'Failed to purge: {e}') from e
        return deleted

    def cleanup(self, interval: float = DEFAULT_INTERVAL) -> CleanupHandle:
        """Start purging expired sessions in the background."""
        return cleanup.start(self, interval)

    def stop_cleanup(self, handle: CleanupHandle) -> None:
        """Stop a background purge started with :meth:`cleanup`."""
        cleanup.stop(handle)


def _row_id(session: Session) -> int:
    try:
        return int(session.session_id)
    except (TypeError, ValueError) as e:
        raise UnknownSession(f'No such session: {session.session_id}') from e


def _set_cookie(response: Response, name: str, value: str,
                options: Options) -> None:
    max_age = options.max_age if options.max_age > 0 else None
    response.set_cookie(name, value, max_age=max_age, path=options.path,
                        domain=options.domain, secure=options.secure,
                        httponly=options.http_only,
                        samesite=options.same_site)
