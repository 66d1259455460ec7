"""
Flask integration.

.. code-block:: python

   from flask import Flask, make_response
   from mysqlstore import extension

   app = Flask('someapp')
   app.config['MYSQLSTORE_DATABASE_URI'] = 'mysql://...'
   extension.init_app(app)

   @app.route('/')
   def index():
       session = extension.get()
       session.values['visits'] = session.values.get('visits', 0) + 1
       response = make_response('hello')
       extension.save(response, session)
       return response

Call :func:`shutdown` when the application exits to stop the background
sweeper and release the connection pool.
"""

import logging
from functools import wraps
from typing import Optional

from flask import Flask, current_app, request
from werkzeug.wrappers import Response

from . import config as defaults
from .app_logging import setup_logger
from .cleanup import CleanupHandle
from .domain import Session
from .exceptions import ConfigurationError
from .store import SessionStore

logger = logging.getLogger(__name__)

EXTENSION = 'mysqlstore'


class _State(object):
    def __init__(self, store: SessionStore,
                 handle: Optional[CleanupHandle]) -> None:
        self.store = store
        self.handle = handle


def init_app(app: Flask) -> SessionStore:
    """
    Set configuration defaults and attach a session store to ``app``.

    Starts the background sweeper unless ``MYSQLSTORE_CLEANUP_INTERVAL`` is
    ``0``.
    """
    config = app.config
    config.setdefault('MYSQLSTORE_DATABASE_URI',
                      defaults.MYSQLSTORE_DATABASE_URI)
    config.setdefault('MYSQLSTORE_TABLE_NAME', defaults.MYSQLSTORE_TABLE_NAME)
    config.setdefault('MYSQLSTORE_COOKIE_NAME',
                      defaults.MYSQLSTORE_COOKIE_NAME)
    config.setdefault('MYSQLSTORE_COOKIE_PATH',
                      defaults.MYSQLSTORE_COOKIE_PATH)
    config.setdefault('MYSQLSTORE_DURATION', defaults.MYSQLSTORE_DURATION)
    config.setdefault('MYSQLSTORE_SIGNING_KEYS',
                      defaults.MYSQLSTORE_SIGNING_KEYS)
    config.setdefault('MYSQLSTORE_CLEANUP_INTERVAL',
                      defaults.MYSQLSTORE_CLEANUP_INTERVAL)
    config.setdefault('MYSQLSTORE_LOG_JSON', defaults.MYSQLSTORE_LOG_JSON)

    if str(config['MYSQLSTORE_LOG_JSON']) == '1':
        setup_logger()

    try:
        duration = int(config['MYSQLSTORE_DURATION'])
        interval = float(config['MYSQLSTORE_CLEANUP_INTERVAL'])
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f'Invalid session configuration: {e}') from e
    keys = [key.strip() for key in
            str(config['MYSQLSTORE_SIGNING_KEYS']).split(',') if key.strip()]

    store = SessionStore.from_url(config['MYSQLSTORE_DATABASE_URI'],
                                  config['MYSQLSTORE_TABLE_NAME'],
                                  config['MYSQLSTORE_COOKIE_PATH'],
                                  duration, *keys)
    handle = store.cleanup(interval) if interval > 0 else None
    app.extensions[EXTENSION] = _State(store, handle)
    logger.info('Session store attached to %s', app.name)
    return store


def shutdown(app: Optional[Flask] = None) -> None:
    """Stop the sweeper (if running) and close the store of ``app``."""
    if app is None:
        app = current_app
    state: _State = app.extensions.pop(EXTENSION)
    if state.handle is not None:
        state.store.stop_cleanup(state.handle)
    state.store.close()


def current_store() -> SessionStore:
    """Get the :class:`.SessionStore` of the current application."""
    try:
        state: _State = current_app.extensions[EXTENSION]
    except KeyError as e:
        raise ConfigurationError('Session store is not initialized') from e
    return state.store


@wraps(SessionStore.get)
def get(name: Optional[str] = None) -> Session:
    """Get a session for the current request."""
    if name is None:
        name = current_app.config['MYSQLSTORE_COOKIE_NAME']
    return current_store().get(request, name)


@wraps(SessionStore.save)
def save(response: Response, session: Session) -> None:
    """Persist a session and set its cookie on ``response``."""
    return current_store().save(request, response, session)


@wraps(SessionStore.delete)
def delete(response: Response, session: Session) -> None:
    """Delete a session and expire its cookie on ``response``."""
    return current_store().delete(response, session)
