"""Tests for :mod:`mysqlstore.extension`."""

import logging
import os
import tempfile
from unittest import TestCase, mock

from flask import Flask, make_response
from pythonjsonlogger import jsonlogger

from .. import extension
from ..app_logging import setup_logger
from ..exceptions import ConfigurationError
from ..store import SessionStore
from .util import KEY, OLD_KEY, count_rows


def create_app(directory: str, **config: str) -> Flask:
    app = Flask('test_session_app')
    app.config['MYSQLSTORE_DATABASE_URI'] = \
        'sqlite:///' + os.path.join(directory, 'sessions.db')
    app.config['MYSQLSTORE_SIGNING_KEYS'] = f'{KEY},{OLD_KEY}'
    app.config['MYSQLSTORE_CLEANUP_INTERVAL'] = '0'
    app.config.update(config)

    @app.route('/')
    @app.route('/account/settings')
    def index():
        session = extension.get()
        session.values['visits'] = session.values.get('visits', 0) + 1
        response = make_response(str(session.values['visits']))
        extension.save(response, session)
        return response

    @app.route('/logout')
    def logout():
        response = make_response('bye')
        extension.delete(response, extension.get())
        return response

    return app


class TestInitApp(TestCase):
    """Tests for :func:`extension.init_app`."""

    def setUp(self):
        self.directory = tempfile.TemporaryDirectory()

    def tearDown(self):
        self.directory.cleanup()

    def test_defaults(self):
        """Configuration defaults are set and a store is attached."""
        app = create_app(self.directory.name)
        store = extension.init_app(app)
        self.assertIsInstance(store, SessionStore)
        self.assertEqual(app.config['MYSQLSTORE_TABLE_NAME'], 'sessions')
        self.assertEqual(app.config['MYSQLSTORE_COOKIE_NAME'], 'mysqlstore')
        self.assertEqual(store.options.path, '/')
        self.assertEqual(store.options.max_age, 86400)
        self.assertEqual(len(store.codecs), 2)
        with app.app_context():
            self.assertIs(extension.current_store(), store)
        extension.shutdown(app)

    def test_flask_session_settings_ignored(self):
        """Flask's own ``SESSION_*`` settings do not configure the store."""
        app = create_app(self.directory.name, SESSION_COOKIE_NAME='flask',
                         SESSION_COOKIE_PATH='/elsewhere')
        store = extension.init_app(app)
        self.assertEqual(store.options.path, '/')
        self.assertEqual(app.config['MYSQLSTORE_COOKIE_NAME'], 'mysqlstore')
        extension.shutdown(app)

    def test_sweeper_disabled(self):
        """No sweeper runs when the cleanup interval is 0."""
        app = create_app(self.directory.name)
        extension.init_app(app)
        self.assertIsNone(app.extensions[extension.EXTENSION].handle)
        extension.shutdown(app)

    def test_sweeper_started_and_stopped(self):
        """The sweeper runs until the application is shut down."""
        app = create_app(self.directory.name, MYSQLSTORE_CLEANUP_INTERVAL='60')
        extension.init_app(app)
        handle = app.extensions[extension.EXTENSION].handle
        self.assertEqual(handle.interval, 60)
        self.assertTrue(handle.thread.is_alive())

        extension.shutdown(app)
        self.assertTrue(handle.done.is_set())
        self.assertNotIn(extension.EXTENSION, app.extensions)

    def test_bad_duration(self):
        """A session duration that is not a number is rejected."""
        app = create_app(self.directory.name, MYSQLSTORE_DURATION='forever')
        with self.assertRaises(ConfigurationError):
            extension.init_app(app)

    def test_not_initialized(self):
        """Using the store before :func:`extension.init_app` fails."""
        app = create_app(self.directory.name)
        with app.app_context():
            with self.assertRaises(ConfigurationError):
                extension.current_store()

    @mock.patch(f'{extension.__name__}.setup_logger')
    def test_json_logging(self, mock_setup_logger):
        """JSON logging is enabled by configuration."""
        app = create_app(self.directory.name, MYSQLSTORE_LOG_JSON='1')
        extension.init_app(app)
        self.assertEqual(mock_setup_logger.call_count, 1)
        extension.shutdown(app)


class TestRequests(TestCase):
    """The extension keeps sessions across requests."""

    def setUp(self):
        self.directory = tempfile.TemporaryDirectory()
        self.app = create_app(self.directory.name)
        self.store = extension.init_app(self.app)
        self.client = self.app.test_client()

    def tearDown(self):
        extension.shutdown(self.app)
        self.directory.cleanup()

    def test_session_persists(self):
        """Values saved in one request are loaded in the next."""
        self.assertEqual(self.client.get('/').data, b'1')
        self.assertEqual(self.client.get('/').data, b'2')
        self.assertEqual(self.client.get('/').data, b'3')
        self.assertEqual(count_rows(self.store), 1)

    def test_cookie_scoped_to_root(self):
        """A session started on a nested page is sent to every page."""
        response = self.client.get('/account/settings')
        self.assertEqual(response.data, b'1')
        header = response.headers.getlist('Set-Cookie')[0]
        self.assertTrue(header.startswith('mysqlstore='))
        self.assertIn('Path=/', header.split('; '))
        self.assertEqual(self.client.get('/').data, b'2')

    def test_logout(self):
        """Deleting the session starts the count over."""
        self.assertEqual(self.client.get('/').data, b'1')
        self.assertEqual(self.client.get('/').data, b'2')
        self.client.get('/logout')
        self.assertEqual(count_rows(self.store), 0)
        self.assertEqual(self.client.get('/').data, b'1')

    def test_tampered_cookie(self):
        """A forged cookie silently starts a new session."""
        self.client.set_cookie('mysqlstore', 'not-a-valid-cookie')
        self.assertEqual(self.client.get('/').data, b'1')


class TestSetupLogger(TestCase):
    """Tests for :func:`.app_logging.setup_logger`."""

    def test_single_json_handler(self):
        """Calling twice leaves a single JSON handler in place."""
        name = 'mysqlstore.tests.json'
        target = logging.getLogger(name)
        try:
            setup_logger(logging.DEBUG, name)
            handler = setup_logger(logging.DEBUG, name)
            json_handlers = [h for h in target.handlers
                             if isinstance(h.formatter,
                                           jsonlogger.JsonFormatter)]
            self.assertEqual(json_handlers, [handler])
            self.assertEqual(target.level, logging.DEBUG)
        finally:
            for h in list(target.handlers):
                target.removeHandler(h)
