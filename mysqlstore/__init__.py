"""
Stores web sessions in a relational database.

The client holds only a signed cookie with the session ID; session data lives
in a table managed by :class:`.SessionStore`. Expired rows are removed by a
background sweeper (see :mod:`.cleanup`).
"""

from . import cleanup, codecs, exceptions, registry
from .domain import Options, Session
from .store import SessionStore
