"""
Background deletion of expired sessions.

A sweeper thread calls ``purge_expired()`` on a store every ``interval``
seconds until it is stopped:

.. code-block:: python

   handle = cleanup.start(store, 600)
   ...
   cleanup.stop(handle)
   store.close()

:func:`stop` is a blocking rendezvous with the sweeper thread. A handle is
good for exactly one :func:`stop`; stopping it again, or starting a new sweep
with it, is a misuse and its behavior is undefined.
"""

import logging
import threading
import time
from typing import Any, Optional

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL = 300.0
"""Seconds between sweeps when no positive interval is given."""


class CleanupHandle(object):
    """Controls a running sweeper thread."""

    def __init__(self, interval: float) -> None:
        self.interval = interval
        self.quit = threading.Event()
        """Set by the owner to ask the sweeper to stop."""
        self.done = threading.Event()
        """Set by the sweeper once it will make no further calls."""
        self.thread: Optional[threading.Thread] = None


def start(store: Any, interval: float = DEFAULT_INTERVAL) -> CleanupHandle:
    """
    Start deleting expired sessions from ``store`` every ``interval`` seconds.

    Returns immediately.

    Parameters
    ----------
    store : :class:`.SessionStore`
        Anything with a ``purge_expired()`` method.
    interval : float
        Seconds between sweeps. Values that are not strictly positive are
        replaced by :const:`DEFAULT_INTERVAL`.

    Returns
    -------
    :class:`CleanupHandle`

    """
    if interval <= 0:
        interval = DEFAULT_INTERVAL
    handle = CleanupHandle(interval)
    handle.thread = threading.Thread(target=_cleanup, args=(store, handle),
                                     name='mysqlstore-cleanup', daemon=True)
    handle.thread.start()
    logger.info('Started session cleanup every %s seconds', interval)
    return handle


def stop(handle: CleanupHandle) -> None:
    """Stop the sweeper and wait until it has finished."""
    handle.quit.set()
    handle.done.wait()
    logger.info('Stopped session cleanup')


def _cleanup(store: Any, handle: CleanupHandle) -> None:
    interval = handle.interval
    deadline = time.monotonic() + interval
    # wait() returns as soon as quit is set, otherwise at the next tick.
    while not handle.quit.wait(max(deadline - time.monotonic(), 0)):
        try:
            deleted = store.purge_expired()
        except Exception as e:
            logger.error('Unable to delete expired sessions: %s', e)
        else:
            if deleted:
                logger.info('Deleted %s expired sessions', deleted)
        # Ticks at a fixed rate; ticks missed during a slow purge are dropped.
        deadline += interval
        behind = time.monotonic() - deadline
        if behind > 0:
            deadline += (behind // interval + 1) * interval
    handle.done.set()
