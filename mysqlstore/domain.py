"""Defines the session concepts shared by the store and its callers."""

from typing import Any, Dict, NamedTuple, Optional


class Options(NamedTuple):
    """Cookie attributes applied when a session cookie is written."""

    path: str = '/'
    """URL path for which the cookie is sent."""

    domain: Optional[str] = None
    """Cookie domain; ``None`` means the current host only."""

    max_age: int = 86400 * 30
    """
    Lifetime of the session in seconds.

    Also used by the store to compute ``expires_on`` for new rows.
    """

    secure: bool = False
    http_only: bool = True
    same_site: Optional[str] = None


class Session(object):
    """
    A request-scoped session.

    The session is owned by the request registry; the store only reads and
    populates it.
    """

    def __init__(self, store: Any, name: str,
                 options: Optional[Options] = None) -> None:
        """Start an empty, new session called ``name``."""
        self.store = store
        self.name = name
        self.session_id = ''
        self.values: Dict[str, Any] = {}
        self.is_new = True
        self.options = options if options is not None else Options()

    def __repr__(self) -> str:
        return (f'<Session {self.name!r} id={self.session_id!r}'
                f' new={self.is_new}>')
