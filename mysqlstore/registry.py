"""Per-request cache of sessions."""

from typing import Any, Dict

from werkzeug.wrappers import Request, Response

from .domain import Session

ENVIRON_KEY = 'mysqlstore.registry'


class Registry(object):
    """Holds the sessions opened during one request, by name."""

    def __init__(self, request: Request) -> None:
        self.request = request
        self.sessions: Dict[str, Session] = {}

    def get(self, store: Any, name: str) -> Session:
        """Get the session ``name``, asking ``store`` for it the first time."""
        if name not in self.sessions:
            self.sessions[name] = store.new(self.request, name)
        return self.sessions[name]

    def save(self, response: Response) -> None:
        """Save every session opened during the request."""
        for session in self.sessions.values():
            session.store.save(self.request, response, session)


def get_registry(request: Request) -> Registry:
    """Get the :class:`Registry` attached to ``request``, creating it."""
    registry = request.environ.get(ENVIRON_KEY)
    if registry is None:
        registry = Registry(request)
        request.environ[ENVIRON_KEY] = registry
    return registry
