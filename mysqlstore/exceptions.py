"""Exceptions."""


class ConfigurationError(RuntimeError):
    """A required store parameter is missing or invalid."""


class InitializationFailed(RuntimeError):
    """The session table could not be created, or a statement not prepared."""


class StoreClosed(RuntimeError):
    """The store has been shut down and can no longer be used."""


class EncodingFailed(RuntimeError):
    """Session values could not be serialized and signed."""


class InvalidCookie(RuntimeError):
    """A signed value is malformed, tampered with, or expired."""


class UnknownSession(RuntimeError):
    """Failed to locate a session in the session store."""


class SessionExpired(RuntimeError):
    """The session exists but has expired."""


class SessionCreationFailed(RuntimeError):
    """Failed to create a session in the session store."""


class SessionUpdateFailed(RuntimeError):
    """Failed to update a session in the session store."""


class SessionDeletionFailed(RuntimeError):
    """Failed to delete a session in the session store."""
