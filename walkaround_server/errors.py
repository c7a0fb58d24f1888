# walkaround_server/errors.py
"""Exception types raised inside the session server."""


class WalkaroundError(Exception):
    """Base class for all session server errors."""


class MalformedEvent(WalkaroundError):
    """An incoming frame or event argument has the wrong shape."""


class TransportDead(WalkaroundError):
    """A send was attempted on a connection that is already closed."""


class PersistenceError(WalkaroundError, OSError):
    """The spawn configuration could not be written to disk."""
