class SyncError(Exception):
    """Base class for watchsync errors."""


class TransportUnavailable(SyncError):
    """The relay server cannot be reached or the socket is not connected."""
