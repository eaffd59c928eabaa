"""
Custom exceptions for the LiveSync controller.

None of these escape the core: they are raised at the transport seams and
turned into a status string or a state enum by the component that owns them.
"""


class LiveSyncError(Exception):
    """Base exception for all LiveSync errors."""
    pass


class TransportError(LiveSyncError):
    """A status request or chat connection failed to reach the server."""
    pass


class ProtocolError(LiveSyncError):
    """A payload from the server could not be parsed."""
    pass


class ExhaustedRetries(LiveSyncError):
    """The chat channel gave up reconnecting."""
    pass


class PlaybackUnavailable(LiveSyncError):
    """No path is available to play the room's media."""
    pass
