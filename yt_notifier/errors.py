"""
Exception types for YT Notifier.

Every failure that can happen while processing a single channel maps to
one of these classes so the poll loop can decide whether to skip the
channel, skip the state commit, or abort at startup.
"""


class NotifierError(Exception):
    """Base class for all YT Notifier errors."""


class FetchError(NotifierError):
    """
    Raised when a channel feed cannot be retrieved or parsed.

    Parameters
    ----------
    channel_id : str
        Channel whose feed failed.
    message : str
        Human-readable failure detail.
    """

    def __init__(self, channel_id: str, message: str):
        super().__init__(f"Failed to fetch feed for channel '{channel_id}': {message}")
        self.channel_id = channel_id


class NotificationDeliveryError(NotifierError):
    """
    Raised when a webhook notification could not be delivered.

    Parameters
    ----------
    message : str
        Human-readable failure detail.
    status : int | None
        HTTP status returned by the endpoint, if any.
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


class StoreError(NotifierError):
    """Base class for state store failures."""


class StoreCorruptionError(StoreError):
    """Raised when the state document is not a valid JSON object."""


class StoreWriteError(StoreError):
    """Raised when the state document could not be persisted."""


class StoreInitError(StoreError):
    """Raised when the state store cannot be created at startup."""
