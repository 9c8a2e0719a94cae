"""
Protocol definition for notification backends.

Defines the interface the poll loop uses to deliver messages.
"""

from typing import Any, Protocol, runtime_checkable


@runtime_checkable
class Notifier(Protocol):
    """
    Protocol defining the interface for notification backends.

    ``send`` raises on failure.
    """

    async def send(self, target: str, payload: dict[str, Any]) -> None:
        """
        Deliver a payload to a target address.

        Parameters
        ----------
        target : str
            Delivery address (e.g., a webhook URL).
        payload : dict[str, Any]
            Message body, ``{"content": ..., "username": ...}``.

        Raises
        ------
        NotificationDeliveryError
            If the message could not be delivered.
        """
        ...

    async def close(self) -> None:
        """
        Close the notifier and release any resources.
        """
        ...
