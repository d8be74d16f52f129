"""
Notification emitter interface.
Allows swapping the delivery channel without touching the session lifecycle.
"""

from abc import ABC, abstractmethod
from typing import Any


class Notifier(ABC):
    """
    Interface for notification emitters.

    Implementations:
    - DatabaseNotifier: persists in-app notifications
    - Test doubles: record or fail deliveries
    """

    @abstractmethod
    async def notify(self, kind: str, recipient_id: int, payload: dict[str, Any]) -> None:
        """
        Deliver one notification.

        Args:
            kind: Notification kind, e.g. session_review_request
            recipient_id: User id of the recipient
            payload: title, message, optional link and a free-form data dict

        Raises:
            Any exception on delivery failure; callers decide whether it is fatal.
        """
        pass
