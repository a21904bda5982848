"""
Email sender interface.
Delivery transport lives behind this seam; the app only composes messages.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str
    action_url: str


class EmailSender(ABC):
    @abstractmethod
    async def send(self, message: EmailMessage) -> None:
        """Hand the message to the transport. Raises on delivery failure."""
        pass
