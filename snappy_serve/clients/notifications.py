"""
Customer Notification Service

Local notifications raised by the customer client when a tracked order
changes status. ``LoggingNotifier`` writes them to the log and keeps them in
memory; nothing leaves the process.

Version: 1.0.0
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notification:
    """A toast or a system notification."""
    title: str
    body: Optional[str] = None
    tag: Optional[str] = None
    require_interaction: bool = False
    toast: bool = False


class BaseNotifier(ABC):
    """Abstract base class for notification sinks."""

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Return the provider name."""
        pass

    @abstractmethod
    def notify(self, notification: Notification) -> None:
        """Show a notification."""
        pass


class LoggingNotifier(BaseNotifier):
    """Logs notifications and records them in ``sent``."""

    def __init__(self) -> None:
        self.sent: list[Notification] = []

    @property
    def provider_name(self) -> str:
        return "logging"

    def notify(self, notification: Notification) -> None:
        self.sent.append(notification)
        if notification.toast:
            logger.info(f"Toast: {notification.title}")
        else:
            logger.info(f"Notification [{notification.tag}]: {notification.title} - {notification.body}")
