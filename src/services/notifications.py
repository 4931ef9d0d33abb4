"""
User Notifications

The UI decides how a notification is shown (a toast in the dashboard).
Core services only call `notify`; the default implementation writes to
the structured log so nothing is lost when no UI is attached.
"""

from abc import ABC, abstractmethod

import structlog


class Notifier(ABC):
    """Sink for short user-facing messages."""

    @abstractmethod
    def notify(self, message: str, level: str = "info") -> None:
        """
        Show a message to the user.

        Args:
            message: Text to show
            level: One of "info", "success", "warning", "danger"
        """
        pass


class LogNotifier(Notifier):
    """Notifier that only logs."""

    def __init__(self):
        self._logger = structlog.get_logger("notifications")

    def notify(self, message: str, level: str = "info") -> None:
        if level in ("warning", "danger"):
            self._logger.warning("user_notification", message=message, level=level)
        else:
            self._logger.info("user_notification", message=message, level=level)


class CollectingNotifier(Notifier):
    """Notifier that keeps messages in memory, for UIs that render them later."""

    def __init__(self):
        self.messages: list[tuple[str, str]] = []

    def notify(self, message: str, level: str = "info") -> None:
        self.messages.append((message, level))

    def drain(self) -> list[tuple[str, str]]:
        """Return and forget the collected messages."""
        messages, self.messages = self.messages, []
        return messages
