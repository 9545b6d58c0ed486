"""User-facing notifications emitted by the upload client."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal, Protocol


@dataclass(frozen=True)
class Notification:
    title: str
    description: str
    variant: Literal["default", "destructive"] = "default"


class Notifier(Protocol):
    def notify(self, notification: Notification) -> None: ...


class LoggingNotifier:
    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)

    def notify(self, notification: Notification) -> None:
        level = logging.WARNING if notification.variant == "destructive" else logging.INFO
        self._logger.log(level, "%s: %s", notification.title, notification.description)


class RecordingNotifier:
    """Keeps every notification, handy for CLIs and tests."""

    def __init__(self) -> None:
        self.notifications: list[Notification] = []

    def notify(self, notification: Notification) -> None:
        self.notifications.append(notification)
