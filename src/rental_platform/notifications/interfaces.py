"""
Интерфейсы (порты) для отправки уведомлений и писем.
"""

from typing import Protocol

from .domain import EmailMessage, NotificationEvent


class INotifier(Protocol):
    """Интерфейс ленты уведомлений."""

    def notify(self, event: NotificationEvent) -> None: ...


class IEmailSender(Protocol):
    """Интерфейс отправки писем."""

    def send(self, message: EmailMessage) -> None: ...
