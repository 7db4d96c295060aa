"""
Инфраструктурный слой уведомлений.

Лента уведомлений в памяти и отправители писем: в лог и через HTTP API.
"""

from typing import List, Optional

import requests

from ..shared_kernel import ILogger, UpstreamServiceError, get_logger
from .domain import EmailMessage, NotificationEvent
from .interfaces import IEmailSender, INotifier


class InMemoryNotifier(INotifier):
    """Лента уведомлений в памяти."""

    def __init__(self, logger: Optional[ILogger] = None):
        self._events: List[NotificationEvent] = []
        self._logger = logger or get_logger(__name__)

    @property
    def events(self) -> List[NotificationEvent]:
        return list(self._events)

    def notify(self, event: NotificationEvent) -> None:
        self._events.append(event)
        self._logger.info(
            f"Notification: {event.title}",
            type=event.type.value,
            reference_id=event.reference_id,
        )


class LoggingEmailSender(IEmailSender):
    """Вместо отправки пишет письмо в лог (ключ API не настроен)."""

    def __init__(self, logger: Optional[ILogger] = None):
        self._logger = logger or get_logger(__name__)

    def send(self, message: EmailMessage) -> None:
        self._logger.warning(
            "Email API key not set, skipping email send",
            to=message.to,
            subject=message.subject,
        )


class HttpEmailSender(IEmailSender):
    """Отправка писем через HTTP API почтового сервиса."""

    def __init__(
        self,
        api_url: str,
        api_key: str,
        sender: str,
        timeout: float = 10.0,
        session: Optional[requests.Session] = None,
        logger: Optional[ILogger] = None,
    ):
        self._api_url = api_url
        self._api_key = api_key
        self._sender = sender
        self._timeout = timeout
        self._session = session or requests.Session()
        self._logger = logger or get_logger(__name__)

    def send(self, message: EmailMessage) -> None:
        try:
            response = self._session.post(
                self._api_url,
                json={
                    "from": self._sender,
                    "to": message.to,
                    "subject": message.subject,
                    "html": message.html,
                },
                headers={"Authorization": f"Bearer {self._api_key}"},
                timeout=self._timeout,
            )
            response.raise_for_status()
        except requests.RequestException as e:
            raise UpstreamServiceError(f"Не удалось отправить письмо: {e}") from e

        self._logger.info("Email sent", to=message.to, subject=message.subject)
