"""
Общие фикстуры тестов: каталог в памяти, заглушки шлюза и каналов уведомлений.
"""

from datetime import date, timedelta
from typing import Any, Dict, List

import pytest
import requests

from rental_platform.booking.application import (
    BookingQueryService,
    BookingStatusService,
    ReservationOrchestrator,
)
from rental_platform.booking.infrastructure import InMemoryUnitOfWork
from rental_platform.bootstrap import seed_sample_data
from rental_platform.notifications.application import NotificationService
from rental_platform.notifications.domain import EmailMessage
from rental_platform.notifications.infrastructure import InMemoryNotifier
from rental_platform.payments.application import PaymentReconciler
from rental_platform.payments.infrastructure import DummyPaymentGateway

WEBHOOK_TOKEN = "test-callback-token"
ADMIN_EMAIL = "admin@sadaresidence.com"
CHECK_IN = date(2030, 3, 4)


class RecordingEmailSender:
    """Отправитель писем, запоминающий сообщения."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.messages: List[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        if self.fail:
            raise ConnectionError("smtp down")
        self.messages.append(message)


class FailingNotifier:
    """Канал уведомлений, который всегда падает."""

    def notify(self, event) -> None:
        raise RuntimeError("notification store unavailable")


class FakeResponse:
    """Ответ HTTP для подмены requests.Session."""

    def __init__(self, status_code=200, payload=None):
        self.status_code = status_code
        self._payload = payload or {}
        self.text = str(self._payload)

    @property
    def ok(self):
        return self.status_code < 400

    def json(self):
        return self._payload

    def raise_for_status(self):
        if not self.ok:
            raise requests.HTTPError(f"{self.status_code} error")


class FakeSession:
    """Сессия, запоминающая POST-запросы."""

    def __init__(self, response=None, error=None):
        self.response = response or FakeResponse()
        self.error = error
        self.calls = []

    def post(self, url, **kwargs):
        self.calls.append((url, kwargs))
        if self.error is not None:
            raise self.error
        return self.response


def make_request(room_id, check_in: date = CHECK_IN, nights: int = 3, **overrides: Any) -> Dict[str, Any]:
    """Данные публичной формы бронирования."""
    data: Dict[str, Any] = {
        "room_id": room_id,
        "check_in": check_in,
        "check_out": check_in + timedelta(days=nights),
        "guest": {
            "full_name": "Budi Santoso",
            "email": "budi@example.com",
            "phone": "+62 812 3456 7890",
        },
    }
    data.update(overrides)
    return data


@pytest.fixture
def uow():
    return InMemoryUnitOfWork()


@pytest.fixture
def sample_property(uow):
    return seed_sample_data(uow)


@pytest.fixture
def rooms(uow, sample_property):
    return uow.rooms.list_active(property_id=sample_property.id)


@pytest.fixture
def room(rooms):
    """Номер 101."""
    return rooms[0]


@pytest.fixture
def notifier():
    return InMemoryNotifier()


@pytest.fixture
def email_sender():
    return RecordingEmailSender()


@pytest.fixture
def gateway():
    return DummyPaymentGateway()


@pytest.fixture
def notifications(notifier, email_sender):
    return NotificationService(notifier, email_sender, admin_email=ADMIN_EMAIL)


@pytest.fixture
def reconciler(uow, notifications):
    return PaymentReconciler(uow, webhook_token=WEBHOOK_TOKEN, notifications=notifications)


@pytest.fixture
def orchestrator(uow, gateway, notifications, reconciler):
    return ReservationOrchestrator(uow, gateway, notifications, reconciler=reconciler)


@pytest.fixture
def statuses(uow, notifications):
    return BookingStatusService(uow, notifications)


@pytest.fixture
def queries(uow):
    return BookingQueryService(uow)
