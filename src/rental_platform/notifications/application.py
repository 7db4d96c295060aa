"""
Прикладной слой уведомлений.

Все методы работают по принципу "отправил и забыл": ошибка канала
доставки пишется в лог и никогда не влияет на вызывающую операцию.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Optional

from ..shared_kernel import ILogger, get_logger, now
from . import templates
from .domain import EmailMessage, NotificationEvent
from .interfaces import IEmailSender, INotifier

if TYPE_CHECKING:
    from ..booking.domain import Booking, Guest
    from ..catalog.domain import RoomDetails


class NotificationService:
    """Рассылка уведомлений персоналу и писем гостям."""

    def __init__(
        self,
        notifier: INotifier,
        email_sender: IEmailSender,
        app_name: str = "Sada Residence",
        app_url: str = "http://localhost:3000",
        admin_email: Optional[str] = None,
        currency: str = "IDR",
        logger: Optional[ILogger] = None,
    ):
        self._notifier = notifier
        self._email_sender = email_sender
        self._app_name = app_name
        self._app_url = app_url
        self._admin_email = admin_email
        self._currency = currency
        self._logger = logger or get_logger(__name__)

    def dispatch(self, event: NotificationEvent) -> None:
        """Публикует событие и, если нужно, дублирует его письмом администратору."""
        try:
            self._notifier.notify(event)
        except Exception as e:
            self._logger.error(
                "Failed to create notification",
                type=event.type.value,
                reference_id=event.reference_id,
                error=str(e),
            )

        if event.send_email and self._admin_email:
            self.send_email(
                templates.admin_alert_email(
                    self._admin_email, event, self._app_name, self._app_url, now().year
                )
            )

    def send_email(self, message: EmailMessage) -> None:
        if not message.to:
            return
        try:
            self._email_sender.send(message)
        except Exception as e:
            self._logger.error(
                "Failed to send email",
                to=message.to,
                subject=message.subject,
                error=str(e),
            )

    def booking_created(
        self, booking: Booking, guest: Guest, details: RoomDetails, send_confirmation: bool = True
    ) -> None:
        """Новое бронирование: лента персонала и письмо гостю."""
        self.dispatch(templates.new_booking_event(booking, guest, details))
        if send_confirmation and guest.email:
            self.send_email(
                templates.booking_confirmation_email(
                    booking, guest, details, self._app_name, self._app_url, self._currency
                )
            )

    def payment_received(
        self, booking: Booking, guest: Optional[Guest], amount: Decimal, method: str
    ) -> None:
        self.dispatch(
            templates.payment_received_event(booking, guest, amount, method, self._currency)
        )
        if guest is not None and guest.email:
            self.send_email(
                templates.payment_success_email(
                    booking, guest, amount, self._app_name, self._app_url, self._currency
                )
            )

    def onsite_payment(self, booking: Booking, amount: Decimal, method: str) -> None:
        self.dispatch(templates.onsite_payment_event(booking, amount, method, self._currency))

    def checked_in(self, booking: Booking, guest: Optional[Guest], room_number: str) -> None:
        self.dispatch(templates.check_in_event(booking, guest, room_number))

    def checked_out(self, booking: Booking, guest: Optional[Guest], room_number: str) -> None:
        self.dispatch(templates.check_out_event(booking, guest, room_number))
