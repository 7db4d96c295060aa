"""
Прикладной слой контекста платежей.

PaymentReconciler применяет платежи (ручные и от шлюза) к остатку
бронирования, его статусу оплаты и статусу бронирования.
"""

from __future__ import annotations

import hmac
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from ..shared_kernel import (
    AuthenticationError,
    BookingStatus,
    BusinessRuleValidationException,
    EntityId,
    ILogger,
    NotFoundError,
    OverpaymentError,
    get_logger,
    to_amount,
    validate_input,
)
from .domain import (
    OnSiteMethod,
    Payment,
    PaymentMethod,
    PaymentRecordStatus,
    map_gateway_status,
)

if TYPE_CHECKING:
    from ..booking.domain import Booking
    from ..booking.interfaces import IRentalUnitOfWork
    from ..notifications.application import NotificationService


# DTO (Data Transfer Objects) для входящих данных


class RecordPaymentCommand(BaseModel):
    """Команда записи платежа на ресепшене."""

    booking_id: EntityId
    amount: Decimal = Field(..., gt=0)
    method: OnSiteMethod
    notes: Optional[str] = Field(None, max_length=500)


class GatewayCallback(BaseModel):
    """Уведомление платежного шлюза о счете."""

    model_config = ConfigDict(extra="ignore")

    id: str
    status: str
    external_id: Optional[str] = None
    amount: Optional[Decimal] = Field(None, ge=0)
    paid_amount: Optional[Decimal] = Field(None, ge=0)
    payment_method: Optional[str] = None
    payment_channel: Optional[str] = None

    @property
    def channel(self) -> Optional[str]:
        return self.payment_channel or self.payment_method


# DTO для исходящих данных


class CallbackAck(BaseModel):
    """Подтверждение приема уведомления шлюза."""

    received: bool = True
    outcome: str


class PaymentDTO(BaseModel):
    """DTO для представления платежа."""

    id: EntityId
    booking_id: EntityId
    amount: Decimal
    method: PaymentMethod
    status: PaymentRecordStatus
    gateway_invoice_url: Optional[str]
    paid_at: Optional[datetime]
    notes: Optional[str]

    @classmethod
    def from_domain(cls, payment: Payment) -> "PaymentDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=payment.id,
            booking_id=payment.booking_id,
            amount=payment.amount,
            method=payment.method,
            status=payment.status,
            gateway_invoice_url=payment.gateway_invoice_url,
            paid_at=payment.paid_at,
            notes=payment.notes,
        )


# Сервисы приложения


class PaymentReconciler:
    """Сверка платежей с бронированиями.

    Повторное уведомление об уже оплаченном платеже ничего не меняет:
    статус платежа проверяется до увеличения оплаченной суммы.
    """

    def __init__(
        self,
        uow: IRentalUnitOfWork,
        webhook_token: Optional[str] = None,
        notifications: Optional[NotificationService] = None,
        logger: Optional[ILogger] = None,
    ):
        self._uow = uow
        self._webhook_token = webhook_token
        self._notifications = notifications
        self._logger = logger or get_logger(__name__)

    def record_payment(
        self, command: Union[RecordPaymentCommand, Mapping[str, Any]]
    ) -> Booking:
        """Записывает платеж на ресепшене.

        Raises:
            NotFoundError: бронирование не найдено
            OverpaymentError: сумма больше остатка (состояние не меняется)
        """
        command = validate_input(RecordPaymentCommand, command)
        amount = to_amount(command.amount)

        with self._uow:
            booking = self._uow.bookings.get_for_update(command.booking_id)
            if booking is None:
                raise NotFoundError("Бронирование", command.booking_id)
            if booking.status in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
                raise BusinessRuleValidationException(
                    f"Нельзя принять оплату для бронирования в статусе {booking.status.value}"
                )
            if amount > booking.outstanding:
                raise OverpaymentError(amount, booking.outstanding)

            payment = Payment(
                booking_id=booking.id,
                amount=amount,
                method=command.method.to_payment_method(),
                on_site_method=command.method,
                notes=command.notes,
            )
            payment.mark_paid()
            self._uow.payments.add(payment)

            booking.apply_payment(amount)
            self._uow.bookings.update(booking)

        self._logger.info(
            "On-site payment recorded",
            booking_id=booking.id,
            amount=amount,
            method=command.method.value,
            paid_amount=booking.paid_amount,
            payment_status=booking.payment_status.value,
        )
        if self._notifications is not None:
            self._notifications.onsite_payment(booking, amount, command.method.value)
        return booking

    def verify_token(self, token: Optional[str]) -> None:
        """Сверяет общий секрет обратного вызова."""
        if not self._webhook_token or not hmac.compare_digest(
            (token or "").encode(), self._webhook_token.encode()
        ):
            self._logger.warning("Webhook token mismatch")
            raise AuthenticationError("Invalid callback token")

    def handle_callback(
        self,
        payload: Union[GatewayCallback, Mapping[str, Any]],
        token: Optional[str],
    ) -> CallbackAck:
        """Обрабатывает уведомление шлюза.

        Неизвестный счет подтверждается без изменений: уведомление
        могло относиться к другому окружению или быть запоздалым повтором.

        Raises:
            AuthenticationError: неверный токен обратного вызова
            InvalidInputError: некорректное тело уведомления (например,
                отрицательная сумма); ничего не записывается
        """
        self.verify_token(token)
        callback = validate_input(GatewayCallback, payload)
        status = map_gateway_status(callback.status)

        with self._uow:
            payment = self._uow.payments.get_by_gateway_invoice_id(callback.id, for_update=True)
            if payment is None:
                self._logger.warning("Payment not found for invoice", invoice_id=callback.id)
                return CallbackAck(outcome="ignored")

            if status == PaymentRecordStatus.EXPIRED:
                payment.expire()
                self._uow.payments.update(payment)
                self._logger.info("Payment expired", payment_id=payment.id)
                return CallbackAck(outcome="expired")

            if status != PaymentRecordStatus.PAID:
                return CallbackAck(outcome="pending")

            if payment.status in (PaymentRecordStatus.PAID, PaymentRecordStatus.REFUNDED):
                self._logger.info(
                    "Duplicate paid callback ignored",
                    payment_id=payment.id,
                    invoice_id=callback.id,
                )
                return CallbackAck(outcome="duplicate")

            # Нулевая сумма от шлюза означает "не указана"
            amount = to_amount(callback.paid_amount) if callback.paid_amount else payment.amount
            booking = self._uow.bookings.get_for_update(payment.booking_id)
            guest = None
            if booking is not None and amount > booking.outstanding:
                # Деньги уже списаны шлюзом, поэтому сумму не отклоняем
                self._logger.warning(
                    "Gateway settlement exceeds outstanding balance",
                    booking_id=booking.id,
                    amount=amount,
                    outstanding=booking.outstanding,
                )

            payment.mark_paid(amount, callback.channel)
            self._uow.payments.update(payment)
            if booking is not None:
                booking.apply_payment(amount)
                self._uow.bookings.update(booking)
                guest = self._uow.guests.get_by_id(booking.guest_id)

        self._logger.info(
            "Gateway payment applied",
            payment_id=payment.id,
            booking_id=payment.booking_id,
            amount=amount,
            method=payment.method.value,
        )
        if booking is not None and self._notifications is not None:
            self._notifications.payment_received(booking, guest, amount, payment.method.value)
        return CallbackAck(outcome="paid")

    def refund_payment(self, payment_id: EntityId, reason: Optional[str] = None) -> Payment:
        """Возвращает оплаченный платеж и уменьшает оплаченную сумму бронирования."""
        with self._uow:
            payment = self._uow.payments.get_for_update(payment_id)
            if payment is None:
                raise NotFoundError("Платеж", payment_id)
            booking = self._uow.bookings.get_for_update(payment.booking_id)
            if booking is None:
                raise NotFoundError("Бронирование", payment.booking_id)

            payment.refund(reason)
            booking.apply_refund(payment.amount)
            self._uow.payments.update(payment)
            self._uow.bookings.update(booking)

        self._logger.info(
            "Payment refunded",
            payment_id=payment.id,
            booking_id=booking.id,
            amount=payment.amount,
        )
        return payment

    def payments_for_booking(self, booking_id: EntityId) -> List[Payment]:
        with self._uow:
            return self._uow.payments.list_for_booking(booking_id)
