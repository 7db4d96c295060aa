"""
Доменная модель контекста бронирования.

Содержит гостя и агрегат бронирования с его машиной состояний
и правилами учета оплаты.
"""

from datetime import datetime
from decimal import Decimal
from typing import Dict, FrozenSet, Optional

from pydantic import BaseModel, Field

from ..pricing.domain import PriceBreakdown
from ..shared_kernel import (
    ZERO,
    BookingStatus,
    BusinessRuleValidationException,
    DateRange,
    EntityId,
    InvalidStatusTransitionError,
    PaymentMethodType,
    PaymentStatus,
    StayType,
    generate_id,
    now,
    to_amount,
)


class Guest(BaseModel):
    """Гость; дедуплицируется по email."""

    id: EntityId = Field(default_factory=generate_id)
    full_name: str
    email: Optional[str] = None
    phone: str
    id_type: Optional[str] = None
    id_number: Optional[str] = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    def update_contact(
        self, full_name: str, phone: str, id_number: Optional[str] = None
    ) -> None:
        """Обновляет контактные данные при повторном бронировании."""
        self.full_name = full_name
        self.phone = phone
        if id_number:
            self.id_number = id_number
        self.updated_at = now()

    def record_identity(
        self, id_type: Optional[str] = None, id_number: Optional[str] = None
    ) -> None:
        """Сохраняет данные документа при заселении."""
        if id_type:
            self.id_type = id_type
        if id_number:
            self.id_number = id_number
        self.updated_at = now()


ALLOWED_TRANSITIONS: Dict[BookingStatus, FrozenSet[BookingStatus]] = {
    BookingStatus.PENDING: frozenset(
        {BookingStatus.CONFIRMED, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CONFIRMED: frozenset(
        {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
    ),
    BookingStatus.CHECKED_IN: frozenset({BookingStatus.CHECKED_OUT}),
    BookingStatus.CHECKED_OUT: frozenset(),
    BookingStatus.CANCELLED: frozenset(),
    BookingStatus.NO_SHOW: frozenset(),
}


def derive_payment_status(paid_amount: Decimal, total_amount: Decimal) -> PaymentStatus:
    """Статус оплаты как функция оплаченной и общей суммы."""
    if paid_amount == 0:
        return PaymentStatus.UNPAID
    if paid_amount < total_amount:
        return PaymentStatus.PARTIAL
    return PaymentStatus.PAID


def generate_booking_code(created_at: datetime, booking_id: EntityId) -> str:
    """Человекочитаемый код бронирования, например BK-20260301-1A2B3C.

    Дата в коде - день оформления бронирования, не день заезда.
    """
    return f"BK-{created_at.strftime('%Y%m%d')}-{booking_id.hex[:6].upper()}"


class Booking(BaseModel):
    """Бронирование номера (агрегат)."""

    id: EntityId = Field(default_factory=generate_id)
    booking_code: str = ""
    guest_id: EntityId
    room_id: EntityId
    property_id: EntityId
    period: DateRange
    stay_type: StayType
    num_guests: int = Field(1, ge=1)
    status: BookingStatus = BookingStatus.PENDING
    base_price: Decimal = ZERO
    tax_amount: Decimal = ZERO
    service_fee: Decimal = ZERO
    discount_amount: Decimal = ZERO
    total_amount: Decimal = ZERO
    deposit_amount: Decimal = ZERO
    paid_amount: Decimal = ZERO
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    payment_method_type: PaymentMethodType = PaymentMethodType.ONLINE
    special_requests: Optional[str] = None
    admin_notes: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    checked_in_at: Optional[datetime] = None
    checked_out_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    @classmethod
    def create(
        cls,
        room_id: EntityId,
        property_id: EntityId,
        guest_id: EntityId,
        period: DateRange,
        pricing: PriceBreakdown,
        payment_method_type: PaymentMethodType,
        num_guests: int = 1,
        special_requests: Optional[str] = None,
    ) -> "Booking":
        """Создает новое бронирование в статусе pending."""
        booking = cls(
            room_id=room_id,
            property_id=property_id,
            guest_id=guest_id,
            period=period,
            stay_type=pricing.stay_type,
            num_guests=num_guests,
            base_price=pricing.base_price,
            tax_amount=pricing.tax,
            service_fee=pricing.service_fee,
            discount_amount=pricing.discount,
            total_amount=pricing.total,
            deposit_amount=pricing.deposit,
            payment_method_type=payment_method_type,
            special_requests=special_requests,
        )
        booking.booking_code = generate_booking_code(booking.created_at, booking.id)
        return booking

    @property
    def check_in(self):
        return self.period.check_in

    @property
    def check_out(self):
        return self.period.check_out

    @property
    def outstanding(self) -> Decimal:
        """Остаток к оплате (не меньше нуля)."""
        return max(ZERO, self.total_amount - self.paid_amount)

    @property
    def holds_room(self) -> bool:
        """Нетерминальное бронирование удерживает номер на свои даты."""
        return not self.status.is_terminal

    def can_transition_to(self, target: BookingStatus) -> bool:
        return target in ALLOWED_TRANSITIONS[self.status]

    def transition_to(self, target: BookingStatus, reason: Optional[str] = None) -> None:
        """Переводит бронирование в новый статус по машине состояний."""
        if not self.can_transition_to(target):
            raise InvalidStatusTransitionError(self.status, target)

        timestamp = now()
        if target == BookingStatus.CHECKED_IN:
            self.checked_in_at = timestamp
        elif target == BookingStatus.CHECKED_OUT:
            self.checked_out_at = timestamp
        elif target == BookingStatus.CANCELLED:
            self.cancelled_at = timestamp
            self.cancellation_reason = reason

        self.status = target
        self.updated_at = timestamp

    def confirm(self) -> None:
        """Подтверждает бронирование."""
        self.transition_to(BookingStatus.CONFIRMED)

    def cancel(self, reason: Optional[str] = None) -> None:
        """Отменяет бронирование."""
        self.transition_to(BookingStatus.CANCELLED, reason)

    def apply_payment(self, amount: Decimal) -> None:
        """Учитывает поступивший платеж.

        Платеж - подтверждение намерения, поэтому pending становится confirmed.
        """
        amount = to_amount(amount)
        if amount <= 0:
            raise BusinessRuleValidationException("Сумма платежа должна быть положительной")

        self.paid_amount = self.paid_amount + amount
        self.payment_status = derive_payment_status(self.paid_amount, self.total_amount)
        if self.status == BookingStatus.PENDING:
            self.status = BookingStatus.CONFIRMED
        self.updated_at = now()

    def apply_refund(self, amount: Decimal) -> None:
        """Учитывает возврат; единственный путь уменьшения paid_amount."""
        amount = to_amount(amount)
        if amount <= 0 or amount > self.paid_amount:
            raise BusinessRuleValidationException(
                "Сумма возврата должна быть положительной и не больше оплаченной"
            )

        self.paid_amount = self.paid_amount - amount
        self.payment_status = PaymentStatus.REFUNDED
        self.updated_at = now()
