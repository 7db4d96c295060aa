"""
Доменная модель контекста платежей.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from ..shared_kernel import (
    BusinessRuleValidationException,
    EntityId,
    generate_id,
    now,
)


class PaymentRecordStatus(str, Enum):
    """Статус отдельного платежа."""

    PENDING = "pending"
    PAID = "paid"
    EXPIRED = "expired"
    FAILED = "failed"
    REFUNDED = "refunded"


class PaymentMethod(str, Enum):
    """Канал оплаты."""

    QRIS = "qris"
    CREDIT_CARD = "credit_card"
    BANK_TRANSFER = "bank_transfer"
    CASH = "cash"


class OnSiteMethod(str, Enum):
    """Способ оплаты на ресепшене."""

    CASH = "cash"
    QRIS = "qris"
    TRANSFER = "transfer"

    def to_payment_method(self) -> PaymentMethod:
        return {
            OnSiteMethod.CASH: PaymentMethod.CASH,
            OnSiteMethod.QRIS: PaymentMethod.QRIS,
            OnSiteMethod.TRANSFER: PaymentMethod.BANK_TRANSFER,
        }[self]


def map_gateway_status(status: str) -> PaymentRecordStatus:
    """PAID/SETTLED - оплачен, EXPIRED - истек, остальное - ожидание."""
    normalized = (status or "").upper()
    if normalized in ("PAID", "SETTLED"):
        return PaymentRecordStatus.PAID
    if normalized == "EXPIRED":
        return PaymentRecordStatus.EXPIRED
    return PaymentRecordStatus.PENDING


def map_gateway_channel(channel: Optional[str]) -> PaymentMethod:
    """Сопоставляет метку канала шлюза с внутренним способом оплаты."""
    normalized = (channel or "").upper()
    if normalized in ("QRIS", "QR_CODE"):
        return PaymentMethod.QRIS
    if normalized == "CREDIT_CARD":
        return PaymentMethod.CREDIT_CARD
    return PaymentMethod.BANK_TRANSFER


class Payment(BaseModel):
    """Платеж по бронированию."""

    id: EntityId = Field(default_factory=generate_id)
    booking_id: EntityId
    amount: Decimal = Field(..., ge=0)
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    on_site_method: Optional[OnSiteMethod] = None
    status: PaymentRecordStatus = PaymentRecordStatus.PENDING
    external_id: Optional[str] = None
    gateway_invoice_id: Optional[str] = None
    gateway_invoice_url: Optional[str] = None
    payment_channel: Optional[str] = None
    paid_at: Optional[datetime] = None
    notes: Optional[str] = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)

    @property
    def is_paid(self) -> bool:
        return self.status == PaymentRecordStatus.PAID

    def mark_paid(
        self,
        amount: Optional[Decimal] = None,
        channel: Optional[str] = None,
    ) -> None:
        """Отмечает платеж оплаченным."""
        if self.is_paid:
            raise BusinessRuleValidationException("Платеж уже оплачен")
        if self.status == PaymentRecordStatus.REFUNDED:
            raise BusinessRuleValidationException("Платеж уже возвращен")
        if amount is not None and amount <= 0:
            raise BusinessRuleValidationException("Сумма платежа должна быть положительной")

        if amount is not None:
            self.amount = amount
        if channel:
            self.payment_channel = channel
            self.method = map_gateway_channel(channel)
        self.status = PaymentRecordStatus.PAID
        self.paid_at = now()
        self.updated_at = self.paid_at

    def expire(self) -> None:
        """Отмечает счет истекшим; бронирование не затрагивается."""
        if self.status == PaymentRecordStatus.PENDING:
            self.status = PaymentRecordStatus.EXPIRED
            self.updated_at = now()

    def refund(self, reason: Optional[str] = None) -> None:
        """Возвращает оплаченный платеж."""
        if not self.is_paid:
            raise BusinessRuleValidationException(
                "Вернуть можно только оплаченный платеж"
            )
        self.status = PaymentRecordStatus.REFUNDED
        if reason:
            self.notes = f"{self.notes}\n{reason}" if self.notes else reason
        self.updated_at = now()


class GatewayInvoice(BaseModel):
    """Счет, созданный во внешнем платежном шлюзе."""

    invoice_id: str
    invoice_url: str
    external_id: str
    amount: Decimal
    status: str = "PENDING"
    expiry_date: Optional[datetime] = None
