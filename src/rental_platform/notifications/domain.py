"""
Доменная модель уведомлений: событие для ленты администратора и письмо.
"""

from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from ..shared_kernel import EntityId


class NotificationType(str, Enum):
    """Типы уведомлений."""

    NEW_BOOKING = "new_booking"
    PAYMENT_RECEIVED = "payment_received"
    ONSITE_PAYMENT = "onsite_payment"
    CHECK_IN = "check_in"
    CHECK_OUT = "check_out"


class NotificationEvent(BaseModel):
    """Структурированное событие уведомления."""

    type: NotificationType
    title: str
    message: str
    target_role: str = "admin"
    reference_type: Optional[str] = None
    reference_id: Optional[EntityId] = None
    action_url: Optional[str] = None
    send_email: bool = False
    metadata: Dict[str, Any] = Field(default_factory=dict)


class EmailMessage(BaseModel):
    """Готовое к отправке письмо."""

    to: str
    subject: str
    html: str


def format_currency(amount: Decimal, currency: str = "IDR") -> str:
    """Форматирует сумму в стиле id-ID: Rp 1.190.500."""
    whole = f"{int(amount):,}".replace(",", ".")
    if currency == "IDR":
        return f"Rp {whole}"
    return f"{currency} {whole}"
