"""
Интерфейсы (порты) для контекста платежей.
"""

from __future__ import annotations

from decimal import Decimal
from typing import List, Optional, Protocol

from ..shared_kernel import EntityId
from .domain import GatewayInvoice, Payment


class IPaymentRepository(Protocol):
    """Интерфейс репозитория платежей.

    Чтение for_update блокирует запись до конца единицы работы.
    """

    def add(self, payment: Payment) -> None: ...
    def update(self, payment: Payment) -> None: ...
    def get_by_id(self, payment_id: EntityId) -> Payment | None: ...
    def get_for_update(self, payment_id: EntityId) -> Payment | None: ...
    def get_by_gateway_invoice_id(
        self, invoice_id: str, for_update: bool = False
    ) -> Payment | None: ...
    def list_for_booking(self, booking_id: EntityId) -> List[Payment]: ...


class IPaymentGateway(Protocol):
    """Интерфейс внешнего платежного шлюза."""

    def create_invoice(
        self,
        external_id: str,
        amount: Decimal,
        payer_email: Optional[str],
        description: str,
        customer_name: str,
        customer_phone: Optional[str] = None,
        success_redirect_url: Optional[str] = None,
        failure_redirect_url: Optional[str] = None,
    ) -> GatewayInvoice: ...
