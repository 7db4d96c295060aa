"""
Инфраструктурный слой контекста платежей.

Репозиторий платежей в памяти, клиент платежного шлюза Xendit
и заглушка шлюза для тестирования и локального запуска.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional
from uuid import uuid4

import requests
from requests.auth import HTTPBasicAuth

from ..shared_kernel import EntityId, ILogger, UpstreamServiceError, get_logger
from . import interfaces as ports
from .domain import GatewayInvoice, Payment

XENDIT_PAYMENT_METHODS = ["QRIS", "CREDIT_CARD", "BCA", "BNI", "BRI", "MANDIRI", "PERMATA"]


class InMemoryPaymentRepository(ports.IPaymentRepository):
    """Реализация репозитория платежей в памяти."""

    def __init__(self) -> None:
        self._payments: Dict[EntityId, Payment] = {}

    def add(self, payment: Payment) -> None:
        if payment.id in self._payments:
            raise ValueError(f"Payment with id {payment.id} already exists")
        self._payments[payment.id] = payment.model_copy(deep=True)

    def update(self, payment: Payment) -> None:
        if payment.id not in self._payments:
            raise KeyError(f"Payment with id {payment.id} not found")
        self._payments[payment.id] = payment.model_copy(deep=True)

    def get_by_id(self, payment_id: EntityId) -> Optional[Payment]:
        payment = self._payments.get(payment_id)
        return payment.model_copy(deep=True) if payment else None

    def get_for_update(self, payment_id: EntityId) -> Optional[Payment]:
        return self.get_by_id(payment_id)

    def get_by_gateway_invoice_id(
        self, invoice_id: str, for_update: bool = False
    ) -> Optional[Payment]:
        for payment in self._payments.values():
            if payment.gateway_invoice_id == invoice_id:
                return payment.model_copy(deep=True)
        return None

    def list_for_booking(self, booking_id: EntityId) -> List[Payment]:
        payments = [p for p in self._payments.values() if p.booking_id == booking_id]
        payments.sort(key=lambda p: p.created_at)
        return [p.model_copy(deep=True) for p in payments]


class XenditGateway(ports.IPaymentGateway):
    """Создание счетов через Xendit Invoice API (v2)."""

    def __init__(
        self,
        secret_key: str,
        base_url: str = "https://api.xendit.co",
        currency: str = "IDR",
        invoice_duration: int = 86400,
        timeout: float = 15.0,
        session: Optional[requests.Session] = None,
        logger: Optional[ILogger] = None,
    ):
        self._auth = HTTPBasicAuth(secret_key, "")
        self._base_url = base_url.rstrip("/")
        self._currency = currency
        self._invoice_duration = invoice_duration
        self._timeout = timeout
        self._session = session or requests.Session()
        self._logger = logger or get_logger(__name__)

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
    ) -> GatewayInvoice:
        payload: Dict[str, Any] = {
            "external_id": external_id,
            "amount": int(amount),
            "payer_email": payer_email,
            "description": description,
            "success_redirect_url": success_redirect_url,
            "failure_redirect_url": failure_redirect_url,
            "currency": self._currency,
            "customer": {
                "given_names": customer_name,
                "email": payer_email,
                "mobile_number": customer_phone,
            },
            "payment_methods": XENDIT_PAYMENT_METHODS,
            "invoice_duration": self._invoice_duration,
        }

        try:
            response = self._session.post(
                f"{self._base_url}/v2/invoices",
                json=payload,
                auth=self._auth,
                timeout=self._timeout,
            )
        except requests.RequestException as e:
            raise UpstreamServiceError(f"Xendit недоступен: {e}") from e

        if not response.ok:
            raise UpstreamServiceError(
                f"Xendit invoice creation failed: {response.status_code} {response.text}"
            )

        data = response.json()
        self._logger.info(
            "Xendit invoice created",
            invoice_id=data.get("id"),
            external_id=external_id,
            amount=amount,
        )
        expiry = data.get("expiry_date")
        return GatewayInvoice(
            invoice_id=data["id"],
            invoice_url=data["invoice_url"],
            external_id=data.get("external_id", external_id),
            amount=Decimal(str(data.get("amount", amount))),
            status=data.get("status", "PENDING"),
            expiry_date=datetime.fromisoformat(expiry.replace("Z", "+00:00")) if expiry else None,
        )


class DummyPaymentGateway(ports.IPaymentGateway):
    """Заглушка платежного шлюза для тестирования."""

    def __init__(self, base_url: str = "https://checkout.example.test", fail: bool = False):
        self.base_url = base_url
        self.fail = fail
        self.invoices: Dict[str, Dict[str, Any]] = {}

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
    ) -> GatewayInvoice:
        if self.fail:
            raise UpstreamServiceError("Платежный шлюз недоступен")

        invoice_id = f"inv-{uuid4().hex[:12]}"
        self.invoices[invoice_id] = {
            "external_id": external_id,
            "amount": amount,
            "payer_email": payer_email,
            "description": description,
            "customer_name": customer_name,
            "success_redirect_url": success_redirect_url,
            "failure_redirect_url": failure_redirect_url,
        }
        return GatewayInvoice(
            invoice_id=invoice_id,
            invoice_url=f"{self.base_url}/web/invoices/{invoice_id}",
            external_id=external_id,
            amount=amount,
        )
