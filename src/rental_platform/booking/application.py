"""
Прикладной слой контекста бронирования.

Содержит сервисы приложения, которые координируют
взаимодействие между внешними интерфейсами и доменной моделью:
создание бронирований (онлайн и на ресепшене), запросы
и смену статусов.
"""

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from typing import Any, List, Mapping, Optional, Tuple, Union

from pydantic import BaseModel, Field, model_validator

from ..availability.application import AvailabilityGuard
from ..catalog.application import load_room_details
from ..catalog.domain import RoomDetails
from ..notifications.application import NotificationService
from ..payments.application import PaymentReconciler, RecordPaymentCommand
from ..payments.domain import OnSiteMethod, Payment, PaymentMethod
from ..payments.interfaces import IPaymentGateway
from ..pricing.application import RateResolver
from ..pricing.domain import PriceBreakdown, PricingEngine
from ..shared_kernel import (
    BookingStatus,
    BusinessRuleValidationException,
    DateRange,
    EntityId,
    ILogger,
    MinimumStayError,
    NoRateConfiguredError,
    NotFoundError,
    OverpaymentError,
    PaymentMethodType,
    PaymentStatus,
    RoomUnavailableError,
    StayType,
    get_logger,
    now,
    validate_input,
)
from . import interfaces as ports
from .domain import Booking, Guest

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
PHONE_PATTERN = r"^[+\d\s()-]+$"

PENDING_PAYMENT_TIMEOUT = timedelta(hours=24)

# DTO (Data Transfer Objects) для входящих данных


class GuestContact(BaseModel):
    """Контактные данные гостя."""

    full_name: str = Field(..., min_length=2, max_length=100)
    email: str = Field(..., max_length=254, pattern=EMAIL_PATTERN)
    phone: str = Field(..., min_length=8, max_length=20, pattern=PHONE_PATTERN)
    id_type: Optional[str] = Field(None, max_length=50)
    id_number: Optional[str] = Field(None, max_length=50)


class WalkInGuestContact(GuestContact):
    """Контакт гостя на ресепшене: email необязателен."""

    email: Optional[str] = Field(None, max_length=254, pattern=EMAIL_PATTERN)


class _StayRequest(BaseModel):
    room_id: EntityId
    check_in: date
    check_out: date
    stay_type: Optional[StayType] = None
    num_guests: int = Field(1, ge=1, le=10)
    special_requests: Optional[str] = Field(None, max_length=500)

    @model_validator(mode="after")
    def check_out_after_check_in(self):
        if self.check_out <= self.check_in:
            raise ValueError("Дата выезда должна быть позже даты заезда")
        return self

    @property
    def period(self) -> DateRange:
        return DateRange(check_in=self.check_in, check_out=self.check_out)


class CreateReservationRequest(_StayRequest):
    """Запрос на создание бронирования гостем."""

    guest: GuestContact
    payment_method_type: PaymentMethodType = PaymentMethodType.ONLINE


class CreateWalkInRequest(_StayRequest):
    """Запрос на создание бронирования на ресепшене."""

    guest: WalkInGuestContact
    payment_method_type: PaymentMethodType = PaymentMethodType.PAY_AT_PROPERTY
    is_paid: bool = False
    paid_amount: Optional[Decimal] = Field(None, gt=0)
    paid_method: OnSiteMethod = OnSiteMethod.CASH


class UpdateBookingStatusCommand(BaseModel):
    """Команда смены статуса бронирования."""

    booking_id: EntityId
    status: BookingStatus
    admin_notes: Optional[str] = Field(None, max_length=500)
    cancellation_reason: Optional[str] = Field(None, max_length=500)
    id_type: Optional[str] = Field(None, max_length=50)
    id_number: Optional[str] = Field(None, max_length=50)


# DTO для исходящих данных


class BookingDTO(BaseModel):
    """DTO для представления бронирования."""

    id: EntityId
    booking_code: str
    guest_id: EntityId
    room_id: EntityId
    property_id: EntityId
    check_in: date
    check_out: date
    stay_type: StayType
    num_guests: int
    status: BookingStatus
    base_price: Decimal
    tax_amount: Decimal
    service_fee: Decimal
    discount_amount: Decimal
    total_amount: Decimal
    deposit_amount: Decimal
    paid_amount: Decimal
    payment_status: PaymentStatus
    payment_method_type: PaymentMethodType
    special_requests: Optional[str]
    admin_notes: Optional[str]
    created_at: str
    updated_at: str

    @classmethod
    def from_domain(cls, booking: Booking) -> "BookingDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=booking.id,
            booking_code=booking.booking_code,
            guest_id=booking.guest_id,
            room_id=booking.room_id,
            property_id=booking.property_id,
            check_in=booking.check_in,
            check_out=booking.check_out,
            stay_type=booking.stay_type,
            num_guests=booking.num_guests,
            status=booking.status,
            base_price=booking.base_price,
            tax_amount=booking.tax_amount,
            service_fee=booking.service_fee,
            discount_amount=booking.discount_amount,
            total_amount=booking.total_amount,
            deposit_amount=booking.deposit_amount,
            paid_amount=booking.paid_amount,
            payment_status=booking.payment_status,
            payment_method_type=booking.payment_method_type,
            special_requests=booking.special_requests,
            admin_notes=booking.admin_notes,
            created_at=booking.created_at.isoformat(),
            updated_at=booking.updated_at.isoformat(),
        )


class ReservationResult(BaseModel):
    """Результат создания бронирования."""

    booking: BookingDTO
    pricing: PriceBreakdown
    payment_url: Optional[str] = None


class BookingPage(BaseModel):
    """Страница списка бронирований."""

    items: List[BookingDTO]
    total: int
    page: int
    per_page: int


# Сервисы приложения


class ReservationOrchestrator:
    """Сервис создания бронирований.

    Шаги до удержания номера выполняются в одной единице работы;
    платеж и уведомления идут после и не отменяют удержание.
    """

    def __init__(
        self,
        uow: ports.IRentalUnitOfWork,
        gateway: IPaymentGateway,
        notifications: NotificationService,
        reconciler: Optional[PaymentReconciler] = None,
        app_name: str = "Sada Residence",
        app_url: str = "http://localhost:3000",
        logger: Optional[ILogger] = None,
    ):
        self._uow = uow
        self._gateway = gateway
        self._notifications = notifications
        self._logger = logger or get_logger(__name__)
        self._availability = AvailabilityGuard(uow, self._logger)
        self._reconciler = reconciler or PaymentReconciler(
            uow, notifications=notifications, logger=self._logger
        )
        self._app_name = app_name
        self._app_url = app_url.rstrip("/")

    def create_reservation(
        self, request: Union[CreateReservationRequest, Mapping[str, Any]]
    ) -> ReservationResult:
        """Создает бронирование из публичной формы.

        Raises:
            InvalidInputError: некорректные входные данные
            NotFoundError: номер не найден
            RoomUnavailableError: номер занят на выбранные даты
            NoRateConfiguredError: для номера не настроен тариф
        """
        request = validate_input(CreateReservationRequest, request)
        booking, guest, details, pricing = self._place(request, request.payment_method_type)

        payment_url = None
        if request.payment_method_type == PaymentMethodType.PAY_AT_PROPERTY:
            booking = self._confirm_pay_at_property(booking)
        else:
            payment_url = self._start_online_payment(
                booking,
                guest,
                deposit_only=request.payment_method_type == PaymentMethodType.DP_ONLINE,
            )

        self._notifications.booking_created(booking, guest, details)
        return ReservationResult(
            booking=BookingDTO.from_domain(booking),
            pricing=pricing,
            payment_url=payment_url,
        )

    def create_walk_in(
        self, request: Union[CreateWalkInRequest, Mapping[str, Any]]
    ) -> ReservationResult:
        """Создает бронирование на ресепшене; бронирование сразу подтверждается."""
        request = validate_input(CreateWalkInRequest, request)
        prepaid = request.paid_amount
        booking, guest, details, pricing = self._place(
            request, request.payment_method_type, prepaid=prepaid
        )
        if request.is_paid and prepaid is None:
            prepaid = pricing.total

        with self._uow:
            if prepaid is None:
                self._uow.payments.add(self._placeholder_payment(booking))
            booking.confirm()
            self._uow.bookings.update(booking)

        if prepaid is not None:
            booking = self._reconciler.record_payment(
                RecordPaymentCommand(
                    booking_id=booking.id,
                    amount=prepaid,
                    method=request.paid_method,
                    notes="Walk-in",
                )
            )

        self._logger.info(
            "Walk-in booking created",
            booking_id=booking.id,
            booking_code=booking.booking_code,
            paid_amount=booking.paid_amount,
        )
        self._notifications.booking_created(booking, guest, details)
        return ReservationResult(booking=BookingDTO.from_domain(booking), pricing=pricing)

    def _place(
        self,
        request: _StayRequest,
        payment_method_type: PaymentMethodType,
        prepaid: Optional[Decimal] = None,
    ) -> Tuple[Booking, Guest, RoomDetails, PriceBreakdown]:
        """Проверяет номер, считает цену и атомарно удерживает номер."""
        period = request.period

        with self._uow:
            details = load_room_details(
                self._uow.rooms, self._uow.room_types, self._uow.properties, request.room_id
            )
            if details is None:
                raise NotFoundError("Номер", request.room_id)
            if request.num_guests > details.room_type.max_guests:
                raise BusinessRuleValidationException(
                    f"Номер вмещает не более {details.room_type.max_guests} гостей"
                )

            # Предварительная проверка; окончательная выполняется при вставке
            if not self._availability.is_available(
                request.room_id, period.check_in, period.check_out
            ):
                raise RoomUnavailableError(request.room_id)

            stay_type = request.stay_type or PricingEngine.suggest_stay_type(period.nights)
            rate = RateResolver.default(self._uow.rates, self._uow.overrides, self._logger).resolve(
                details.room_type.id,
                stay_type,
                room_id=details.room.id,
                property_id=details.property.id,
            )
            if rate is None:
                raise NoRateConfiguredError(details.room_type.id, stay_type)
            if period.nights < rate.min_stay:
                raise MinimumStayError(stay_type, rate.min_stay)

            pricing = PricingEngine.calculate_price(
                rate, period.check_in, period.check_out, stay_type
            )
            if payment_method_type == PaymentMethodType.DP_ONLINE and pricing.deposit <= 0:
                raise BusinessRuleValidationException(
                    "Для тарифа не настроен депозит, оплата DP недоступна"
                )
            if prepaid is not None and prepaid > pricing.total:
                raise OverpaymentError(prepaid, pricing.total)

            guest = self._upsert_guest(request.guest)
            booking = Booking.create(
                room_id=details.room.id,
                property_id=details.property.id,
                guest_id=guest.id,
                period=period,
                pricing=pricing,
                payment_method_type=payment_method_type,
                num_guests=request.num_guests,
                special_requests=request.special_requests,
            )
            self._availability.hold(booking)

        self._logger.info(
            "Booking created",
            booking_id=booking.id,
            booking_code=booking.booking_code,
            room_id=booking.room_id,
            stay_type=stay_type.value,
            total=pricing.total,
            payment_method_type=payment_method_type.value,
        )
        return booking, guest, details, pricing

    def _upsert_guest(self, contact: GuestContact) -> Guest:
        """Находит гостя по email или создает нового."""
        if contact.email:
            existing = self._uow.guests.find_by_email(contact.email)
            if existing is not None:
                existing.update_contact(contact.full_name, contact.phone, contact.id_number)
                if contact.id_type:
                    existing.record_identity(id_type=contact.id_type)
                self._uow.guests.update(existing)
                return existing

        guest = Guest(
            full_name=contact.full_name,
            email=contact.email,
            phone=contact.phone,
            id_type=contact.id_type,
            id_number=contact.id_number,
        )
        self._uow.guests.add(guest)
        return guest

    @staticmethod
    def _placeholder_payment(booking: Booking) -> Payment:
        # Метод уточняется, когда ресепшен записывает фактическую оплату
        return Payment(
            booking_id=booking.id,
            amount=booking.total_amount,
            method=PaymentMethod.CASH,
        )

    def _confirm_pay_at_property(self, booking: Booking) -> Booking:
        with self._uow:
            self._uow.payments.add(self._placeholder_payment(booking))
            booking.confirm()
            self._uow.bookings.update(booking)
        return booking

    def _start_online_payment(
        self, booking: Booking, guest: Guest, deposit_only: bool
    ) -> Optional[str]:
        """Создает счет в шлюзе; при ошибке бронирование остается pending без ссылки."""
        if deposit_only:
            amount = booking.deposit_amount
            external_id = f"booking-{booking.id}-dp"
            description = (
                f"DP booking {booking.booking_code} - {self._app_name} (sisa bayar di lokasi)"
            )
        else:
            amount = booking.total_amount
            external_id = f"booking-{booking.id}"
            description = f"Pembayaran booking {booking.booking_code} - {self._app_name}"

        try:
            invoice = self._gateway.create_invoice(
                external_id=external_id,
                amount=amount,
                payer_email=guest.email,
                description=description,
                customer_name=guest.full_name,
                customer_phone=guest.phone,
                success_redirect_url=f"{self._app_url}/booking/{booking.id}/confirmation",
                failure_redirect_url=f"{self._app_url}/booking/{booking.id}",
            )
        except Exception as e:
            self._logger.error(
                "Payment invoice creation failed",
                booking_id=booking.id,
                external_id=external_id,
                error=str(e),
            )
            return None

        with self._uow:
            self._uow.payments.add(
                Payment(
                    booking_id=booking.id,
                    amount=amount,
                    method=PaymentMethod.BANK_TRANSFER,
                    external_id=external_id,
                    gateway_invoice_id=invoice.invoice_id,
                    gateway_invoice_url=invoice.invoice_url,
                )
            )
        return invoice.invoice_url


class BookingQueryService:
    """Запросы к бронированиям."""

    def __init__(
        self,
        uow: ports.IRentalUnitOfWork,
        pending_timeout: timedelta = PENDING_PAYMENT_TIMEOUT,
    ):
        self._uow = uow
        self._pending_timeout = pending_timeout

    def get_booking(self, booking_id: EntityId) -> Booking:
        with self._uow:
            booking = self._uow.bookings.get_by_id(booking_id)
        if booking is None:
            raise NotFoundError("Бронирование", booking_id)
        return booking

    def get_by_code(self, booking_code: str) -> Booking:
        with self._uow:
            booking = self._uow.bookings.get_by_code(booking_code)
        if booking is None:
            raise NotFoundError("Бронирование", booking_code)
        return booking

    def list_bookings(
        self,
        property_id: Optional[EntityId] = None,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        search: Optional[str] = None,
        page: int = 1,
        per_page: int = 20,
    ) -> BookingPage:
        """Возвращает страницу бронирований с фильтрацией."""
        page = max(1, page)
        per_page = min(max(1, per_page), 100)
        with self._uow:
            bookings, total = self._uow.bookings.list(
                property_id=property_id,
                status=status,
                payment_status=payment_status,
                search=search,
                offset=(page - 1) * per_page,
                limit=per_page,
            )
        return BookingPage(
            items=[BookingDTO.from_domain(b) for b in bookings],
            total=total,
            page=page,
            per_page=per_page,
        )

    def stale_pending(
        self,
        at: Optional[datetime] = None,
        timeout: Optional[timedelta] = None,
    ) -> List[Booking]:
        """Неоплаченные pending-бронирования старше таймаута (кандидаты на отмену).

        Время без часового пояса считается UTC.
        """
        if at is not None and at.tzinfo is None:
            at = at.replace(tzinfo=timezone.utc)
        cutoff = (at or now()) - (timeout or self._pending_timeout)
        with self._uow:
            return self._uow.bookings.list_pending_created_before(cutoff)


class BookingStatusService:
    """Смена статусов бронирования на ресепшене."""

    def __init__(
        self,
        uow: ports.IRentalUnitOfWork,
        notifications: Optional[NotificationService] = None,
        logger: Optional[ILogger] = None,
    ):
        self._uow = uow
        self._notifications = notifications
        self._logger = logger or get_logger(__name__)

    def update_status(
        self, command: Union[UpdateBookingStatusCommand, Mapping[str, Any]]
    ) -> Booking:
        """Переводит бронирование в новый статус по машине состояний.

        Заселение сохраняет данные документа гостя, выселение
        возвращает номеру статус available.
        """
        command = validate_input(UpdateBookingStatusCommand, command)

        with self._uow:
            booking = self._uow.bookings.get_for_update(command.booking_id)
            if booking is None:
                raise NotFoundError("Бронирование", command.booking_id)
            previous = booking.status

            booking.transition_to(command.status, command.cancellation_reason)
            if command.admin_notes is not None:
                booking.admin_notes = command.admin_notes
            self._uow.bookings.update(booking)

            guest = self._uow.guests.get_by_id(booking.guest_id)
            if command.status == BookingStatus.CHECKED_IN and guest is not None:
                if command.id_type or command.id_number:
                    guest.record_identity(command.id_type, command.id_number)
                    self._uow.guests.update(guest)

            room = self._uow.rooms.get_by_id(booking.room_id)
            if command.status == BookingStatus.CHECKED_OUT and room is not None:
                room.mark_available()
                self._uow.rooms.update(room)

        self._logger.info(
            "Booking status updated",
            booking_id=booking.id,
            previous=previous.value,
            status=booking.status.value,
        )

        if self._notifications is not None and room is not None:
            if booking.status == BookingStatus.CHECKED_IN:
                self._notifications.checked_in(booking, guest, room.room_number)
            elif booking.status == BookingStatus.CHECKED_OUT:
                self._notifications.checked_out(booking, guest, room.room_number)
        return booking

    def check_in(
        self,
        booking_id: EntityId,
        id_type: Optional[str] = None,
        id_number: Optional[str] = None,
    ) -> Booking:
        return self.update_status(
            UpdateBookingStatusCommand(
                booking_id=booking_id,
                status=BookingStatus.CHECKED_IN,
                id_type=id_type,
                id_number=id_number,
            )
        )

    def check_out(self, booking_id: EntityId) -> Booking:
        return self.update_status(
            UpdateBookingStatusCommand(booking_id=booking_id, status=BookingStatus.CHECKED_OUT)
        )

    def cancel(self, booking_id: EntityId, reason: Optional[str] = None) -> Booking:
        return self.update_status(
            UpdateBookingStatusCommand(
                booking_id=booking_id,
                status=BookingStatus.CANCELLED,
                cancellation_reason=reason,
            )
        )
