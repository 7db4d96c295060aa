"""
Корень композиции: создает и связывает компоненты приложения.
"""

from datetime import timedelta
from decimal import Decimal
from typing import Optional

from .availability.application import AvailabilityGuard
from .booking.application import (
    BookingQueryService,
    BookingStatusService,
    ReservationOrchestrator,
)
from .booking.infrastructure import InMemoryUnitOfWork
from .booking.interfaces import IRentalUnitOfWork
from .catalog.domain import Property, Room, RoomType
from .config import Settings
from .notifications.application import NotificationService
from .notifications.infrastructure import (
    HttpEmailSender,
    InMemoryNotifier,
    LoggingEmailSender,
)
from .notifications.interfaces import IEmailSender, INotifier
from .payments.application import PaymentReconciler
from .payments.infrastructure import DummyPaymentGateway, XenditGateway
from .payments.interfaces import IPaymentGateway
from .pricing.application import RateAdministrationService
from .pricing.domain import Rate
from .shared_kernel import StayType, get_logger, setup_logging


class Container:
    """Набор настроенных сервисов приложения."""

    def __init__(
        self,
        settings: Settings,
        uow: IRentalUnitOfWork,
        gateway: IPaymentGateway,
        notifier: INotifier,
        email_sender: IEmailSender,
    ):
        logger = get_logger("rental_platform")
        self.settings = settings
        self.uow = uow
        self.gateway = gateway
        self.notifier = notifier
        self.notifications = NotificationService(
            notifier,
            email_sender,
            app_name=settings.app_name,
            app_url=settings.app_url,
            admin_email=settings.admin_email,
            currency=settings.currency,
            logger=get_logger("rental_platform.notifications"),
        )
        self.availability = AvailabilityGuard(uow, get_logger("rental_platform.availability"))
        self.reconciler = PaymentReconciler(
            uow,
            webhook_token=settings.xendit_webhook_token,
            notifications=self.notifications,
            logger=get_logger("rental_platform.payments"),
        )
        self.reservations = ReservationOrchestrator(
            uow,
            gateway,
            self.notifications,
            reconciler=self.reconciler,
            app_name=settings.app_name,
            app_url=settings.app_url,
            logger=get_logger("rental_platform.booking"),
        )
        self.bookings = BookingQueryService(
            uow, pending_timeout=timedelta(hours=settings.pending_timeout_hours)
        )
        self.statuses = BookingStatusService(uow, self.notifications, logger)
        self.rate_admin = RateAdministrationService(uow, get_logger("rental_platform.pricing"))


def build_gateway(settings: Settings) -> IPaymentGateway:
    if settings.xendit_secret_key:
        return XenditGateway(
            settings.xendit_secret_key,
            base_url=settings.xendit_base_url,
            currency=settings.currency,
            invoice_duration=settings.invoice_duration_seconds,
        )
    get_logger(__name__).warning("XENDIT_SECRET_KEY not set, using dummy payment gateway")
    return DummyPaymentGateway()


def build_email_sender(settings: Settings) -> IEmailSender:
    if settings.email_api_key:
        return HttpEmailSender(settings.email_api_url, settings.email_api_key, settings.sender)
    return LoggingEmailSender()


def build_uow(settings: Settings) -> IRentalUnitOfWork:
    if settings.database_url:
        from .persistence import SqlUnitOfWork

        uow = SqlUnitOfWork(settings.database_url)
        uow.create_schema()
        return uow
    return InMemoryUnitOfWork()


def bootstrap_app(
    settings: Optional[Settings] = None,
    uow: Optional[IRentalUnitOfWork] = None,
    gateway: Optional[IPaymentGateway] = None,
    notifier: Optional[INotifier] = None,
    email_sender: Optional[IEmailSender] = None,
) -> Container:
    """Создает и настраивает все компоненты приложения."""
    settings = settings or Settings.from_env()
    setup_logging(settings.log_level)

    return Container(
        settings=settings,
        uow=uow or build_uow(settings),
        gateway=gateway or build_gateway(settings),
        notifier=notifier or InMemoryNotifier(),
        email_sender=email_sender or build_email_sender(settings),
    )


def seed_sample_data(uow: IRentalUnitOfWork) -> Property:
    """Заполняет каталог демонстрационными данными."""
    with uow:
        prop = Property(name="Sada Residence Kemang", slug="kemang", city="Jakarta", total_rooms=3)
        uow.properties.add(prop)

        standard = RoomType(
            name="Standard", slug="standard", max_guests=2, amenities=["AC", "Wi-Fi"]
        )
        uow.room_types.add(standard)

        for number in ("101", "102", "201"):
            uow.rooms.add(
                Room(
                    property_id=prop.id,
                    room_type_id=standard.id,
                    room_number=number,
                    floor=int(number[0]),
                )
            )

        for stay_type, price, deposit, min_stay in (
            (StayType.DAILY, Decimal("350000"), Decimal("100"), 1),
            (StayType.WEEKLY, Decimal("2000000"), Decimal("50"), 7),
            (StayType.MONTHLY, Decimal("5500000"), Decimal("30"), 28),
        ):
            uow.rates.upsert(
                Rate(
                    room_type_id=standard.id,
                    stay_type=stay_type,
                    price=price,
                    min_stay=min_stay,
                    deposit_percentage=deposit,
                    tax_percentage=Decimal("11"),
                    service_fee=Decimal("25000"),
                )
            )
    return prop
