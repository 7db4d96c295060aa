"""
Инфраструктурный слой контекста бронирования.

Содержит реализации репозиториев в памяти и единицу работы,
объединяющую репозитории всех контекстов.
"""

import threading
from datetime import date, datetime
from typing import Dict, List, Optional, Set, Tuple

from ..catalog import interfaces as catalog_ports
from ..catalog.infrastructure import (
    InMemoryAvailabilityBlockRepository,
    InMemoryPropertyRepository,
    InMemoryRoomRepository,
    InMemoryRoomTypeRepository,
)
from ..payments.infrastructure import InMemoryPaymentRepository
from ..pricing.infrastructure import (
    InMemoryRateRepository,
    InMemoryRoomRateOverrideRepository,
)
from ..shared_kernel import (
    BookingStatus,
    EntityId,
    ILogger,
    PaymentMethodType,
    PaymentStatus,
    get_logger,
)
from . import interfaces as ports
from .domain import Booking, Guest


class InMemoryGuestRepository(ports.IGuestRepository):
    """Реализация репозитория гостей в памяти."""

    def __init__(self) -> None:
        self._guests: Dict[EntityId, Guest] = {}
        self._email_index: Dict[str, EntityId] = {}

    def add(self, guest: Guest) -> None:
        if guest.id in self._guests:
            raise ValueError(f"Guest with id {guest.id} already exists")
        if guest.email and guest.email.lower() in self._email_index:
            raise ValueError(f"Guest with email {guest.email} already exists")

        self._guests[guest.id] = guest.model_copy(deep=True)
        if guest.email:
            self._email_index[guest.email.lower()] = guest.id

    def update(self, guest: Guest) -> None:
        if guest.id not in self._guests:
            raise KeyError(f"Guest with id {guest.id} not found")
        self._guests[guest.id] = guest.model_copy(deep=True)

    def get_by_id(self, guest_id: EntityId) -> Optional[Guest]:
        guest = self._guests.get(guest_id)
        return guest.model_copy(deep=True) if guest else None

    def find_by_email(self, email: str) -> Optional[Guest]:
        guest_id = self._email_index.get(email.lower())
        return self.get_by_id(guest_id) if guest_id else None


class InMemoryBookingRepository(ports.IBookingRepository):
    """Реализация репозитория бронирований в памяти.

    Проверка доступности и вставка выполняются под общей блокировкой,
    поэтому два конкурентных потока не могут занять один период.
    """

    def __init__(
        self,
        blocks: catalog_ports.IAvailabilityBlockRepository,
        guests: Optional[ports.IGuestRepository] = None,
        lock: Optional[threading.RLock] = None,
    ):
        self._bookings: Dict[EntityId, Booking] = {}
        self._blocks = blocks
        self._guests = guests
        self._lock = lock or threading.RLock()

    def get_by_id(self, booking_id: EntityId) -> Optional[Booking]:
        booking = self._bookings.get(booking_id)
        return booking.model_copy(deep=True) if booking else None

    def get_for_update(self, booking_id: EntityId) -> Optional[Booking]:
        # Единица работы в памяти уже держит общую блокировку
        return self.get_by_id(booking_id)

    def get_by_code(self, booking_code: str) -> Optional[Booking]:
        for booking in self._bookings.values():
            if booking.booking_code == booking_code:
                return booking.model_copy(deep=True)
        return None

    def update(self, booking: Booking) -> None:
        if booking.id not in self._bookings:
            raise KeyError(f"Booking with id {booking.id} not found")
        self._bookings[booking.id] = booking.model_copy(deep=True)

    def _matches_search(self, booking: Booking, search: str) -> bool:
        needle = search.lower()
        if needle in booking.booking_code.lower():
            return True
        if self._guests is not None:
            guest = self._guests.get_by_id(booking.guest_id)
            return guest is not None and needle in guest.full_name.lower()
        return False

    def list(
        self,
        property_id: Optional[EntityId] = None,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]:
        matched = [
            booking for booking in self._bookings.values()
            if (property_id is None or booking.property_id == property_id)
            and (status is None or booking.status == status)
            and (payment_status is None or booking.payment_status == payment_status)
            and (not search or self._matches_search(booking, search))
        ]
        matched.sort(key=lambda b: b.created_at, reverse=True)
        page = matched[offset:offset + limit]
        return [booking.model_copy(deep=True) for booking in page], len(matched)

    def list_pending_created_before(self, cutoff: datetime) -> List[Booking]:
        return [
            booking.model_copy(deep=True) for booking in self._bookings.values()
            if booking.status == BookingStatus.PENDING
            and booking.payment_status == PaymentStatus.UNPAID
            and booking.payment_method_type != PaymentMethodType.PAY_AT_PROPERTY
            and booking.created_at < cutoff
        ]

    def _overlapping(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> List[Booking]:
        return [
            booking for booking in self._bookings.values()
            if booking.room_id == room_id
            and booking.id != exclude_booking_id
            and booking.holds_room
            and booking.period.overlaps(check_in, check_out)
        ]

    def room_is_free(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> bool:
        with self._lock:
            if self._overlapping(room_id, check_in, check_out, exclude_booking_id):
                return False
            return room_id not in self._blocks.blocked_room_ids(check_in, check_out)

    def add_if_room_free(self, booking: Booking) -> bool:
        with self._lock:
            if booking.id in self._bookings:
                raise ValueError(f"Booking with id {booking.id} already exists")
            if not self.room_is_free(booking.room_id, booking.check_in, booking.check_out):
                return False
            self._bookings[booking.id] = booking.model_copy(deep=True)
            return True

    def conflicting_room_ids(self, check_in: date, check_out: date) -> Set[EntityId]:
        with self._lock:
            return {
                booking.room_id for booking in self._bookings.values()
                if booking.holds_room and booking.period.overlaps(check_in, check_out)
            }


class InMemoryUnitOfWork(ports.IRentalUnitOfWork):
    """Единица работы в памяти.

    Вход в контекст захватывает общую реентерабельную блокировку,
    вложенные входы не фиксируют изменения до выхода из внешнего.
    """

    def __init__(self, logger: Optional[ILogger] = None):
        self._lock = threading.RLock()
        self._local = threading.local()
        self._logger = logger or get_logger(__name__)

        self._properties = InMemoryPropertyRepository()
        self._room_types = InMemoryRoomTypeRepository()
        self._rooms = InMemoryRoomRepository()
        self._blocks = InMemoryAvailabilityBlockRepository()
        self._rates = InMemoryRateRepository()
        self._overrides = InMemoryRoomRateOverrideRepository()
        self._guests = InMemoryGuestRepository()
        self._bookings = InMemoryBookingRepository(self._blocks, self._guests, self._lock)
        self._payments = InMemoryPaymentRepository()

    @property
    def properties(self) -> InMemoryPropertyRepository:
        return self._properties

    @property
    def room_types(self) -> InMemoryRoomTypeRepository:
        return self._room_types

    @property
    def rooms(self) -> InMemoryRoomRepository:
        return self._rooms

    @property
    def blocks(self) -> InMemoryAvailabilityBlockRepository:
        return self._blocks

    @property
    def rates(self) -> InMemoryRateRepository:
        return self._rates

    @property
    def overrides(self) -> InMemoryRoomRateOverrideRepository:
        return self._overrides

    @property
    def guests(self) -> InMemoryGuestRepository:
        return self._guests

    @property
    def bookings(self) -> InMemoryBookingRepository:
        return self._bookings

    @property
    def payments(self) -> InMemoryPaymentRepository:
        return self._payments

    @property
    def _depth(self) -> int:
        return getattr(self._local, "depth", 0)

    def commit(self) -> None:
        """Фиксирует все изменения."""
        # Репозитории в памяти пишут сразу, фиксировать нечего
        self._logger.debug("InMemoryUnitOfWork committed")

    def rollback(self) -> None:
        """Откатывает все изменения."""
        self._logger.warning("InMemoryUnitOfWork rolled back")

    def __enter__(self) -> "InMemoryUnitOfWork":
        self._lock.acquire()
        self._local.depth = self._depth + 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        try:
            self._local.depth = self._depth - 1
            if self._depth == 0:
                if exc_type is None:
                    self.commit()
                else:
                    self.rollback()
        finally:
            self._lock.release()
        return False  # Пробрасываем исключение дальше, если оно было
