"""
Интерфейсы (порты) для контекста бронирования.

Определяют контракты для взаимодействия с внешними системами
и инфраструктурой.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, List, Optional, Protocol, Set, Tuple

from ..catalog import interfaces as catalog_ports
from ..payments import interfaces as payment_ports
from ..pricing import interfaces as pricing_ports
from ..shared_kernel import BookingStatus, EntityId, PaymentStatus
from .domain import Booking, Guest


class IGuestRepository(Protocol):
    """Интерфейс репозитория гостей."""

    def add(self, guest: Guest) -> None: ...
    def update(self, guest: Guest) -> None: ...
    def get_by_id(self, guest_id: EntityId) -> Guest | None: ...
    def find_by_email(self, email: str) -> Guest | None: ...


class IBookingRepository(Protocol):
    """Интерфейс репозитория бронирований.

    Кроме обычных операций предоставляет атомарную проверку
    доступности со вставкой (см. IOccupancyLedger).
    """

    def get_by_id(self, booking_id: EntityId) -> Booking | None: ...
    def get_for_update(self, booking_id: EntityId) -> Booking | None: ...
    def get_by_code(self, booking_code: str) -> Booking | None: ...
    def update(self, booking: Booking) -> None: ...
    def list(
        self,
        property_id: Optional[EntityId] = None,
        status: Optional[BookingStatus] = None,
        payment_status: Optional[PaymentStatus] = None,
        search: Optional[str] = None,
        offset: int = 0,
        limit: int = 20,
    ) -> Tuple[List[Booking], int]: ...
    def list_pending_created_before(self, cutoff: datetime) -> List[Booking]: ...
    def room_is_free(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> bool: ...
    def add_if_room_free(self, booking: Booking) -> bool: ...
    def conflicting_room_ids(self, check_in: date, check_out: date) -> Set[EntityId]: ...


class IRentalUnitOfWork(Protocol):
    """Единица работы платформы: доступ ко всем репозиториям."""

    @property
    def properties(self) -> catalog_ports.IPropertyRepository: ...
    @property
    def room_types(self) -> catalog_ports.IRoomTypeRepository: ...
    @property
    def rooms(self) -> catalog_ports.IRoomRepository: ...
    @property
    def blocks(self) -> catalog_ports.IAvailabilityBlockRepository: ...
    @property
    def rates(self) -> pricing_ports.IRateRepository: ...
    @property
    def overrides(self) -> pricing_ports.IRoomRateOverrideRepository: ...
    @property
    def guests(self) -> IGuestRepository: ...
    @property
    def bookings(self) -> IBookingRepository: ...
    @property
    def payments(self) -> payment_ports.IPaymentRepository: ...

    def __enter__(self) -> IRentalUnitOfWork: ...
    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
