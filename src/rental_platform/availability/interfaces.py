"""
Интерфейсы (порты) для контекста доступности.
"""

from __future__ import annotations

from datetime import date
from typing import TYPE_CHECKING, Any, Optional, Protocol, Set

from ..catalog import interfaces as catalog_ports
from ..shared_kernel import EntityId

if TYPE_CHECKING:
    from ..booking.domain import Booking


class IOccupancyLedger(Protocol):
    """Журнал занятости номеров.

    Реализация обязана выполнять room_is_free и add_if_room_free
    атомарно относительно других вставок для того же номера.
    """

    def room_is_free(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> bool: ...

    def add_if_room_free(self, booking: Booking) -> bool: ...

    def conflicting_room_ids(self, check_in: date, check_out: date) -> Set[EntityId]: ...


class IAvailabilityUnitOfWork(Protocol):
    """Минимальная единица работы, нужная для проверки доступности."""

    @property
    def properties(self) -> catalog_ports.IPropertyRepository: ...
    @property
    def room_types(self) -> catalog_ports.IRoomTypeRepository: ...
    @property
    def rooms(self) -> catalog_ports.IRoomRepository: ...
    @property
    def blocks(self) -> catalog_ports.IAvailabilityBlockRepository: ...
    @property
    def bookings(self) -> IOccupancyLedger: ...

    def __enter__(self) -> IAvailabilityUnitOfWork: ...
    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None: ...
