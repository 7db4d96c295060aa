"""
Прикладной слой контекста доступности.

AvailabilityGuard отвечает на два вопроса: свободен ли конкретный номер
на даты (с атомарным удержанием) и какие номера свободны в каталоге.
"""

from datetime import date
from typing import Dict, List, Optional, TYPE_CHECKING

from ..catalog.domain import Property, RoomType
from ..shared_kernel import (
    EntityId,
    ILogger,
    RoomStatus,
    RoomUnavailableError,
    get_logger,
)
from . import interfaces as ports
from .domain import (
    AvailabilitySearch,
    AvailabilitySummary,
    AvailableRoom,
    PropertyAvailability,
)

if TYPE_CHECKING:
    from ..booking.domain import Booking


class AvailabilityGuard:
    """Проверка и удержание доступности номеров."""

    def __init__(self, uow: ports.IAvailabilityUnitOfWork, logger: Optional[ILogger] = None):
        self._uow = uow
        self._logger = logger or get_logger(__name__)

    def is_available(
        self,
        room_id: EntityId,
        check_in: date,
        check_out: date,
        exclude_booking_id: Optional[EntityId] = None,
    ) -> bool:
        """Свободен ли номер на полуоткрытый период [check_in, check_out)."""
        with self._uow:
            return self._uow.bookings.room_is_free(
                room_id, check_in, check_out, exclude_booking_id
            )

    def hold(self, booking: "Booking") -> None:
        """Атомарно проверяет доступность и сохраняет бронирование.

        Raises:
            RoomUnavailableError: если период уже занят
        """
        with self._uow:
            if not self._uow.bookings.add_if_room_free(booking):
                self._logger.warning(
                    "Availability hold rejected",
                    room_id=booking.room_id,
                    check_in=booking.check_in,
                    check_out=booking.check_out,
                )
                raise RoomUnavailableError(booking.room_id)

        self._logger.info(
            "Availability held",
            booking_id=booking.id,
            room_id=booking.room_id,
            check_in=booking.check_in,
            check_out=booking.check_out,
        )

    def find_available(self, search: AvailabilitySearch) -> List[AvailableRoom]:
        """Массовый поиск: сначала исключаем занятые номера, затем выбираем."""
        with self._uow:
            excluded = self._uow.bookings.conflicting_room_ids(
                search.check_in, search.check_out
            )
            excluded |= self._uow.blocks.blocked_room_ids(search.check_in, search.check_out)

            rooms = self._uow.rooms.list_active(
                property_id=search.property_id,
                room_type_id=search.room_type_id,
                status=RoomStatus.AVAILABLE,
            )

            room_types: Dict[EntityId, Optional[RoomType]] = {}
            properties: Dict[EntityId, Optional[Property]] = {}
            result = []
            for room in rooms:
                if room.id in excluded:
                    continue
                if room.room_type_id not in room_types:
                    room_types[room.room_type_id] = self._uow.room_types.get_by_id(
                        room.room_type_id
                    )
                if room.property_id not in properties:
                    properties[room.property_id] = self._uow.properties.get_by_id(
                        room.property_id
                    )

                room_type = room_types[room.room_type_id]
                prop = properties[room.property_id]
                if room_type is None or prop is None or not prop.is_active:
                    continue
                if search.num_guests is not None and search.num_guests > room_type.max_guests:
                    continue
                result.append(AvailableRoom(room=room, room_type=room_type, property=prop))

        self._logger.debug(
            "Availability search",
            check_in=search.check_in,
            check_out=search.check_out,
            excluded=len(excluded),
            found=len(result),
        )
        return result

    def summary(self, search: AvailabilitySearch) -> AvailabilitySummary:
        """Количество свободных номеров по зданиям."""
        counts: Dict[EntityId, PropertyAvailability] = {}
        for available in self.find_available(search):
            prop = available.property
            entry = counts.get(prop.id)
            if entry is None:
                entry = counts[prop.id] = PropertyAvailability(
                    property_id=prop.id,
                    property_name=prop.name,
                    slug=prop.slug,
                    available=0,
                )
            entry.available += 1

        properties = sorted(counts.values(), key=lambda p: p.property_name)
        return AvailabilitySummary(
            total=sum(p.available for p in properties),
            properties=properties,
        )
