"""
Интерфейсы (порты) для контекста каталога.
"""

from __future__ import annotations

from datetime import date
from typing import List, Optional, Protocol, Set

from ..shared_kernel import EntityId, RoomStatus
from .domain import AvailabilityBlock, Property, Room, RoomType


class IPropertyRepository(Protocol):
    """Интерфейс репозитория зданий."""

    def add(self, prop: Property) -> None: ...
    def get_by_id(self, property_id: EntityId) -> Property | None: ...
    def list_all(self) -> List[Property]: ...


class IRoomTypeRepository(Protocol):
    """Интерфейс репозитория типов номеров."""

    def add(self, room_type: RoomType) -> None: ...
    def get_by_id(self, room_type_id: EntityId) -> RoomType | None: ...


class IRoomRepository(Protocol):
    """Интерфейс репозитория номеров."""

    def add(self, room: Room) -> None: ...
    def get_by_id(self, room_id: EntityId) -> Room | None: ...
    def update(self, room: Room) -> None: ...
    def list_active(
        self,
        property_id: Optional[EntityId] = None,
        room_type_id: Optional[EntityId] = None,
        status: Optional[RoomStatus] = None,
    ) -> List[Room]: ...


class IAvailabilityBlockRepository(Protocol):
    """Интерфейс репозитория блокировок номеров."""

    def add(self, block: AvailabilityBlock) -> None: ...
    def list_for_room(self, room_id: EntityId) -> List[AvailabilityBlock]: ...
    def blocked_room_ids(self, check_in: date, check_out: date) -> Set[EntityId]: ...
