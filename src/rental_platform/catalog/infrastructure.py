"""
Инфраструктурный слой каталога: реализации репозиториев в памяти.
"""

from datetime import date
from typing import Dict, List, Optional, Set

from ..shared_kernel import EntityId, RoomStatus
from . import interfaces as ports
from .domain import AvailabilityBlock, Property, Room, RoomType


class InMemoryPropertyRepository(ports.IPropertyRepository):
    """Реализация репозитория зданий в памяти."""

    def __init__(self) -> None:
        self._properties: Dict[EntityId, Property] = {}

    def add(self, prop: Property) -> None:
        if prop.id in self._properties:
            raise ValueError(f"Property with id {prop.id} already exists")
        self._properties[prop.id] = prop.model_copy(deep=True)

    def get_by_id(self, property_id: EntityId) -> Optional[Property]:
        prop = self._properties.get(property_id)
        return prop.model_copy(deep=True) if prop else None

    def list_all(self) -> List[Property]:
        return [p.model_copy(deep=True) for p in self._properties.values()]


class InMemoryRoomTypeRepository(ports.IRoomTypeRepository):
    """Реализация репозитория типов номеров в памяти."""

    def __init__(self) -> None:
        self._room_types: Dict[EntityId, RoomType] = {}

    def add(self, room_type: RoomType) -> None:
        if room_type.id in self._room_types:
            raise ValueError(f"Room type with id {room_type.id} already exists")
        self._room_types[room_type.id] = room_type.model_copy(deep=True)

    def get_by_id(self, room_type_id: EntityId) -> Optional[RoomType]:
        room_type = self._room_types.get(room_type_id)
        return room_type.model_copy(deep=True) if room_type else None


class InMemoryRoomRepository(ports.IRoomRepository):
    """Реализация репозитория номеров в памяти."""

    def __init__(self) -> None:
        self._rooms: Dict[EntityId, Room] = {}

    def add(self, room: Room) -> None:
        if room.id in self._rooms:
            raise ValueError(f"Room with id {room.id} already exists")
        self._rooms[room.id] = room.model_copy(deep=True)

    def get_by_id(self, room_id: EntityId) -> Optional[Room]:
        room = self._rooms.get(room_id)
        return room.model_copy(deep=True) if room else None

    def update(self, room: Room) -> None:
        if room.id not in self._rooms:
            raise KeyError(f"Room with id {room.id} not found")
        self._rooms[room.id] = room.model_copy(deep=True)

    def list_active(
        self,
        property_id: Optional[EntityId] = None,
        room_type_id: Optional[EntityId] = None,
        status: Optional[RoomStatus] = None,
    ) -> List[Room]:
        rooms = [
            room for room in self._rooms.values()
            if room.is_active
            and (property_id is None or room.property_id == property_id)
            and (room_type_id is None or room.room_type_id == room_type_id)
            and (status is None or room.status == status)
        ]
        rooms.sort(key=lambda r: r.room_number)
        return [room.model_copy(deep=True) for room in rooms]


class InMemoryAvailabilityBlockRepository(ports.IAvailabilityBlockRepository):
    """Реализация репозитория блокировок в памяти."""

    def __init__(self) -> None:
        self._blocks: Dict[EntityId, AvailabilityBlock] = {}

    def add(self, block: AvailabilityBlock) -> None:
        self._blocks[block.id] = block.model_copy(deep=True)

    def list_for_room(self, room_id: EntityId) -> List[AvailabilityBlock]:
        return [
            block.model_copy(deep=True) for block in self._blocks.values()
            if block.room_id == room_id
        ]

    def blocked_room_ids(self, check_in: date, check_out: date) -> Set[EntityId]:
        return {
            block.room_id for block in self._blocks.values()
            if block.start_date < check_out and block.end_date > check_in
        }
