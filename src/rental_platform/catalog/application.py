"""
Прикладной слой каталога.
"""

from typing import Optional

from ..shared_kernel import EntityId, NotFoundError
from . import interfaces as ports
from .domain import RoomDetails


def load_room_details(
    rooms: ports.IRoomRepository,
    room_types: ports.IRoomTypeRepository,
    properties: ports.IPropertyRepository,
    room_id: EntityId,
) -> Optional[RoomDetails]:
    """Загружает номер вместе с типом и зданием; None для неизвестного номера."""
    room = rooms.get_by_id(room_id)
    if room is None or not room.is_active:
        return None

    room_type = room_types.get_by_id(room.room_type_id)
    if room_type is None:
        raise NotFoundError("Тип номера", room.room_type_id)

    prop = properties.get_by_id(room.property_id)
    if prop is None:
        raise NotFoundError("Здание", room.property_id)

    return RoomDetails(room=room, room_type=room_type, property=prop)
