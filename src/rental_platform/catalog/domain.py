"""
Доменная модель каталога: здания, типы номеров, номера и блокировки.
"""

from datetime import date
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ..shared_kernel import DateRange, EntityId, RoomStatus, generate_id


class Property(BaseModel):
    """Здание (объект размещения)."""

    id: EntityId = Field(default_factory=generate_id)
    name: str
    slug: str
    city: str = ""
    total_rooms: int = Field(0, ge=0)
    is_active: bool = True


class RoomType(BaseModel):
    """Категория номера, общая для всех зданий."""

    id: EntityId = Field(default_factory=generate_id)
    name: str
    slug: str
    max_guests: int = Field(2, gt=0)
    bed_type: str = "double"
    amenities: List[str] = Field(default_factory=list)


class Room(BaseModel):
    """Номер в здании."""

    id: EntityId = Field(default_factory=generate_id)
    property_id: EntityId
    room_type_id: EntityId
    room_number: str
    floor: int = 1
    status: RoomStatus = RoomStatus.AVAILABLE
    is_active: bool = True

    def mark_available(self) -> None:
        """Возвращает номер в операционный статус available."""
        self.status = RoomStatus.AVAILABLE


class RoomDetails(BaseModel):
    """Номер вместе с типом и зданием (результат соединения)."""

    room: Room
    room_type: RoomType
    property: Property


class BlockReason(str, Enum):
    """Причины блокировки номера."""

    MAINTENANCE = "maintenance"
    RENOVATION = "renovation"
    RESERVED = "reserved"
    OWNER_USE = "owner_use"
    OTHER = "other"


class AvailabilityBlock(BaseModel):
    """Явная блокировка номера на период [start_date, end_date)."""

    id: EntityId = Field(default_factory=generate_id)
    room_id: EntityId
    start_date: date
    end_date: date
    reason: BlockReason = BlockReason.MAINTENANCE
    notes: Optional[str] = None

    @model_validator(mode="after")
    def end_after_start(self) -> "AvailabilityBlock":
        if self.end_date <= self.start_date:
            raise ValueError("Дата окончания блокировки должна быть позже начала")
        return self

    @property
    def period(self) -> DateRange:
        return DateRange(check_in=self.start_date, check_out=self.end_date)
