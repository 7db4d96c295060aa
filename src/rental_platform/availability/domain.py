"""
Доменная модель контекста доступности.
"""

from datetime import date
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from ..catalog.domain import RoomDetails
from ..shared_kernel import DateRange, EntityId


class AvailabilitySearch(BaseModel):
    """Параметры массового поиска свободных номеров."""

    check_in: date
    check_out: date
    property_id: Optional[EntityId] = None
    room_type_id: Optional[EntityId] = None
    num_guests: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def check_out_after_check_in(self) -> "AvailabilitySearch":
        if self.check_out <= self.check_in:
            raise ValueError("Дата выезда должна быть позже даты заезда")
        return self

    @property
    def period(self) -> DateRange:
        return DateRange(check_in=self.check_in, check_out=self.check_out)


class AvailableRoom(RoomDetails):
    """Свободный номер вместе с типом и зданием."""


class PropertyAvailability(BaseModel):
    """Количество свободных номеров в одном здании."""

    property_id: EntityId
    property_name: str
    slug: str
    available: int


class AvailabilitySummary(BaseModel):
    """Сводка доступности по зданиям."""

    total: int = 0
    properties: List[PropertyAvailability] = Field(default_factory=list)
