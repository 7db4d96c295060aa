"""
Интерфейсы (порты) для контекста ценообразования.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Protocol

from ..shared_kernel import EntityId, StayType
from .domain import Rate, RoomRateOverride


class IRateRepository(Protocol):
    """Интерфейс репозитория тарифов.

    Ключ тарифа - (room_type_id, stay_type, property_id или None);
    для ключа хранится не более одной записи.
    """

    def find_active(
        self,
        room_type_id: EntityId,
        stay_type: StayType,
        property_id: Optional[EntityId] = None,
    ) -> Rate | None: ...
    def upsert(self, rate: Rate) -> Rate: ...
    def list_active(self, property_id: Optional[EntityId] = None) -> List[Rate]: ...


class IRoomRateOverrideRepository(Protocol):
    """Интерфейс репозитория индивидуальных цен (ключ - room_id, stay_type)."""

    def find_active(self, room_id: EntityId, stay_type: StayType) -> RoomRateOverride | None: ...
    def upsert(self, override: RoomRateOverride) -> RoomRateOverride: ...
    def delete(self, override_id: EntityId) -> bool: ...
    def list_active(
        self, room_ids: Optional[Iterable[EntityId]] = None
    ) -> List[RoomRateOverride]: ...
