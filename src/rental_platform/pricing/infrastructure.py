"""
Инфраструктурный слой ценообразования: репозитории в памяти.
"""

from typing import Dict, Iterable, List, Optional, Tuple

from ..shared_kernel import EntityId, StayType
from . import interfaces as ports
from .domain import Rate, RoomRateOverride

RateKey = Tuple[EntityId, StayType, Optional[EntityId]]


class InMemoryRateRepository(ports.IRateRepository):
    """Реализация репозитория тарифов в памяти, индексированная по ключу."""

    def __init__(self) -> None:
        self._rates: Dict[RateKey, Rate] = {}

    @staticmethod
    def _key(rate: Rate) -> RateKey:
        return (rate.room_type_id, rate.stay_type, rate.property_id)

    def find_active(
        self,
        room_type_id: EntityId,
        stay_type: StayType,
        property_id: Optional[EntityId] = None,
    ) -> Optional[Rate]:
        rate = self._rates.get((room_type_id, stay_type, property_id))
        if rate is None or not rate.is_active:
            return None
        return rate.model_copy(deep=True)

    def upsert(self, rate: Rate) -> Rate:
        key = self._key(rate)
        existing = self._rates.get(key)
        if existing is not None:
            # Сохраняем идентификатор существующей записи
            rate = rate.model_copy(update={"id": existing.id})
        self._rates[key] = rate.model_copy(deep=True)
        return rate

    def list_active(self, property_id: Optional[EntityId] = None) -> List[Rate]:
        rates = [
            rate for rate in self._rates.values()
            if rate.is_active
            and (property_id is None or rate.property_id in (property_id, None))
        ]
        rates.sort(key=lambda r: (r.stay_type.value, str(r.room_type_id)))
        return [rate.model_copy(deep=True) for rate in rates]


class InMemoryRoomRateOverrideRepository(ports.IRoomRateOverrideRepository):
    """Реализация репозитория индивидуальных цен в памяти."""

    def __init__(self) -> None:
        self._overrides: Dict[Tuple[EntityId, StayType], RoomRateOverride] = {}

    def find_active(
        self, room_id: EntityId, stay_type: StayType
    ) -> Optional[RoomRateOverride]:
        override = self._overrides.get((room_id, stay_type))
        if override is None or not override.is_active:
            return None
        return override.model_copy(deep=True)

    def upsert(self, override: RoomRateOverride) -> RoomRateOverride:
        key = (override.room_id, override.stay_type)
        existing = self._overrides.get(key)
        if existing is not None:
            override = override.model_copy(update={"id": existing.id})
        self._overrides[key] = override.model_copy(deep=True)
        return override

    def delete(self, override_id: EntityId) -> bool:
        for key, override in list(self._overrides.items()):
            if override.id == override_id:
                del self._overrides[key]
                return True
        return False

    def list_active(
        self, room_ids: Optional[Iterable[EntityId]] = None
    ) -> List[RoomRateOverride]:
        wanted = set(room_ids) if room_ids is not None else None
        return [
            override.model_copy(deep=True) for override in self._overrides.values()
            if override.is_active and (wanted is None or override.room_id in wanted)
        ]
