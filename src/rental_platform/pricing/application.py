"""
Прикладной слой контекста ценообразования.

Содержит цепочку уровней разрешения тарифа и сервис администрирования
тарифов и индивидуальных цен.
"""

from __future__ import annotations

from decimal import Decimal
from typing import TYPE_CHECKING, Any, List, Mapping, Optional, Protocol, Sequence, Union

from pydantic import BaseModel, Field

from ..shared_kernel import (
    EntityId,
    ILogger,
    NotFoundError,
    RoomStatus,
    StayType,
    get_logger,
    validate_input,
)
from . import interfaces as ports
from .domain import Rate, RoomRateOverride

if TYPE_CHECKING:
    from ..booking.interfaces import IRentalUnitOfWork


class RateQuery(BaseModel):
    """Запрос на разрешение тарифа."""

    room_type_id: EntityId
    stay_type: StayType
    room_id: Optional[EntityId] = None
    property_id: Optional[EntityId] = None


class RateTier(Protocol):
    """Один уровень иерархии тарифов."""

    name: str

    def resolve(self, query: RateQuery) -> Optional[Rate]: ...


class RoomOverrideTier:
    """Уровень 1: индивидуальная цена номера."""

    name = "room_override"

    def __init__(self, overrides: ports.IRoomRateOverrideRepository):
        self._overrides = overrides

    def resolve(self, query: RateQuery) -> Optional[Rate]:
        if query.room_id is None:
            return None
        override = self._overrides.find_active(query.room_id, query.stay_type)
        if override is None:
            return None
        return override.to_rate(query.room_type_id)


class PropertyRateTier:
    """Уровень 2: тариф здания."""

    name = "property_rate"

    def __init__(self, rates: ports.IRateRepository):
        self._rates = rates

    def resolve(self, query: RateQuery) -> Optional[Rate]:
        if query.property_id is None:
            return None
        return self._rates.find_active(
            query.room_type_id, query.stay_type, query.property_id
        )


class GlobalRateTier:
    """Уровень 3: глобальный тариф типа номера."""

    name = "global_rate"

    def __init__(self, rates: ports.IRateRepository):
        self._rates = rates

    def resolve(self, query: RateQuery) -> Optional[Rate]:
        return self._rates.find_active(query.room_type_id, query.stay_type, None)


class RateResolver:
    """Разрешает тариф, перебирая уровни по порядку; первый найденный побеждает.

    None означает, что цена не настроена, вызывающий код обязан
    трактовать это как ошибку, а не как нулевую цену.
    """

    def __init__(self, tiers: Sequence[RateTier], logger: Optional[ILogger] = None):
        self._tiers = list(tiers)
        self._logger = logger or get_logger(__name__)

    @classmethod
    def default(
        cls,
        rates: ports.IRateRepository,
        overrides: ports.IRoomRateOverrideRepository,
        logger: Optional[ILogger] = None,
    ) -> "RateResolver":
        return cls(
            [RoomOverrideTier(overrides), PropertyRateTier(rates), GlobalRateTier(rates)],
            logger=logger,
        )

    @property
    def tiers(self) -> List[RateTier]:
        return list(self._tiers)

    def resolve(
        self,
        room_type_id: EntityId,
        stay_type: StayType,
        room_id: Optional[EntityId] = None,
        property_id: Optional[EntityId] = None,
    ) -> Optional[Rate]:
        query = RateQuery(
            room_type_id=room_type_id,
            stay_type=stay_type,
            room_id=room_id,
            property_id=property_id,
        )
        for tier in self._tiers:
            rate = tier.resolve(query)
            if rate is not None:
                self._logger.debug(
                    "Rate resolved",
                    tier=tier.name,
                    room_type_id=room_type_id,
                    stay_type=stay_type.value,
                )
                return rate

        self._logger.warning(
            "No rate configured",
            room_type_id=room_type_id,
            stay_type=stay_type.value,
            room_id=room_id,
            property_id=property_id,
        )
        return None


# DTO (Data Transfer Objects) для входящих данных


class UpsertRateCommand(BaseModel):
    """Команда создания или обновления тарифа."""

    room_type_id: EntityId
    stay_type: StayType
    property_id: Optional[EntityId] = None
    price: Decimal = Field(..., ge=0)
    min_stay: Optional[int] = Field(None, ge=1)
    deposit_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    tax_percentage: Optional[Decimal] = Field(None, ge=0, le=100)
    service_fee: Optional[Decimal] = Field(None, ge=0)


class StayPrice(BaseModel):
    """Цена для одного типа проживания."""

    stay_type: StayType
    price: Decimal = Field(..., ge=0)


class BulkPropertyRatesCommand(BaseModel):
    """Команда установки цен здания сразу для нескольких типов проживания."""

    property_id: EntityId
    room_type_id: EntityId
    rates: List[StayPrice] = Field(..., min_length=1)


class SetRoomOverrideCommand(BaseModel):
    """Команда установки индивидуальной цены номера."""

    room_id: EntityId
    stay_type: StayType
    price: Decimal = Field(..., ge=0)
    notes: Optional[str] = Field(None, max_length=500)


class BulkOverrideCommand(BaseModel):
    """Команда установки одной цены всем свободным номерам здания."""

    property_id: EntityId
    stay_type: StayType
    price: Decimal = Field(..., ge=0)
    notes: Optional[str] = Field(None, max_length=500)


# DTO для исходящих данных


class RateDTO(BaseModel):
    """DTO для представления тарифа."""

    id: EntityId
    room_type_id: EntityId
    property_id: Optional[EntityId]
    stay_type: StayType
    price: Decimal
    min_stay: int
    deposit_percentage: Decimal
    tax_percentage: Decimal
    service_fee: Decimal

    @classmethod
    def from_domain(cls, rate: Rate) -> "RateDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=rate.id,
            room_type_id=rate.room_type_id,
            property_id=rate.property_id,
            stay_type=rate.stay_type,
            price=rate.price,
            min_stay=rate.min_stay,
            deposit_percentage=rate.deposit_percentage,
            tax_percentage=rate.tax_percentage,
            service_fee=rate.service_fee,
        )


class OverrideDTO(BaseModel):
    """DTO для представления индивидуальной цены."""

    id: EntityId
    room_id: EntityId
    stay_type: StayType
    price: Decimal
    notes: Optional[str]

    @classmethod
    def from_domain(cls, override: RoomRateOverride) -> "OverrideDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=override.id,
            room_id=override.room_id,
            stay_type=override.stay_type,
            price=override.price,
            notes=override.notes,
        )


# Сервисы приложения


class RateAdministrationService:
    """Сервис администрирования тарифов.

    Все записи выполняются как upsert по ключу, поэтому для ключа
    никогда не появляется вторая активная запись.
    """

    def __init__(self, uow: IRentalUnitOfWork, logger: Optional[ILogger] = None):
        self._uow = uow
        self._logger = logger or get_logger(__name__)

    def upsert_rate(self, command: Union[UpsertRateCommand, Mapping[str, Any]]) -> Rate:
        """Создает или обновляет тариф по ключу."""
        command = validate_input(UpsertRateCommand, command)
        with self._uow:
            saved = self._upsert(command)
        self._logger.info(
            "Rate upserted",
            rate_id=saved.id,
            stay_type=saved.stay_type.value,
            property_id=saved.property_id,
            price=saved.price,
        )
        return saved

    def _upsert(self, command: UpsertRateCommand) -> Rate:
        existing = self._uow.rates.find_active(
            command.room_type_id, command.stay_type, command.property_id
        )
        values = {
            "room_type_id": command.room_type_id,
            "stay_type": command.stay_type,
            "property_id": command.property_id,
            "price": command.price,
            "is_active": True,
        }
        # Незаданные проценты и сбор сохраняют прежние значения
        for field in ("min_stay", "deposit_percentage", "tax_percentage", "service_fee"):
            value = getattr(command, field)
            if value is not None:
                values[field] = value

        if existing is not None:
            rate = existing.model_copy(update=values)
        else:
            rate = Rate(**values)
        return self._uow.rates.upsert(rate)

    def bulk_property_rates(
        self, command: Union[BulkPropertyRatesCommand, Mapping[str, Any]]
    ) -> List[Rate]:
        """Устанавливает цены здания для нескольких типов проживания."""
        command = validate_input(BulkPropertyRatesCommand, command)
        with self._uow:
            saved = [
                self._upsert(
                    UpsertRateCommand(
                        room_type_id=command.room_type_id,
                        stay_type=item.stay_type,
                        property_id=command.property_id,
                        price=item.price,
                    )
                )
                for item in command.rates
            ]
        self._logger.info(
            "Property rates set",
            property_id=command.property_id,
            room_type_id=command.room_type_id,
            count=len(saved),
        )
        return saved

    def set_room_override(
        self, command: Union[SetRoomOverrideCommand, Mapping[str, Any]]
    ) -> RoomRateOverride:
        """Создает или обновляет индивидуальную цену номера."""
        command = validate_input(SetRoomOverrideCommand, command)
        with self._uow:
            if self._uow.rooms.get_by_id(command.room_id) is None:
                raise NotFoundError("Номер", command.room_id)

            saved = self._uow.overrides.upsert(
                RoomRateOverride(
                    room_id=command.room_id,
                    stay_type=command.stay_type,
                    price=command.price,
                    notes=command.notes,
                )
            )
        self._logger.info(
            "Room override set",
            room_id=command.room_id,
            stay_type=command.stay_type.value,
            price=command.price,
        )
        return saved

    def bulk_override_available_rooms(
        self, command: Union[BulkOverrideCommand, Mapping[str, Any]]
    ) -> List[RoomRateOverride]:
        """Ставит одну цену всем активным номерам здания в статусе available."""
        command = validate_input(BulkOverrideCommand, command)
        notes = command.notes or "Bulk price for available rooms"
        with self._uow:
            rooms = self._uow.rooms.list_active(
                property_id=command.property_id, status=RoomStatus.AVAILABLE
            )
            result = [
                self._uow.overrides.upsert(
                    RoomRateOverride(
                        room_id=room.id,
                        stay_type=command.stay_type,
                        price=command.price,
                        notes=notes,
                    )
                )
                for room in rooms
            ]
        self._logger.info(
            "Bulk overrides set",
            property_id=command.property_id,
            stay_type=command.stay_type.value,
            count=len(result),
        )
        return result

    def delete_override(self, override_id: EntityId) -> None:
        """Удаляет индивидуальную цену номера."""
        with self._uow:
            if not self._uow.overrides.delete(override_id):
                raise NotFoundError("Индивидуальная цена", override_id)
        self._logger.info("Room override deleted", override_id=override_id)

    def list_rates(self, property_id: Optional[EntityId] = None) -> List[Rate]:
        """Тарифы здания вместе с глобальными (или все тарифы)."""
        with self._uow:
            return self._uow.rates.list_active(property_id)

    def list_overrides(self, property_id: Optional[EntityId] = None) -> List[RoomRateOverride]:
        """Индивидуальные цены, опционально только для номеров здания."""
        with self._uow:
            if property_id is None:
                return self._uow.overrides.list_active()
            room_ids = [room.id for room in self._uow.rooms.list_active(property_id=property_id)]
            return self._uow.overrides.list_active(room_ids)
