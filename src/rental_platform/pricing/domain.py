"""
Доменная модель контекста ценообразования.

Тарифы, индивидуальные цены номеров и расчет стоимости проживания.
"""

import math
from datetime import date
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field

from ..shared_kernel import (
    ZERO,
    EntityId,
    InvalidInputError,
    StayType,
    generate_id,
    round_half_up,
    to_amount,
)

HUNDRED = Decimal("100")


class Rate(BaseModel):
    """Цена для пары (тип номера, тип проживания), опционально для здания.

    property_id = None означает глобальный тариф по умолчанию.
    """

    id: EntityId = Field(default_factory=generate_id)
    room_type_id: EntityId
    property_id: Optional[EntityId] = None
    stay_type: StayType
    price: Decimal = Field(..., ge=0)
    min_stay: int = Field(1, ge=1)
    deposit_percentage: Decimal = Field(Decimal("100"), ge=0, le=100)
    tax_percentage: Decimal = Field(ZERO, ge=0, le=100)
    service_fee: Decimal = Field(ZERO, ge=0)
    is_active: bool = True
    # Заполнено только у тарифа, синтезированного из индивидуальной цены
    override_id: Optional[EntityId] = None

    @property
    def is_global(self) -> bool:
        return self.property_id is None and self.override_id is None


class RoomRateOverride(BaseModel):
    """Индивидуальная цена номера; приоритетнее любых тарифов."""

    id: EntityId = Field(default_factory=generate_id)
    room_id: EntityId
    stay_type: StayType
    price: Decimal = Field(..., ge=0)
    notes: Optional[str] = None
    is_active: bool = True

    def to_rate(self, room_type_id: EntityId) -> Rate:
        """Синтезирует тариф: депозит, налог и сбор не заданы (нули)."""
        return Rate(
            id=self.id,
            room_type_id=room_type_id,
            property_id=None,
            stay_type=self.stay_type,
            price=self.price,
            min_stay=1,
            deposit_percentage=ZERO,
            tax_percentage=ZERO,
            service_fee=ZERO,
            override_id=self.id,
        )


class PriceBreakdown(BaseModel):
    """Детализация стоимости проживания."""

    stay_type: StayType
    nights: int
    units: int
    base_price: Decimal
    tax: Decimal
    service_fee: Decimal
    discount: Decimal
    total: Decimal
    deposit: Decimal
    rate: Rate


class PricingEngine:
    """Доменный сервис расчета стоимости. Без побочных эффектов."""

    WEEKLY_THRESHOLD = 7
    MONTHLY_THRESHOLD = 28

    @staticmethod
    def billable_units(nights: int, stay_type: StayType) -> int:
        """Количество тарифных единиц; неполная неделя или месяц округляется вверх."""
        if stay_type == StayType.DAILY:
            return max(1, nights)
        return max(1, math.ceil(nights / stay_type.unit_days))

    @classmethod
    def suggest_stay_type(cls, nights: int) -> StayType:
        """Подбирает тип проживания по количеству ночей."""
        if nights >= cls.MONTHLY_THRESHOLD:
            return StayType.MONTHLY
        if nights >= cls.WEEKLY_THRESHOLD:
            return StayType.WEEKLY
        return StayType.DAILY

    @classmethod
    def calculate_price(
        cls,
        rate: Rate,
        check_in: date,
        check_out: date,
        stay_type: StayType,
        discount: Decimal = ZERO,
    ) -> PriceBreakdown:
        """Рассчитывает стоимость проживания по тарифу.

        Налог округляется один раз от общей базовой суммы, депозит
        считается от итоговой суммы, поэтому депозит 100% равен итогу.
        """
        nights = (check_out - check_in).days
        if nights <= 0:
            raise InvalidInputError(
                "Дата выезда должна быть позже даты заезда",
                {"check_out": "must be after check_in"},
            )

        units = cls.billable_units(nights, stay_type)
        base_price = to_amount(rate.price) * units
        tax = round_half_up(base_price * to_amount(rate.tax_percentage) / HUNDRED)
        service_fee = to_amount(rate.service_fee)

        gross = base_price + tax + service_fee
        discount = to_amount(discount)
        if discount < 0 or discount > gross:
            raise InvalidInputError(
                "Скидка должна быть в диапазоне от 0 до суммы без скидки",
                {"discount": str(discount)},
            )

        total = gross - discount
        deposit_percentage = to_amount(rate.deposit_percentage)
        if deposit_percentage == HUNDRED:
            deposit = total
        else:
            deposit = round_half_up(total * deposit_percentage / HUNDRED)

        return PriceBreakdown(
            stay_type=stay_type,
            nights=nights,
            units=units,
            base_price=base_price,
            tax=tax,
            service_fee=service_fee,
            discount=discount,
            total=total,
            deposit=deposit,
            rate=rate,
        )


def calculate_price(
    rate: Rate,
    check_in: date,
    check_out: date,
    stay_type: StayType,
    discount: Decimal = ZERO,
) -> PriceBreakdown:
    return PricingEngine.calculate_price(rate, check_in, check_out, stay_type, discount)


def suggest_stay_type(nights: int) -> StayType:
    return PricingEngine.suggest_stay_type(nights)
