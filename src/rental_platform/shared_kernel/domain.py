"""
Основные доменные типы и утилиты общего ядра.
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any, Dict, Optional, Type, TypeVar, Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

# Общие типы идентификаторов
EntityId = UUID

Amount = Decimal

ZERO = Decimal("0")


def generate_id() -> UUID:
    """Генерирует новый UUID."""
    return uuid4()


def round_half_up(value: Union[Decimal, int, float, str]) -> Decimal:
    """Округляет сумму до целых единиц валюты (половина - вверх)."""
    return Decimal(str(value)).quantize(Decimal("1"), rounding=ROUND_HALF_UP)


def to_amount(value: Union[Decimal, int, float, str]) -> Decimal:
    """Приводит число к Decimal без потери точности для float."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


class DateRange(BaseModel):
    """Полуоткрытый диапазон дат [check_in, check_out)."""

    model_config = ConfigDict(frozen=True)

    check_in: date
    check_out: date

    @model_validator(mode="after")
    def check_out_after_check_in(self) -> "DateRange":
        if self.check_out <= self.check_in:
            raise ValueError("Дата выезда должна быть позже даты заезда")
        return self

    @property
    def nights(self) -> int:
        """Количество ночей в бронировании."""
        return (self.check_out - self.check_in).days

    def overlaps(self, check_in: date, check_out: date) -> bool:
        """[a1, a2) и [b1, b2) пересекаются, если a1 < b2 и a2 > b1."""
        return self.check_in < check_out and self.check_out > check_in


# Общие перечисления
class StayType(str, Enum):
    """Тип проживания (гранулярность тарифа)."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"

    @property
    def unit_days(self) -> int:
        """Длина одной тарифной единицы в днях."""
        return {"daily": 1, "weekly": 7, "monthly": 30}[self.value]


class BookingStatus(str, Enum):
    """Статусы бронирования."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    CHECKED_IN = "checked_in"
    CHECKED_OUT = "checked_out"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_BOOKING_STATUSES


TERMINAL_BOOKING_STATUSES = frozenset(
    {BookingStatus.CHECKED_OUT, BookingStatus.CANCELLED, BookingStatus.NO_SHOW}
)


class PaymentStatus(str, Enum):
    """Статус оплаты бронирования."""

    UNPAID = "unpaid"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentMethodType(str, Enum):
    """Способ оплаты, выбранный при бронировании."""

    ONLINE = "online"
    DP_ONLINE = "dp_online"
    PAY_AT_PROPERTY = "pay_at_property"


class RoomStatus(str, Enum):
    """Операционные статусы номеров."""

    AVAILABLE = "available"
    OCCUPIED = "occupied"
    MAINTENANCE = "maintenance"
    BLOCKED = "blocked"


# Общие исключения
class DomainException(Exception):
    """Базовое исключение для доменных ошибок."""

    pass


class InvalidInputError(DomainException):
    """Некорректные входные данные (ошибка по полям)."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.details = details or {}


class NotFoundError(DomainException):
    """Сущность не найдена."""

    def __init__(self, entity: str, entity_id: Any):
        super().__init__(f"{entity} с ID {entity_id} не найден(а)")
        self.entity = entity
        self.entity_id = entity_id


class ConflictError(DomainException):
    """Ожидаемый бизнес-конфликт (повторяемая операция)."""

    pass


class RoomUnavailableError(ConflictError):
    """Номер уже занят на выбранные даты."""

    def __init__(self, room_id: EntityId):
        super().__init__("Номер больше не доступен на выбранные даты")
        self.room_id = room_id


class OverpaymentError(ConflictError):
    """Сумма платежа превышает остаток к оплате."""

    def __init__(self, amount: Decimal, outstanding: Decimal):
        if outstanding <= 0:
            message = "Бронирование уже полностью оплачено"
        else:
            message = (
                f"Сумма {amount} превышает остаток к оплате {outstanding}"
            )
        super().__init__(message)
        self.amount = amount
        self.outstanding = outstanding


class BusinessRuleValidationException(DomainException):
    """Исключение при нарушении бизнес-правил."""

    pass


class NoRateConfiguredError(BusinessRuleValidationException):
    """Для типа номера и типа проживания нет тарифа."""

    def __init__(self, room_type_id: EntityId, stay_type: StayType):
        super().__init__(
            f"Нет тарифа для типа номера {room_type_id} и типа проживания "
            f"{stay_type.value}"
        )
        self.room_type_id = room_type_id
        self.stay_type = stay_type


class MinimumStayError(BusinessRuleValidationException):
    """Срок проживания меньше минимального для тарифа."""

    def __init__(self, stay_type: StayType, min_stay: int):
        super().__init__(
            f"Минимальный срок для {stay_type.value} - {min_stay} ночей"
        )
        self.stay_type = stay_type
        self.min_stay = min_stay


class InvalidStatusTransitionError(BusinessRuleValidationException):
    """Недопустимый переход статуса бронирования."""

    def __init__(self, current: BookingStatus, target: BookingStatus):
        super().__init__(
            f"Невозможно перевести бронирование из {current.value} в {target.value}"
        )
        self.current = current
        self.target = target


class AuthenticationError(DomainException):
    """Неверный секрет обратного вызова."""

    pass


class UpstreamServiceError(DomainException):
    """Ошибка внешнего сервиса (платежный шлюз, почта)."""

    pass


# Общие утилиты
M = TypeVar("M", bound=BaseModel)


def validate_input(model: Type[M], data: Any) -> M:
    """Проверяет входные данные моделью; ошибки pydantic становятся InvalidInputError."""
    if isinstance(data, model):
        return data
    try:
        return model.model_validate(data)
    except ValidationError as e:
        raise InvalidInputError(
            "Некорректные входные данные",
            {
                ".".join(str(part) for part in err["loc"]) or "__root__": err["msg"]
                for err in e.errors()
            },
        ) from e


def now() -> datetime:
    """Возвращает текущую дату и время (UTC)."""
    return datetime.now(timezone.utc)


def today() -> date:
    """Возвращает текущую дату."""
    return date.today()
