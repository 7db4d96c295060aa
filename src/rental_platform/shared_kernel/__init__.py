"""
Общее ядро (Shared Kernel) платформы аренды номеров.

Содержит общие типы данных и утилиты, используемые в различных ограниченных контекстах.
"""

from .domain import (
    TERMINAL_BOOKING_STATUSES,
    ZERO,
    Amount,
    AuthenticationError,
    BookingStatus,
    BusinessRuleValidationException,
    ConflictError,
    DateRange,
    # Исключения
    DomainException,
    # Базовые типы
    EntityId,
    InvalidInputError,
    InvalidStatusTransitionError,
    MinimumStayError,
    NoRateConfiguredError,
    NotFoundError,
    OverpaymentError,
    PaymentMethodType,
    PaymentStatus,
    RoomStatus,
    RoomUnavailableError,
    # Перечисления
    StayType,
    UpstreamServiceError,
    generate_id,
    # Утилиты
    now,
    round_half_up,
    to_amount,
    today,
    validate_input,
)
from .infrastructure import StdLogger, get_logger, setup_logging
from .interfaces import ILogger

__all__ = [
    # Базовые типы
    "EntityId",
    "Amount",
    "ZERO",
    "generate_id",
    "DateRange",
    # Перечисления
    "StayType",
    "BookingStatus",
    "TERMINAL_BOOKING_STATUSES",
    "PaymentStatus",
    "PaymentMethodType",
    "RoomStatus",
    # Исключения
    "DomainException",
    "InvalidInputError",
    "NotFoundError",
    "ConflictError",
    "RoomUnavailableError",
    "OverpaymentError",
    "BusinessRuleValidationException",
    "NoRateConfiguredError",
    "MinimumStayError",
    "InvalidStatusTransitionError",
    "AuthenticationError",
    "UpstreamServiceError",
    # Логирование
    "ILogger",
    "StdLogger",
    "get_logger",
    "setup_logging",
    # Утилиты
    "now",
    "today",
    "round_half_up",
    "to_amount",
    "validate_input",
]
