"""
Модуль контекста бронирования (Booking Context).

Отвечает за управление бронированием номеров, включая:
- Создание бронирований (онлайн и на ресепшене)
- Учет оплаты в агрегате бронирования
- Управление состоянием бронирований
"""

from . import domain, interfaces, application, infrastructure

__all__ = [
    'domain',
    'application',
    'infrastructure',
    'interfaces',
]
