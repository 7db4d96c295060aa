"""
Модуль контекста доступности (Availability Context).

Отвечает за:
- Атомарную проверку и удержание номера на период
- Массовый поиск свободных номеров
- Сводку доступности по зданиям
"""

from . import domain, application, interfaces

__all__ = [
    'domain',
    'application',
    'interfaces',
]
