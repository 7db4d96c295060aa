"""
Модуль контекста платежей (Payments Context).

Отвечает за:
- Счета во внешнем платежном шлюзе
- Запись платежей на ресепшене
- Идемпотентную обработку уведомлений шлюза
- Возвраты
"""

from . import domain, application, infrastructure, interfaces

__all__ = [
    'domain',
    'application',
    'infrastructure',
    'interfaces',
]
