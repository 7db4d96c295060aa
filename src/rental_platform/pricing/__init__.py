"""
Модуль контекста ценообразования (Pricing Context).

Отвечает за:
- Разрешение тарифа по трехуровневой иерархии
- Расчет стоимости проживания
- Администрирование тарифов и индивидуальных цен
"""

from . import application, domain, infrastructure, interfaces

__all__ = [
    "domain",
    "application",
    "infrastructure",
    "interfaces",
]
