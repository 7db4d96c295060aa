"""
Модуль контекста каталога (Catalog Context).

Здания, типы номеров, номера и явные блокировки номеров.
"""

from . import application, domain, infrastructure, interfaces

__all__ = [
    "domain",
    "application",
    "infrastructure",
    "interfaces",
]
