"""
Модуль уведомлений (Notifications).

Внешний соавтор ядра: лента уведомлений персонала и письма гостям.
Доставка не гарантируется и не влияет на бронирования и платежи.
"""

from . import domain, application, infrastructure, interfaces, templates

__all__ = [
    'domain',
    'application',
    'infrastructure',
    'interfaces',
    'templates',
]
