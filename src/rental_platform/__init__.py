"""
Платформа аренды номеров: ядро расчета цен и сверки оплат бронирований.
"""

__version__ = "0.1.0"
