"""
Модуль контекста бронирования (Booking Context).

Отвечает за работу оператора на шахматке номеров, включая:
- Выбор свободных номеров
- Расчет стоимости с учетом ручной цены
- Заселение гостя в выбранные номера
"""

from . import application, domain

__all__ = [
    "domain",
    "application",
]
