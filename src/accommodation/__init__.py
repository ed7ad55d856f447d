"""
Модуль контекста проживания (Accommodation Context).

Отвечает за номерной фонд и журнал проживаний, включая:
- Статусы номеров и допустимые переходы между ними
- Заселение и выезд гостей
- Уборку номеров после выезда
"""

from . import application, domain, event_handlers, infrastructure, interfaces

__all__ = [
    "domain",
    "application",
    "event_handlers",
    "infrastructure",
    "interfaces",
]
