"""
Модуль контекста расчетов (Billing Context).

Отвечает за финансовую сторону проживания, включая:
- Расчет счета при выезде с доплатой за поздний выезд
- Ручные корректировки суммы оператором
- Журнал поступлений и отчет по выручке с GST
"""

from . import application, domain, infrastructure, interfaces

__all__ = [
    "domain",
    "application",
    "infrastructure",
    "interfaces",
]
