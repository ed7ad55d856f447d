"""
Общее ядро (Shared Kernel) для системы управления курортом.

Содержит общие типы данных и утилиты, используемые в различных ограниченных контекстах.
"""

from .config import ResortSettings, get_settings
from .domain import (
    DEFAULT_CURRENCY,
    BusinessRuleValidationException,
    ConcurrencyException,
    DomainEvent,
    # Исключения
    DomainException,
    # Базовые типы
    EntityId,
    InvalidSelectionException,
    InvalidStateException,
    # Основные классы
    Money,
    NotFoundException,
    PaymentMethod,
    PersistenceException,
    # Перечисления
    RoomCategory,
    RoomStatus,
    StayStatus,
    ValidationException,
    generate_id,
    # Утилиты
    now,
)

__all__ = [
    # Базовые типы
    "EntityId",
    "generate_id",
    "DEFAULT_CURRENCY",
    # Основные классы
    "Money",
    "DomainEvent",
    # Перечисления
    "RoomCategory",
    "RoomStatus",
    "StayStatus",
    "PaymentMethod",
    # Исключения
    "DomainException",
    "ValidationException",
    "BusinessRuleValidationException",
    "InvalidSelectionException",
    "NotFoundException",
    "InvalidStateException",
    "ConcurrencyException",
    "PersistenceException",
    # Настройки
    "ResortSettings",
    "get_settings",
    # Утилиты
    "now",
]
