"""
Основные доменные типы и утилиты общего ядра.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Union
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

# Общие типы идентификаторов
EntityId = UUID

DEFAULT_CURRENCY = "INR"

CENT = Decimal("0.01")


def generate_id() -> UUID:
    """Генерирует новый UUID."""
    return uuid4()


class Money(BaseModel):
    """Денежная сумма с валютой."""

    model_config = ConfigDict(frozen=True)

    amount: Decimal = Field(..., ge=0, description="Сумма денег")
    currency: str = Field(
        default=DEFAULT_CURRENCY, max_length=3, description="Код валюты (ISO 4217)"
    )

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        return cls(amount=Decimal(0), currency=currency)

    def __add__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            raise TypeError("Можно складывать только объекты Money")
        if self.currency != other.currency:
            raise ValueError("Нельзя складывать разные валюты")
        return Money(amount=self.amount + other.amount, currency=self.currency)

    def __sub__(self, other: "Money") -> "Money":
        if not isinstance(other, Money):
            raise TypeError("Можно вычитать только объекты Money")
        if self.currency != other.currency:
            raise ValueError("Нельзя вычитать разные валюты")
        if self.amount < other.amount:
            raise ValueError("Результат не может быть отрицательным")
        return Money(amount=self.amount - other.amount, currency=self.currency)

    def __mul__(self, multiplier: Union[int, Decimal]) -> "Money":
        if isinstance(multiplier, bool) or not isinstance(
            multiplier, (int, float, Decimal)
        ):
            raise TypeError("Множитель должен быть числом")
        if multiplier < 0:
            raise ValueError("Множитель не может быть отрицательным")
        return Money(
            amount=self.amount * Decimal(str(multiplier)), currency=self.currency
        )

    def rounded(self) -> "Money":
        """Округляет сумму до копеек (пайс)."""
        return Money(amount=self.amount.quantize(CENT), currency=self.currency)

    def __str__(self) -> str:
        return f"{self.amount.normalize():f} {self.currency}"


class DomainEvent(BaseModel):
    """Базовый класс для всех доменных событий."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    event_id: UUID = Field(default_factory=uuid4)
    occurred_on: datetime = Field(default_factory=lambda: now())

    @property
    def event_type(self) -> str:
        return type(self).__name__


# Общие перечисления
class RoomCategory(str, Enum):
    """Категории номеров курорта."""

    DELUXE = "Deluxe"
    EXECUTIVE = "Executive"
    SUITE = "Suite"


class RoomStatus(str, Enum):
    """Статусы номеров."""

    FREE = "free"  # Свободен и готов к заселению
    OCCUPIED = "occupied"  # Занят гостем
    MAINTENANCE = "maintenance"  # На обслуживании
    HOUSEKEEPING = "housekeeping"  # Ожидает уборки после выезда


class StayStatus(str, Enum):
    """Статусы проживания."""

    CHECKED_IN = "checked-in"
    CHECKED_OUT = "checked-out"


class PaymentMethod(str, Enum):
    """Методы оплаты."""

    CASH = "cash"
    CARD = "card"
    UPI = "upi"
    BANK_TRANSFER = "bank_transfer"


# Общие исключения
class DomainException(Exception):
    """Базовое исключение для доменных ошибок."""

    pass


class ValidationException(DomainException):
    """Некорректные входные данные оператора (имя, дни, суммы)."""

    pass


class BusinessRuleValidationException(DomainException):
    """Исключение при нарушении бизнес-правил."""

    pass


class InvalidSelectionException(BusinessRuleValidationException):
    """Выбранные номера нельзя заселить."""

    pass


class NotFoundException(DomainException):
    """Номер или проживание не найдены."""

    pass


class InvalidStateException(DomainException):
    """Операция недопустима в текущем состоянии сущности."""

    pass


class ConcurrencyException(InvalidStateException):
    """Исключение при конфликте версий."""

    pass


class PersistenceException(Exception):
    """Ошибка хранилища (сеть, бэкенд)."""

    pass


# Общие утилиты
def now() -> datetime:
    """Возвращает текущие дату и время в UTC."""
    return datetime.now(timezone.utc)
