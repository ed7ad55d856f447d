"""
Расчет стоимости проживания и платы за поздний выезд.

Чистые функции без побочных эффектов: стоимость номеров за N суток,
количество начатых часов с момента заезда и доплата за часы сверх
оплаченного срока.
"""

import math
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Union

from pydantic import BaseModel, Field

from .domain import (
    DEFAULT_CURRENCY,
    Money,
    RoomCategory,
    ValidationException,
    now as utc_now,
)

BASE_PRICES = {
    RoomCategory.DELUXE: Decimal(2800),
    RoomCategory.EXECUTIVE: Decimal(4500),
    RoomCategory.SUITE: Decimal(6800),
}

HOURLY_LATE_FEE = Decimal(200)  # За каждый начатый час сверх оплаченного срока

HOURS_PER_DAY = 24

Timestamp = Union[datetime, str, None]


class LateCheckoutCharge(BaseModel):
    """Результат расчета доплаты за поздний выезд."""

    hours_stayed: int = Field(..., ge=0)
    booked_hours: int = Field(..., ge=0)
    extra_hours: int = Field(..., ge=0)
    extra_charge: Money


def _safe_number(value: Any) -> Decimal:
    """Приводит значение к Decimal; некорректные значения считаются нулем."""
    if value is None or isinstance(value, bool):
        return Decimal(0)
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        return Decimal(0)
    if not number.is_finite():
        return Decimal(0)
    return number


def _to_datetime(value: Timestamp) -> Optional[datetime]:
    if value is None:
        return None
    if isinstance(value, str):
        try:
            value = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
    if value.tzinfo is None:
        # Наивное время считаем временем UTC
        value = value.replace(tzinfo=timezone.utc)
    return value


def base_price_for(category: RoomCategory) -> Money:
    """Базовая цена за сутки для категории номера."""
    return Money(amount=BASE_PRICES[RoomCategory(category)])


def room_total(rooms: Iterable[Any], days: Any, currency: str = DEFAULT_CURRENCY) -> Money:
    """Стоимость всех номеров за указанное количество суток (минимум одни)."""
    billable_days = max(1, int(_safe_number(days)))
    per_day = sum((room.price_per_day.amount for room in rooms), Decimal(0))
    return Money(amount=per_day, currency=currency) * billable_days


def hours_since(timestamp: Timestamp, now: Optional[datetime] = None) -> int:
    """Количество часов с момента `timestamp`; начатый час считается полным."""
    start = _to_datetime(timestamp)
    if start is None:
        return 0
    current = _to_datetime(now) or utc_now()
    seconds = (current - start).total_seconds()
    return max(0, math.ceil(seconds / 3600))


def extra_charge(
    check_in: Timestamp,
    booked_days: Any,
    now: Optional[datetime] = None,
    hourly_fee: Decimal = HOURLY_LATE_FEE,
    currency: str = DEFAULT_CURRENCY,
) -> LateCheckoutCharge:
    """Рассчитывает часы и доплату сверх оплаченных суток."""
    hours_stayed = hours_since(check_in, now)
    booked_hours = max(0, int(_safe_number(booked_days))) * HOURS_PER_DAY
    extra_hours = max(0, hours_stayed - booked_hours)
    return LateCheckoutCharge(
        hours_stayed=hours_stayed,
        booked_hours=booked_hours,
        extra_hours=extra_hours,
        extra_charge=Money(amount=Decimal(hourly_fee), currency=currency) * extra_hours,
    )


def parse_amount(value: Any, field_name: str = "сумма") -> Optional[Decimal]:
    """Разбирает сумму, введенную оператором вручную.

    Пустое значение означает отсутствие ручной суммы. Нечисловое значение
    является ошибкой ввода.
    """
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    if isinstance(value, bool):
        raise ValidationException(f"Некорректное значение поля '{field_name}': {value}")
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationException(
            f"Некорректное значение поля '{field_name}': {value}"
        ) from None
    if not amount.is_finite():
        raise ValidationException(f"Некорректное значение поля '{field_name}': {value}")
    return amount


def percentage_of(amount: Money, rate: Decimal) -> Money:
    """Процент от суммы, округленный до копеек (например, GST)."""
    value = amount.amount * Decimal(rate) / Decimal(100)
    return Money(amount=value, currency=amount.currency).rounded()
