"""
Настройки курорта.

Значения по умолчанию соответствуют текущему прайсу; любое поле можно
переопределить переменной окружения с префиксом ``RESORT_``.
"""

import os
from decimal import Decimal
from functools import lru_cache
from pathlib import Path
from typing import Dict, Mapping, Optional

from pydantic import BaseModel, Field

from .domain import DEFAULT_CURRENCY, PaymentMethod, RoomCategory
from .pricing import BASE_PRICES, HOURLY_LATE_FEE

ENV_PREFIX = "RESORT_"


class ResortSettings(BaseModel):
    """Параметры тарификации, номерного фонда и хранилища."""

    currency: str = Field(default=DEFAULT_CURRENCY, max_length=3)
    hourly_late_fee: Decimal = Field(default=HOURLY_LATE_FEE, ge=0)
    base_prices: Dict[RoomCategory, Decimal] = Field(
        default_factory=lambda: dict(BASE_PRICES)
    )
    room_count: int = Field(default=33, gt=0)
    gst_rate: Decimal = Field(default=Decimal(18), ge=0, le=100)  # Процент GST
    default_payment_method: PaymentMethod = PaymentMethod.CASH
    read_retry_attempts: int = Field(default=3, ge=1)
    read_retry_backoff: float = Field(default=0.1, ge=0)  # Секунды
    data_dir: Optional[Path] = None  # None - хранение в памяти

    def price_for(self, category: RoomCategory) -> Decimal:
        return self.base_prices[RoomCategory(category)]

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "ResortSettings":
        """Создает настройки из переменных окружения RESORT_*."""
        environ = os.environ if environ is None else environ
        values = {}
        for name in cls.model_fields:
            if name == "base_prices":
                continue
            key = f"{ENV_PREFIX}{name.upper()}"
            if key in environ:
                values[name] = environ[key]

        prices = dict(BASE_PRICES)
        for category in RoomCategory:
            key = f"{ENV_PREFIX}PRICE_{category.name}"
            if key in environ:
                prices[category] = environ[key]
        values["base_prices"] = prices

        return cls.model_validate(values)


@lru_cache(maxsize=1)
def get_settings() -> ResortSettings:
    """Возвращает настройки процесса (читаются из окружения один раз)."""
    return ResortSettings.from_env()
