"""
Доменная модель контекста расчетов.

Содержит расчет счета при выезде (базовая стоимость, доплата за поздний
выезд, ручные корректировки), финансовую запись для бухгалтерии и
отчет по выручке с GST.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Dict, Iterable, List, Mapping, Optional

from accommodation.domain import Room, Stay
from pydantic import BaseModel, Field
from shared_kernel import (
    DEFAULT_CURRENCY,
    EntityId,
    Money,
    PaymentMethod,
    ValidationException,
    generate_id,
    now,
)
from shared_kernel.domain import CENT
from shared_kernel.pricing import HOURLY_LATE_FEE, extra_charge, percentage_of


class BillOverride(str, Enum):
    """Какая ручная корректировка применена к итогу."""

    EXTRA_CHARGE = "extra_charge"  # Оператор изменил доплату
    TOTAL = "total"  # Оператор задал итог целиком


class RoomCharge(BaseModel):
    """Строка счета по одному номеру."""

    room_id: EntityId
    room_name: Optional[str] = None
    daily_rate: Money
    amount: Money


class BillBreakdown(BaseModel):
    """Расчет суммы к оплате при выезде."""

    stay_id: EntityId
    guest_name: str
    booked_days: int
    hours_stayed: int
    booked_hours: int
    extra_hours: int
    default_extra_charge: Money
    applied_extra_charge: Money
    base_total: Money
    per_room: List[RoomCharge]
    suggested_total: Money  # База плюс доплата по тарифу, без корректировок
    computed_total: Money  # Итог к оплате с учетом корректировок
    override: Optional[BillOverride] = None


def _split(total: Decimal, weights: List[Decimal]) -> List[Decimal]:
    """Делит сумму пропорционально весам; остаток округления уходит в последнюю долю."""
    weight_sum = sum(weights, Decimal(0))
    shares = [(total * w / weight_sum).quantize(CENT) for w in weights[:-1]]
    shares.append(total - sum(shares, Decimal(0)))
    return shares


class BillingPolicy:
    """Правила расчета счета при выезде.

    Приоритет корректировок: ручной итог > ручная доплата > доплата по тарифу.
    """

    def __init__(
        self, hourly_late_fee: Decimal = HOURLY_LATE_FEE, currency: str = DEFAULT_CURRENCY
    ):
        self.hourly_late_fee = hourly_late_fee
        self.currency = currency

    def _money(self, amount: Decimal, field_name: str) -> Money:
        if amount < 0:
            raise ValidationException(f"Поле '{field_name}' не может быть отрицательным")
        return Money(amount=amount, currency=self.currency)

    def compute_bill(
        self,
        stay: Stay,
        rooms: Mapping[EntityId, Room],
        at: Optional[datetime] = None,
        extra_charge_override: Optional[Decimal] = None,
        total_override: Optional[Decimal] = None,
    ) -> BillBreakdown:
        """Рассчитывает счет; ничего не сохраняет."""
        late = extra_charge(
            stay.check_in_at,
            stay.booked_days,
            now=at or now(),
            hourly_fee=self.hourly_late_fee,
            currency=self.currency,
        )
        base_total = stay.base_amount
        override = None

        applied_extra = late.extra_charge
        if extra_charge_override is not None:
            applied_extra = self._money(extra_charge_override, "ручная доплата")
            override = BillOverride.EXTRA_CHARGE

        computed_total = base_total + applied_extra
        if total_override is not None:
            computed_total = self._money(total_override, "ручной итог")
            override = BillOverride.TOTAL

        return BillBreakdown(
            stay_id=stay.id,
            guest_name=stay.guest.name,
            booked_days=stay.booked_days,
            hours_stayed=late.hours_stayed,
            booked_hours=late.booked_hours,
            extra_hours=late.extra_hours,
            default_extra_charge=late.extra_charge,
            applied_extra_charge=applied_extra,
            base_total=base_total,
            per_room=self.apportion(stay, rooms),
            suggested_total=base_total + late.extra_charge,
            computed_total=computed_total,
            override=override,
        )

    def apportion(self, stay: Stay, rooms: Mapping[EntityId, Room]) -> List[RoomCharge]:
        """Распределяет базовую стоимость по номерам.

        Если известны тарифы всех номеров, доли пропорциональны тарифам.
        Иначе сумма делится поровну: base / суток / номеров за сутки.
        """
        base = stay.base_amount.amount
        known = [rooms.get(room_id) for room_id in stay.room_ids]
        rates = [room.price_per_day.amount for room in known if room is not None]

        if len(rates) == len(stay.room_ids) and sum(rates, Decimal(0)) > 0:
            shares = _split(base, rates)
            return [
                RoomCharge(
                    room_id=room.id,
                    room_name=room.name,
                    daily_rate=room.price_per_day,
                    amount=Money(amount=share, currency=self.currency),
                )
                for room, share in zip(known, shares)
            ]

        count = len(stay.room_ids)
        daily_rate = (base / stay.booked_days / count).quantize(CENT)
        shares = _split(base, [Decimal(1)] * count)
        return [
            RoomCharge(
                room_id=room_id,
                room_name=room.name if room is not None else None,
                daily_rate=Money(amount=daily_rate, currency=self.currency),
                amount=Money(amount=share, currency=self.currency),
            )
            for room_id, room, share in zip(stay.room_ids, known, shares)
        ]


class FinanceRecord(BaseModel):
    """Запись о полученной оплате для бухгалтерии."""

    id: EntityId = Field(default_factory=generate_id)
    guest_id: EntityId  # Идентификатор проживания
    guest_name: str
    room_id: EntityId  # Первый номер проживания
    room_ids: List[EntityId]
    base_amount: Money
    extra_hours: int = Field(0, ge=0)
    extra_charge: Money
    total_amount: Money
    payment_method: PaymentMethod = PaymentMethod.CASH
    recorded_at: datetime = Field(default_factory=now)

    @classmethod
    def from_checkout(
        cls,
        stay: Stay,
        bill: BillBreakdown,
        payment_method: PaymentMethod,
        recorded_at: Optional[datetime] = None,
    ) -> "FinanceRecord":
        return cls(
            guest_id=stay.id,
            guest_name=stay.guest.name,
            room_id=stay.room_ids[0],
            room_ids=list(stay.room_ids),
            base_amount=bill.base_total,
            extra_hours=bill.extra_hours,
            extra_charge=bill.applied_extra_charge,
            total_amount=bill.computed_total,
            payment_method=payment_method,
            recorded_at=recorded_at or now(),
        )


class RevenueReport(BaseModel):
    """Выручка и GST за период."""

    period_start: Optional[date] = None
    period_end: Optional[date] = None
    records_count: int
    total_revenue: Money
    average_ticket: Money  # Округляется до целых
    gst_rate: Decimal
    gst_collected: Money
    net_income: Money
    by_payment_method: Dict[PaymentMethod, Money] = Field(default_factory=dict)

    @classmethod
    def build(
        cls,
        records: Iterable[FinanceRecord],
        gst_rate: Decimal,
        currency: str = DEFAULT_CURRENCY,
        period_start: Optional[date] = None,
        period_end: Optional[date] = None,
    ) -> "RevenueReport":
        records = list(records)
        total = Money.zero(currency)
        by_method: Dict[PaymentMethod, Money] = {}
        for record in records:
            total = total + record.total_amount
            by_method[record.payment_method] = (
                by_method.get(record.payment_method, Money.zero(currency))
                + record.total_amount
            )

        average = Decimal(0)
        if records:
            average = (total.amount / len(records)).quantize(
                Decimal(1), rounding=ROUND_HALF_UP
            )
        gst = percentage_of(total, gst_rate)

        return cls(
            period_start=period_start,
            period_end=period_end,
            records_count=len(records),
            total_revenue=total,
            average_ticket=Money(amount=average, currency=currency),
            gst_rate=gst_rate,
            gst_collected=gst,
            net_income=total - gst,
            by_payment_method=by_method,
        )
