"""
Прикладной слой контекста расчетов.

Выезд выполняется в два шага: compute_bill показывает оператору расчет
без изменений в хранилище, checkout(confirmed=True) фиксирует выезд.
Закрытие проживания и перевод номеров в уборку выполняются в одной
единице работы; запись в бухгалтерию отправляется после фиксации и
при ошибке не отменяет выезд.
"""

from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Callable, Dict, List, Optional

from accommodation import interfaces as accommodation_ports
from accommodation.application import StayDTO, publish_events
from accommodation.domain import Room, RoomRegistry, StayCheckout, StayLedger
from accommodation.infrastructure import ConsoleLogger, retry_read
from pydantic import BaseModel, Field
from shared_kernel import (
    DomainException,
    EntityId,
    PaymentMethod,
    PersistenceException,
    ResortSettings,
    RoomStatus,
    ValidationException,
    now,
)
from shared_kernel.pricing import parse_amount

from . import interfaces as ports
from .domain import BillBreakdown, BillingPolicy, FinanceRecord, RevenueReport


class CheckoutResult(BaseModel):
    """Результат выезда."""

    stay: StayDTO
    bill: BillBreakdown
    finance_record_id: Optional[EntityId] = None
    warnings: List[str] = Field(default_factory=list)


def _parse_override(value: Any, field_name: str) -> Optional[Decimal]:
    amount = parse_amount(value, field_name)
    if amount is not None and amount < 0:
        raise ValidationException(f"Поле '{field_name}' не может быть отрицательным")
    return amount


class CheckoutApplicationService:
    """Сервис приложения: расчет и оформление выезда."""

    def __init__(
        self,
        uow: accommodation_ports.IAccommodationUnitOfWork,
        finance_records: ports.IFinanceRecordRepository,
        settings: Optional[ResortSettings] = None,
        logger: Optional[accommodation_ports.ILogger] = None,
        clock: Callable[[], datetime] = now,
    ):
        """Инициализирует сервис."""
        self._uow = uow
        self._finance_records = finance_records
        self._settings = settings or ResortSettings()
        self._logger = logger or ConsoleLogger()
        self._clock = clock
        self._registry = RoomRegistry(uow.rooms)
        self._ledger = StayLedger(uow.stays, uow.rooms, currency=self._settings.currency)
        self._policy = BillingPolicy(
            hourly_late_fee=self._settings.hourly_late_fee,
            currency=self._settings.currency,
        )

    def _known_rooms(self, room_ids: List[EntityId]) -> Dict[EntityId, Room]:
        rooms = {}
        for room_id in room_ids:
            room = self._uow.rooms.get_by_id(room_id)
            if room is not None:
                rooms[room_id] = room
        return rooms

    def _bill(
        self,
        stay_id: EntityId,
        at: datetime,
        extra_charge_override: Any,
        total_override: Any,
    ) -> BillBreakdown:
        stay = self._ledger.get_stay(stay_id)
        return self._policy.compute_bill(
            stay,
            self._known_rooms(stay.room_ids),
            at=at,
            extra_charge_override=_parse_override(extra_charge_override, "ручная доплата"),
            total_override=_parse_override(total_override, "ручной итог"),
        )

    def compute_bill(
        self,
        stay_id: EntityId,
        extra_charge_override: Any = None,
        total_override: Any = None,
    ) -> BillBreakdown:
        """Рассчитывает счет для показа оператору. Ничего не сохраняет."""
        return self._bill(stay_id, self._clock(), extra_charge_override, total_override)

    def checkout(
        self,
        stay_id: EntityId,
        confirmed: bool = False,
        extra_charge_override: Any = None,
        total_override: Any = None,
        payment_method: Optional[PaymentMethod] = None,
    ) -> CheckoutResult:
        """Оформляет выезд после подтверждения суммы оператором."""
        try:
            if not confirmed:
                raise ValidationException("Подтвердите сумму к оплате перед выездом")
            try:
                method = PaymentMethod(payment_method or self._settings.default_payment_method)
            except ValueError:
                raise ValidationException(
                    f"Неизвестный способ оплаты: {payment_method}"
                ) from None

            with self._uow:
                checkout_at = self._clock()
                bill = self._bill(stay_id, checkout_at, extra_charge_override, total_override)
                stay = self._ledger.close_stay(
                    stay_id,
                    StayCheckout(
                        check_out_at=checkout_at,
                        extra_hours=bill.extra_hours,
                        extra_charge=bill.applied_extra_charge,
                        total_charge=bill.computed_total,
                        payment_method=method,
                    ),
                )
                room_events = [
                    self._registry.set_status(
                        room_id,
                        RoomStatus.HOUSEKEEPING,
                        expected_status=RoomStatus.OCCUPIED,
                    )
                    for room_id in stay.room_ids
                ]
        except ValidationException as e:
            self._logger.warning(f"Выезд отклонен: {str(e)}")
            raise
        except (DomainException, PersistenceException) as e:
            self._logger.error(f"Ошибка при выселении гостя: {str(e)}")
            raise

        publish_events(self._uow.event_bus, stay.domain_events + room_events)
        stay.clear_events()

        self._logger.info(
            f"Гость {stay.guest.name} выселен",
            stay_id=stay.id,
            total=str(bill.computed_total),
            override=bill.override.value if bill.override else None,
        )

        result = CheckoutResult(stay=StayDTO.from_domain(stay), bill=bill)
        self._record_payment(stay, bill, method, result)
        return result

    def _record_payment(self, stay, bill, method, result: CheckoutResult) -> None:
        """Отправляет запись в бухгалтерию; ошибка не отменяет выезд."""
        try:
            record = FinanceRecord.from_checkout(
                stay, bill, method, recorded_at=stay.check_out_at
            )
            self._finance_records.add(record)
        except Exception as e:
            message = f"Финансовая запись по гостю {stay.guest.name} не сохранена: {e}"
            self._logger.warning(message, stay_id=stay.id)
            result.warnings.append(message)
            return
        result.finance_record_id = record.id


class AccountsApplicationService:
    """Сервис приложения: журнал поступлений и отчет по выручке."""

    def __init__(
        self,
        finance_records: ports.IFinanceRecordRepository,
        settings: Optional[ResortSettings] = None,
        logger: Optional[accommodation_ports.ILogger] = None,
    ):
        """Инициализирует сервис."""
        self._finance_records = finance_records
        self._settings = settings or ResortSettings()
        self._logger = logger or ConsoleLogger()

    def list_records(
        self, start: Optional[date] = None, end: Optional[date] = None
    ) -> List[FinanceRecord]:
        """Записи за период с start по end включительно (даты в UTC)."""
        start_at = datetime.combine(start, time.min, tzinfo=timezone.utc) if start else None
        end_at = (
            datetime.combine(end + timedelta(days=1), time.min, tzinfo=timezone.utc)
            if end
            else None
        )
        return retry_read(
            lambda: self._finance_records.list(start_at, end_at),
            attempts=self._settings.read_retry_attempts,
            backoff=self._settings.read_retry_backoff,
            logger=self._logger,
        )

    def revenue_report(
        self,
        start: Optional[date] = None,
        end: Optional[date] = None,
        gst_rate: Any = None,
    ) -> RevenueReport:
        """Выручка, средний чек и GST за период."""
        rate = parse_amount(gst_rate, "ставка GST")
        if rate is None:
            rate = self._settings.gst_rate
        if not Decimal(0) <= rate <= Decimal(100):
            raise ValidationException(f"Ставка GST должна быть от 0 до 100: {rate}")

        return RevenueReport.build(
            self.list_records(start, end),
            gst_rate=rate,
            currency=self._settings.currency,
            period_start=start,
            period_end=end,
        )
