"""
Интеграционные тесты выезда гостя и журнала поступлений.
"""

from datetime import date, timedelta
from decimal import Decimal
from uuid import uuid4

import pytest
from billing.application import CheckoutApplicationService
from billing.domain import BillOverride
from shared_kernel import (
    InvalidStateException,
    NotFoundException,
    PaymentMethod,
    RoomStatus,
    StayStatus,
    ValidationException,
)

from conftest import START


class BrokenFinanceRepository:
    """Бухгалтерия недоступна."""

    def add(self, record):
        raise ConnectionError("accounts backend unavailable")

    def list(self, start=None, end=None):
        return []


class TestComputeBill:
    """Тесты предварительного расчета счета."""

    def test_preview_changes_nothing(
        self, check_in, checkout_service, clock, stays_repo, rooms_by_number
    ):
        stay = check_in(5, days=1, price=4800)
        clock.advance(hours=25)

        bill = checkout_service.compute_bill(stay.id)

        assert bill.extra_hours == 1
        assert bill.computed_total.amount == Decimal(5000)
        assert stays_repo.get_by_id(stay.id).status == StayStatus.CHECKED_IN
        assert rooms_by_number(5).status == RoomStatus.OCCUPIED

    def test_preview_with_overrides(self, check_in, checkout_service, clock):
        stay = check_in(5, days=1, price=4800)
        clock.advance(hours=25)

        bill = checkout_service.compute_bill(stay.id, extra_charge_override="300")
        assert bill.computed_total.amount == Decimal(5100)

        bill = checkout_service.compute_bill(
            stay.id, extra_charge_override="300", total_override="9999"
        )
        assert bill.computed_total.amount == Decimal(9999)
        assert bill.override == BillOverride.TOTAL

    def test_blank_overrides_are_ignored(self, check_in, checkout_service, clock):
        stay = check_in(1, days=1)
        clock.advance(hours=2)

        bill = checkout_service.compute_bill(stay.id, extra_charge_override="", total_override=" ")

        assert bill.override is None
        assert bill.computed_total.amount == Decimal(2800)

    @pytest.mark.parametrize(
        "extra, total", [("-5", None), (None, "-1"), ("abc", None), (None, "много")]
    )
    def test_invalid_overrides(self, check_in, checkout_service, extra, total):
        stay = check_in(1)

        with pytest.raises(ValidationException):
            checkout_service.compute_bill(stay.id, extra, total)

    def test_unknown_stay(self, checkout_service):
        with pytest.raises(NotFoundException):
            checkout_service.compute_bill(uuid4())


class TestCheckout:
    """Тесты оформления выезда."""

    def test_requires_confirmation(self, check_in, checkout_service, stays_repo):
        stay = check_in(1)

        with pytest.raises(ValidationException):
            checkout_service.checkout(stay.id)

        assert stays_repo.get_by_id(stay.id).status == StayStatus.CHECKED_IN

    def test_full_checkout(
        self,
        check_in,
        checkout_service,
        clock,
        rooms_by_number,
        finance_repo,
        housekeeping,
        assert_consistent,
        logger,
    ):
        # Подготовка
        stay = check_in(1, 3, days=2)
        checkout_at = clock.advance(hours=49)

        # Действие
        result = checkout_service.checkout(stay.id, confirmed=True)

        # Проверка
        assert result.stay.status == StayStatus.CHECKED_OUT
        assert result.stay.check_out_at == checkout_at
        assert result.stay.extra_hours == 1
        assert result.stay.total_charge.amount == Decimal(14800)
        assert result.stay.payment_method == PaymentMethod.CASH
        assert result.warnings == []
        for number in (1, 3):
            room = rooms_by_number(number)
            assert room.status == RoomStatus.HOUSEKEEPING
            assert room.stay_id is None
        assert sorted(housekeeping.pending()) == ["Room 1", "Room 3"]
        assert "Оповещение об уборке отправлено: Room 1" in logger.messages("INFO")

        records = finance_repo.list()
        assert len(records) == 1
        assert records[0].id == result.finance_record_id
        assert records[0].guest_id == stay.id
        assert records[0].total_amount.amount == Decimal(14800)
        assert records[0].recorded_at == checkout_at
        assert_consistent()

    def test_checkout_with_total_override_and_card(
        self, check_in, checkout_service, clock, finance_repo
    ):
        stay = check_in(5, days=1)
        clock.advance(hours=30)

        result = checkout_service.checkout(
            stay.id,
            confirmed=True,
            extra_charge_override=0,
            total_override="6500",
            payment_method=PaymentMethod.CARD,
        )

        assert result.bill.override == BillOverride.TOTAL
        assert result.stay.total_charge.amount == Decimal(6500)
        assert result.stay.extra_charge.amount == Decimal(0)
        record = finance_repo.list()[0]
        assert record.payment_method == PaymentMethod.CARD
        assert record.total_amount.amount == Decimal(6500)

    def test_second_checkout_is_rejected(
        self, check_in, checkout_service, clock, finance_repo, stays_repo
    ):
        stay = check_in(2)
        clock.advance(hours=3)
        first = checkout_service.checkout(stay.id, confirmed=True)
        clock.advance(hours=3)

        with pytest.raises(InvalidStateException):
            checkout_service.checkout(stay.id, confirmed=True)

        assert stays_repo.get_by_id(stay.id).check_out_at == first.stay.check_out_at
        assert len(finance_repo.list()) == 1

    def test_unknown_stay(self, checkout_service, logger):
        with pytest.raises(NotFoundException):
            checkout_service.checkout(uuid4(), confirmed=True)
        assert logger.messages("ERROR")

    def test_unknown_payment_method(self, check_in, checkout_service, stays_repo):
        stay = check_in(2)

        with pytest.raises(ValidationException):
            checkout_service.checkout(stay.id, confirmed=True, payment_method="cheque")
        assert stays_repo.get_by_id(stay.id).is_active()

    def test_negative_override_changes_nothing(
        self, check_in, checkout_service, stays_repo, rooms_by_number
    ):
        stay = check_in(2)

        with pytest.raises(ValidationException):
            checkout_service.checkout(stay.id, confirmed=True, total_override=-100)

        assert stays_repo.get_by_id(stay.id).is_active()
        assert rooms_by_number(2).status == RoomStatus.OCCUPIED

    def test_finance_failure_does_not_undo_checkout(
        self, uow, settings, logger, clock, check_in, rooms_by_number, stays_repo
    ):
        service = CheckoutApplicationService(
            uow, BrokenFinanceRepository(), settings=settings, logger=logger, clock=clock
        )
        stay = check_in(4)
        clock.advance(hours=5)

        result = service.checkout(stay.id, confirmed=True)

        assert result.finance_record_id is None
        assert len(result.warnings) == 1
        assert "accounts backend unavailable" in result.warnings[0]
        assert result.warnings[0] in logger.messages("WARNING")
        assert stays_repo.get_by_id(stay.id).status == StayStatus.CHECKED_OUT
        assert rooms_by_number(4).status == RoomStatus.HOUSEKEEPING

    def test_room_round_trip_to_free(
        self,
        check_in,
        checkout_service,
        room_service,
        booking_service,
        clock,
        housekeeping,
        rooms_by_number,
        assert_consistent,
    ):
        stay = check_in(6)
        clock.advance(hours=10)
        checkout_service.checkout(stay.id, confirmed=True)

        room_service.mark_cleaned(rooms_by_number(6).id)

        assert rooms_by_number(6).status == RoomStatus.FREE
        assert housekeeping.pending() == []
        assert booking_service.toggle_room(rooms_by_number(6).id) is True
        assert_consistent()


class TestAccounts:
    """Тесты журнала поступлений и отчета по выручке."""

    def checkout_guest(self, check_in, checkout_service, clock, number, total, method):
        stay = check_in(number)
        clock.advance(hours=1)
        return checkout_service.checkout(
            stay.id, confirmed=True, total_override=total, payment_method=method
        )

    def test_revenue_report_for_day(
        self, check_in, checkout_service, accounts_service, clock
    ):
        self.checkout_guest(check_in, checkout_service, clock, 1, 7500, PaymentMethod.CASH)
        self.checkout_guest(check_in, checkout_service, clock, 2, 3000, PaymentMethod.UPI)

        report = accounts_service.revenue_report(START.date(), START.date())

        assert report.records_count == 2
        assert report.total_revenue.amount == Decimal(10500)
        assert report.average_ticket.amount == Decimal(5250)
        assert report.gst_collected.amount == Decimal("1890.00")
        assert report.net_income.amount == Decimal(8610)
        assert report.period_start == START.date()

    def test_list_records_end_date_is_inclusive(
        self, check_in, checkout_service, accounts_service, clock
    ):
        self.checkout_guest(check_in, checkout_service, clock, 1, 7500, PaymentMethod.CASH)
        clock.advance(days=2)
        self.checkout_guest(check_in, checkout_service, clock, 2, 3000, PaymentMethod.CASH)

        assert len(accounts_service.list_records(START.date(), START.date())) == 1
        assert len(accounts_service.list_records(START.date(), date(2026, 10, 21))) == 2
        assert len(accounts_service.list_records()) == 2
        later = accounts_service.list_records(START.date() + timedelta(days=1))
        assert [r.total_amount.amount for r in later] == [Decimal(3000)]

    def test_custom_gst_rate(self, check_in, checkout_service, accounts_service, clock):
        self.checkout_guest(check_in, checkout_service, clock, 1, 10000, PaymentMethod.CARD)

        report = accounts_service.revenue_report(gst_rate="12")

        assert report.gst_collected.amount == Decimal("1200.00")
        assert report.net_income.amount == Decimal(8800)

    @pytest.mark.parametrize("rate", ["-1", "101", "abc"])
    def test_invalid_gst_rate(self, accounts_service, rate):
        with pytest.raises(ValidationException):
            accounts_service.revenue_report(gst_rate=rate)
