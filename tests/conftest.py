"""
Конфигурация тестов для pytest.
Добавляет каталог src в PYTHONPATH и предоставляет общие фикстуры.
"""
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Добавляем каталог с исходным кодом в PYTHONPATH
src_dir = str(Path(__file__).parent.parent / "src")
if src_dir not in sys.path:
    sys.path.insert(0, src_dir)

from accommodation.application import RoomApplicationService, StayApplicationService  # noqa: E402
from accommodation.domain import GuestInfo, RoomStatusChanged  # noqa: E402
from accommodation.event_handlers import HousekeepingBoard  # noqa: E402
from accommodation.infrastructure import (  # noqa: E402
    AccommodationUnitOfWork,
    InMemoryEventBus,
    InMemoryRoomRepository,
    InMemoryStayRepository,
    generate_room_inventory,
)
from billing.application import (  # noqa: E402
    AccountsApplicationService,
    CheckoutApplicationService,
)
from billing.infrastructure import InMemoryFinanceRecordRepository  # noqa: E402
from booking.application import BookingApplicationService  # noqa: E402
from shared_kernel import ResortSettings, RoomStatus, StayStatus  # noqa: E402

START = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)


class RecordingLogger:
    """Логгер, запоминающий сообщения для проверок в тестах."""

    def __init__(self):
        self.records = []

    def _record(self, level, message, **kwargs):
        self.records.append((level, message, kwargs))

    def info(self, message, **kwargs):
        self._record("INFO", message, **kwargs)

    def error(self, message, **kwargs):
        self._record("ERROR", message, **kwargs)

    def warning(self, message, **kwargs):
        self._record("WARNING", message, **kwargs)

    def debug(self, message, **kwargs):
        self._record("DEBUG", message, **kwargs)

    def messages(self, level):
        return [message for lvl, message, _ in self.records if lvl == level]


class FakeClock:
    """Управляемые часы."""

    def __init__(self, start: datetime = START):
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> datetime:
        self.current += timedelta(**kwargs)
        return self.current


@pytest.fixture
def settings() -> ResortSettings:
    """6 номеров: 1-2 Deluxe, 3-4 Executive, 5-6 Suite."""
    return ResortSettings(room_count=6, read_retry_backoff=0)


@pytest.fixture
def logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def rooms_repo(settings) -> InMemoryRoomRepository:
    return InMemoryRoomRepository(generate_room_inventory(settings))


@pytest.fixture
def stays_repo() -> InMemoryStayRepository:
    return InMemoryStayRepository()


@pytest.fixture
def finance_repo() -> InMemoryFinanceRecordRepository:
    return InMemoryFinanceRecordRepository()


@pytest.fixture
def event_bus(logger) -> InMemoryEventBus:
    return InMemoryEventBus(logger)


@pytest.fixture
def housekeeping(event_bus, logger) -> HousekeepingBoard:
    board = HousekeepingBoard(logger)
    event_bus.subscribe(RoomStatusChanged, board.on_room_status_changed)
    return board


@pytest.fixture
def uow(rooms_repo, stays_repo, event_bus, logger, housekeeping) -> AccommodationUnitOfWork:
    return AccommodationUnitOfWork(
        rooms_repo=rooms_repo, stays_repo=stays_repo, event_bus=event_bus, logger=logger
    )


@pytest.fixture
def room_service(uow, settings, logger) -> RoomApplicationService:
    return RoomApplicationService(uow, settings=settings, logger=logger)


@pytest.fixture
def stay_service(uow, settings, logger) -> StayApplicationService:
    return StayApplicationService(uow, settings=settings, logger=logger)


@pytest.fixture
def booking_service(uow, settings, logger, clock) -> BookingApplicationService:
    return BookingApplicationService(uow, settings=settings, logger=logger, clock=clock)


@pytest.fixture
def checkout_service(uow, finance_repo, settings, logger, clock) -> CheckoutApplicationService:
    return CheckoutApplicationService(
        uow, finance_repo, settings=settings, logger=logger, clock=clock
    )


@pytest.fixture
def accounts_service(finance_repo, settings, logger) -> AccountsApplicationService:
    return AccountsApplicationService(finance_repo, settings=settings, logger=logger)


@pytest.fixture
def rooms_by_number(rooms_repo):
    """Возвращает функцию: номер комнаты -> актуальная копия номера."""

    def get(number: int):
        return next(room for room in rooms_repo.list() if room.number == number)

    return get


@pytest.fixture
def guest() -> GuestInfo:
    return GuestInfo(name="Asha Rao", address="12 MG Road, Pune", id_proof="P1234567")


@pytest.fixture
def check_in(booking_service, rooms_by_number, guest):
    """Возвращает функцию заселения гостя в номера с указанными номерами."""

    def do_check_in(*numbers: int, days=1, price=None, guest_info=None):
        for number in numbers:
            booking_service.toggle_room(rooms_by_number(number).id)
        return booking_service.confirm_check_in(guest_info or guest, days, price)

    return do_check_in


@pytest.fixture
def assert_consistent(rooms_repo, stays_repo):
    """Проверяет согласованность: номер занят тогда и только тогда,
    когда он принадлежит ровно одному активному проживанию."""

    def check():
        active = stays_repo.list(StayStatus.CHECKED_IN)
        owners = {}
        for stay in active:
            for room_id in stay.room_ids:
                assert room_id not in owners, "Номер в двух активных проживаниях"
                owners[room_id] = stay.id
        for room in rooms_repo.list():
            if room.status == RoomStatus.OCCUPIED:
                assert owners.get(room.id) == room.stay_id
            else:
                assert room.id not in owners
                assert room.stay_id is None

    return check
