from typing import Optional

from accommodation.application import RoomApplicationService, StayApplicationService
from accommodation.domain import RoomStatusChanged
from accommodation.event_handlers import HousekeepingBoard
from accommodation.infrastructure import (
    AccommodationUnitOfWork,
    ConsoleLogger,
    InMemoryEventBus,
    InMemoryRoomRepository,
    InMemoryStayRepository,
    JsonFileRoomRepository,
    JsonFileStayRepository,
    generate_room_inventory,
)
from billing.application import AccountsApplicationService, CheckoutApplicationService
from billing.infrastructure import (
    InMemoryFinanceRecordRepository,
    JsonFileFinanceRecordRepository,
)
from booking.application import BookingApplicationService
from shared_kernel import ResortSettings, RoomStatus, get_settings


def bootstrap_app(
    settings: Optional[ResortSettings] = None, logger: Optional[ConsoleLogger] = None
):
    """Создает и настраивает все компоненты приложения."""
    settings = settings or get_settings()
    logger = logger or ConsoleLogger()

    # 1. Хранилища: JSON-файлы, если задан каталог данных, иначе память процесса
    if settings.data_dir is not None:
        rooms_repo = JsonFileRoomRepository(settings.data_dir / "rooms.json", settings)
        stays_repo = JsonFileStayRepository(settings.data_dir / "stays.json")
        finance_repo = JsonFileFinanceRecordRepository(settings.data_dir / "accounts.json")
    else:
        rooms_repo = InMemoryRoomRepository(generate_room_inventory(settings))
        stays_repo = InMemoryStayRepository()
        finance_repo = InMemoryFinanceRecordRepository()

    # 2. Единица работы общая для заселения, выезда и управления номерами
    event_bus = InMemoryEventBus(logger)
    uow = AccommodationUnitOfWork(
        rooms_repo=rooms_repo, stays_repo=stays_repo, event_bus=event_bus, logger=logger
    )

    # 3. Подписываем обработчики на события
    housekeeping = HousekeepingBoard(logger)
    housekeeping.seed(rooms_repo.list(RoomStatus.HOUSEKEEPING))
    event_bus.subscribe(RoomStatusChanged, housekeeping.on_room_status_changed)

    return {
        "uow": uow,
        "housekeeping": housekeeping,
        "rooms": RoomApplicationService(uow, settings=settings, logger=logger),
        "stays": StayApplicationService(uow, settings=settings, logger=logger),
        "booking": BookingApplicationService(uow, settings=settings, logger=logger),
        "checkout": CheckoutApplicationService(
            uow, finance_repo, settings=settings, logger=logger
        ),
        "accounts": AccountsApplicationService(finance_repo, settings=settings, logger=logger),
    }
