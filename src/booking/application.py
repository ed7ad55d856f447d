"""
Прикладной слой контекста бронирования.

Координирует выбор номеров оператором и заселение гостя:
запись о проживании и перевод номеров в статус "занят"
выполняются в одной единице работы.
"""

from datetime import datetime
from typing import Any, Callable, List, Optional

from accommodation import interfaces as ports
from accommodation.application import RoomDTO, StayDTO, publish_events
from accommodation.domain import GuestInfo, RoomRegistry, StayLedger
from accommodation.infrastructure import ConsoleLogger, retry_read
from shared_kernel import (
    BusinessRuleValidationException,
    DomainException,
    EntityId,
    InvalidSelectionException,
    Money,
    PersistenceException,
    ResortSettings,
    RoomStatus,
    ValidationException,
    now,
)
from shared_kernel.pricing import parse_amount

from .domain import BookingSession


def parse_days(value: Any) -> int:
    """Количество суток: целое число не меньше одного."""
    amount = parse_amount(value, "количество суток")
    if amount is None or amount != amount.to_integral_value() or amount < 1:
        raise ValidationException(f"Некорректное количество суток: {value}")
    return int(amount)


class BookingApplicationService:
    """Сервис приложения: выбор номеров и заселение гостя."""

    def __init__(
        self,
        uow: ports.IAccommodationUnitOfWork,
        session: Optional[BookingSession] = None,
        settings: Optional[ResortSettings] = None,
        logger: Optional[ports.ILogger] = None,
        clock: Callable[[], datetime] = now,
    ):
        """Инициализирует сервис."""
        self._uow = uow
        self._settings = settings or ResortSettings()
        self._session = session or BookingSession(currency=self._settings.currency)
        self._logger = logger or ConsoleLogger()
        self._clock = clock
        self._registry = RoomRegistry(uow.rooms)
        self._ledger = StayLedger(uow.stays, uow.rooms, currency=self._settings.currency)

    @property
    def session(self) -> BookingSession:
        return self._session

    def selected_rooms(self) -> List[RoomDTO]:
        return [RoomDTO.from_domain(room) for room in self._session.rooms]

    def refresh(self) -> List[RoomDTO]:
        """Перечитывает номерной фонд и убирает из выбора занятые номера."""
        rooms = retry_read(
            self._registry.list_rooms,
            attempts=self._settings.read_retry_attempts,
            backoff=self._settings.read_retry_backoff,
            logger=self._logger,
        )
        dropped = self._session.reconcile(rooms)
        if dropped:
            self._logger.warning(
                "Номера больше недоступны и убраны из выбора",
                rooms=[room.name for room in dropped],
            )
        return [RoomDTO.from_domain(room) for room in rooms]

    def toggle_room(self, room_id: EntityId) -> bool:
        """Отмечает номер или снимает отметку. Возвращает True, если номер выбран."""
        room = self._registry.get_room(room_id)
        try:
            return self._session.toggle_room(room)
        except InvalidSelectionException as e:
            self._logger.warning(str(e))
            raise

    def compute_total(self, days: Any, manual_price_override: Any = None) -> Money:
        """Стоимость выбранных номеров (для показа оператору до заселения)."""
        return self._session.compute_total(days, manual_price_override)

    def cancel(self) -> None:
        """Сбрасывает выбор номеров."""
        self._session.clear()

    def confirm_check_in(
        self,
        guest: GuestInfo,
        days: Any,
        manual_price_override: Any = None,
    ) -> StayDTO:
        """Заселяет гостя в выбранные номера.

        При любой ошибке хранилище откатывается, а выбор номеров остается
        прежним, чтобы оператор мог исправить данные и повторить. Если номер
        успел занять другой оператор, он убирается из выбора.
        """
        try:
            if self._session.is_empty():
                raise InvalidSelectionException("Выберите хотя бы один номер")
            if not guest.name:
                raise ValidationException("Укажите имя гостя")
            booked_days = parse_days(days)
            override = self._session.price_override(manual_price_override)

            with self._uow:
                stay = self._ledger.create_stay(
                    guest=guest,
                    room_ids=self._session.room_ids,
                    booked_days=booked_days,
                    base_amount_override=override,
                    check_in_at=self._clock(),
                )
                room_events = [
                    self._registry.set_status(
                        room_id,
                        RoomStatus.OCCUPIED,
                        expected_status=RoomStatus.FREE,
                        stay_id=stay.id,
                    )
                    for room_id in stay.room_ids
                ]
        except (ValidationException, BusinessRuleValidationException) as e:
            self._logger.warning(f"Заселение отклонено: {str(e)}")
            if isinstance(e, InvalidSelectionException):
                self._drop_unavailable()
            raise
        except (DomainException, PersistenceException) as e:
            self._logger.error(f"Ошибка при заселении гостя: {str(e)}")
            raise

        publish_events(self._uow.event_bus, stay.domain_events + room_events)
        stay.clear_events()
        self._session.clear()

        self._logger.info(
            f"Гость {stay.guest.name} заселен",
            stay_id=stay.id,
            rooms=[event.room_name for event in room_events],
            base_amount=str(stay.base_amount),
        )
        return StayDTO.from_domain(stay)

    def _drop_unavailable(self) -> None:
        try:
            self.refresh()
        except PersistenceException as e:
            self._logger.warning(f"Не удалось обновить выбор номеров: {str(e)}")
