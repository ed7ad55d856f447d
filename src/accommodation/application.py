"""
Прикладной слой контекста проживания.

Содержит сервисы приложения, которые координируют
взаимодействие между внешними интерфейсами и доменной моделью.
"""

from datetime import datetime
from typing import Iterable, List, Optional

from pydantic import BaseModel
from shared_kernel import (
    DomainEvent,
    DomainException,
    EntityId,
    InvalidStateException,
    Money,
    PaymentMethod,
    PersistenceException,
    ResortSettings,
    RoomCategory,
    RoomStatus,
    StayStatus,
    ValidationException,
)

from . import interfaces as ports
from .domain import Room, RoomRegistry, Stay, StayLedger
from .infrastructure import ConsoleLogger, retry_read

# Статусы, которые оператор может выставить вручную
MANUAL_STATUSES = (RoomStatus.MAINTENANCE, RoomStatus.FREE)


# DTO для исходящих данных


class RoomDTO(BaseModel):
    """DTO для представления номера."""

    id: EntityId
    number: int
    name: str
    category: RoomCategory
    price_per_day: Money
    status: RoomStatus
    stay_id: Optional[EntityId]

    @classmethod
    def from_domain(cls, room: Room) -> "RoomDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=room.id,
            number=room.number,
            name=room.name,
            category=room.category,
            price_per_day=room.price_per_day,
            status=room.status,
            stay_id=room.stay_id,
        )


class StayDTO(BaseModel):
    """DTO для представления проживания."""

    id: EntityId
    guest_name: str
    address: str
    id_proof: str
    room_ids: List[EntityId]
    check_in_at: datetime
    booked_days: int
    base_amount: Money
    status: StayStatus
    check_out_at: Optional[datetime] = None
    extra_hours: Optional[int] = None
    extra_charge: Optional[Money] = None
    total_charge: Optional[Money] = None
    payment_method: Optional[PaymentMethod] = None

    @classmethod
    def from_domain(cls, stay: Stay) -> "StayDTO":
        """Создает DTO из доменной модели."""
        return cls(
            id=stay.id,
            guest_name=stay.guest.name,
            address=stay.guest.address,
            id_proof=stay.guest.id_proof,
            room_ids=list(stay.room_ids),
            check_in_at=stay.check_in_at,
            booked_days=stay.booked_days,
            base_amount=stay.base_amount,
            status=stay.status,
            check_out_at=stay.check_out_at,
            extra_hours=stay.extra_hours,
            extra_charge=stay.extra_charge,
            total_charge=stay.total_charge,
            payment_method=stay.payment_method,
        )


def publish_events(event_bus: ports.IEventBus, events: Iterable[DomainEvent]) -> None:
    """Публикует события после фиксации транзакции."""
    for event in events:
        event_bus.publish(event)


# Сервисы приложения


class RoomApplicationService:
    """Сервис приложения для работы с номерами."""

    def __init__(
        self,
        uow: ports.IAccommodationUnitOfWork,
        settings: Optional[ResortSettings] = None,
        logger: Optional[ports.ILogger] = None,
    ):
        """Инициализирует сервис."""
        self._uow = uow
        self._settings = settings or ResortSettings()
        self._logger = logger or ConsoleLogger()
        self._registry = RoomRegistry(uow.rooms)

    def list_rooms(self, status: Optional[RoomStatus] = None) -> List[RoomDTO]:
        """Возвращает номерной фонд, при необходимости с фильтром по статусу."""
        rooms = retry_read(
            lambda: self._registry.list_rooms(status),
            attempts=self._settings.read_retry_attempts,
            backoff=self._settings.read_retry_backoff,
            logger=self._logger,
        )
        return [RoomDTO.from_domain(room) for room in rooms]

    def get_room(self, room_id: EntityId) -> RoomDTO:
        """Возвращает информацию о номере."""
        return RoomDTO.from_domain(self._registry.get_room(room_id))

    def list_housekeeping(self) -> List[RoomDTO]:
        """Номера, ожидающие уборки."""
        return self.list_rooms(RoomStatus.HOUSEKEEPING)

    def mark_cleaned(self, room_id: EntityId) -> RoomDTO:
        """Отмечает номер убранным: housekeeping -> free."""
        try:
            with self._uow:
                event = self._registry.set_status(
                    room_id, RoomStatus.FREE, expected_status=RoomStatus.HOUSEKEEPING
                )
        except (DomainException, PersistenceException) as e:
            self._logger.error(f"Ошибка при отметке уборки номера: {str(e)}")
            raise

        publish_events(self._uow.event_bus, [event])
        self._logger.info(f"Номер {event.room_name} убран и свободен")
        return self.get_room(room_id)

    def override_status(self, room_id: EntityId, new_status: RoomStatus) -> RoomDTO:
        """Ручная смена статуса администратором (обслуживание и возврат из него).

        Занятый номер вручную не меняется: он принадлежит активному
        проживанию и освобождается только через выезд.
        """
        try:
            new_status = RoomStatus(new_status)
        except ValueError:
            raise ValidationException(f"Неизвестный статус номера: {new_status}") from None
        if new_status not in MANUAL_STATUSES:
            raise ValidationException(
                f"Статус {new_status.value} нельзя установить вручную"
            )

        try:
            with self._uow:
                room = self._registry.get_room(room_id)
                if room.status == RoomStatus.OCCUPIED:
                    raise InvalidStateException(
                        f"Номер {room.name} занят гостем, сначала оформите выезд"
                    )
                event = self._registry.set_status(
                    room_id, new_status, expected_status=room.status
                )
        except (DomainException, PersistenceException) as e:
            self._logger.error(f"Ошибка при ручной смене статуса номера: {str(e)}")
            raise

        publish_events(self._uow.event_bus, [event])
        self._logger.info(
            f"Статус номера {event.room_name} изменен вручную",
            old_status=event.old_status.value,
            new_status=event.new_status.value,
        )
        return self.get_room(room_id)


class StayApplicationService:
    """Сервис приложения для просмотра журнала проживаний."""

    def __init__(
        self,
        uow: ports.IAccommodationUnitOfWork,
        settings: Optional[ResortSettings] = None,
        logger: Optional[ports.ILogger] = None,
    ):
        """Инициализирует сервис."""
        self._uow = uow
        self._settings = settings or ResortSettings()
        self._logger = logger or ConsoleLogger()
        self._ledger = StayLedger(uow.stays, uow.rooms, currency=self._settings.currency)

    def _read(self, operation):
        return retry_read(
            operation,
            attempts=self._settings.read_retry_attempts,
            backoff=self._settings.read_retry_backoff,
            logger=self._logger,
        )

    def get_stay(self, stay_id: EntityId) -> StayDTO:
        """Возвращает информацию о проживании."""
        return StayDTO.from_domain(self._ledger.get_stay(stay_id))

    def list_active(self) -> List[StayDTO]:
        """Возвращает список текущих гостей."""
        return [StayDTO.from_domain(s) for s in self._read(self._ledger.list_active)]

    def list_history(self) -> List[StayDTO]:
        """Возвращает список выехавших гостей."""
        return [StayDTO.from_domain(s) for s in self._read(self._ledger.list_history)]
