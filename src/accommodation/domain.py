"""
Доменная модель контекста проживания.

Содержит номера с их жизненным циклом статусов, записи о проживании
гостей и доменные сервисы: реестр номеров и журнал проживаний.
"""

from datetime import datetime
from typing import Dict, FrozenSet, Iterable, List, Optional

from pydantic import BaseModel, Field, PrivateAttr, field_validator
from shared_kernel import (
    DEFAULT_CURRENCY,
    ConcurrencyException,
    DomainEvent,
    EntityId,
    InvalidSelectionException,
    InvalidStateException,
    Money,
    NotFoundException,
    PaymentMethod,
    RoomCategory,
    RoomStatus,
    StayStatus,
    ValidationException,
    generate_id,
    now,
)
from shared_kernel.pricing import room_total

from .interfaces import IRoomRepository, IStayRepository

# Допустимые переходы статусов номера. Из занятого номера нельзя сразу
# перейти в свободный: после выезда номер обязательно проходит уборку.
ROOM_TRANSITIONS: Dict[RoomStatus, FrozenSet[RoomStatus]] = {
    RoomStatus.FREE: frozenset({RoomStatus.OCCUPIED, RoomStatus.MAINTENANCE}),
    RoomStatus.OCCUPIED: frozenset({RoomStatus.HOUSEKEEPING, RoomStatus.MAINTENANCE}),
    RoomStatus.HOUSEKEEPING: frozenset({RoomStatus.FREE, RoomStatus.MAINTENANCE}),
    RoomStatus.MAINTENANCE: frozenset({RoomStatus.FREE, RoomStatus.MAINTENANCE}),
}


class RoomStatusChanged(DomainEvent):
    """Событие смены статуса номера."""

    room_id: EntityId
    room_name: str
    old_status: RoomStatus
    new_status: RoomStatus


class StayOpened(DomainEvent):
    """Событие заселения гостя."""

    stay_id: EntityId
    guest_name: str
    room_ids: List[EntityId]
    base_amount: Money
    check_in_at: datetime


class StayClosed(DomainEvent):
    """Событие выселения гостя."""

    stay_id: EntityId
    guest_name: str
    room_ids: List[EntityId]
    total_charge: Money
    check_out_at: datetime


class Room(BaseModel):
    """Номер курорта."""

    id: EntityId = Field(default_factory=generate_id)
    number: int = Field(..., gt=0)
    name: str  # Например, "Room 12"
    category: RoomCategory
    price_per_day: Money
    status: RoomStatus = RoomStatus.FREE
    stay_id: Optional[EntityId] = None  # Активное проживание, пока номер занят
    version: int = 0

    def is_free(self) -> bool:
        return self.status == RoomStatus.FREE

    def can_change_to(self, new_status: RoomStatus) -> bool:
        return RoomStatus(new_status) in ROOM_TRANSITIONS[self.status]

    def change_status(
        self, new_status: RoomStatus, stay_id: Optional[EntityId] = None
    ) -> RoomStatusChanged:
        """Переводит номер в новый статус и увеличивает версию."""
        new_status = RoomStatus(new_status)
        if not self.can_change_to(new_status):
            raise InvalidStateException(
                f"Недопустимый переход статуса номера {self.name}: "
                f"{self.status.value} -> {new_status.value}"
            )
        if new_status == RoomStatus.OCCUPIED and stay_id is None:
            raise InvalidStateException(
                f"Номер {self.name} можно занять только в рамках проживания"
            )

        old_status = self.status
        self.status = new_status
        self.stay_id = stay_id if new_status == RoomStatus.OCCUPIED else None
        self.version += 1

        return RoomStatusChanged(
            room_id=self.id,
            room_name=self.name,
            old_status=old_status,
            new_status=new_status,
        )


class GuestInfo(BaseModel):
    """Данные гостя, введенные при заселении."""

    name: str = ""
    address: str = ""
    id_proof: str = ""  # Номер паспорта или другого документа

    @field_validator("name", "address", "id_proof", mode="before")
    @classmethod
    def strip_text(cls, v):
        if v is None:
            return ""
        return str(v).strip()


class StayCheckout(BaseModel):
    """Итог выезда, фиксируемый в записи о проживании."""

    check_out_at: datetime
    extra_hours: int = Field(0, ge=0)
    extra_charge: Money
    total_charge: Money
    payment_method: PaymentMethod = PaymentMethod.CASH


class Stay(BaseModel):
    """Проживание гостя: от заселения до выезда, в одном или нескольких номерах."""

    id: EntityId = Field(default_factory=generate_id)
    guest: GuestInfo
    room_ids: List[EntityId] = Field(..., min_length=1)
    check_in_at: datetime
    booked_days: int = Field(..., ge=1)
    base_amount: Money
    status: StayStatus = StayStatus.CHECKED_IN
    check_out_at: Optional[datetime] = None
    extra_hours: Optional[int] = None
    extra_charge: Optional[Money] = None
    total_charge: Optional[Money] = None
    payment_method: Optional[PaymentMethod] = None
    created_at: datetime = Field(default_factory=now)
    updated_at: datetime = Field(default_factory=now)
    _domain_events: List[DomainEvent] = PrivateAttr(default_factory=list)

    @property
    def domain_events(self) -> List[DomainEvent]:
        """Возвращает список доменных событий."""
        return self._domain_events

    def clear_events(self) -> None:
        """Очищает список доменных событий."""
        self._domain_events = []

    def is_active(self) -> bool:
        return self.status == StayStatus.CHECKED_IN

    @classmethod
    def open(
        cls,
        guest: GuestInfo,
        room_ids: List[EntityId],
        booked_days: int,
        base_amount: Money,
        check_in_at: Optional[datetime] = None,
    ) -> "Stay":
        """Создает запись о заселении."""
        stay = cls(
            guest=guest,
            room_ids=room_ids,
            check_in_at=check_in_at or now(),
            booked_days=booked_days,
            base_amount=base_amount,
        )
        stay._domain_events.append(
            StayOpened(
                stay_id=stay.id,
                guest_name=guest.name,
                room_ids=list(stay.room_ids),
                base_amount=base_amount,
                check_in_at=stay.check_in_at,
            )
        )
        return stay

    def close(self, checkout: StayCheckout) -> None:
        """Закрывает проживание. Повторный выезд запрещен."""
        if self.status != StayStatus.CHECKED_IN:
            raise InvalidStateException(
                f"Невозможно выселить гостя в статусе {self.status.value}"
            )

        self.status = StayStatus.CHECKED_OUT
        self.check_out_at = checkout.check_out_at
        self.extra_hours = checkout.extra_hours
        self.extra_charge = checkout.extra_charge
        self.total_charge = checkout.total_charge
        self.payment_method = checkout.payment_method
        self.updated_at = now()

        self._domain_events.append(
            StayClosed(
                stay_id=self.id,
                guest_name=self.guest.name,
                room_ids=list(self.room_ids),
                total_charge=checkout.total_charge,
                check_out_at=checkout.check_out_at,
            )
        )


class RoomRegistry:
    """Доменный сервис: номерной фонд и статусы номеров.

    Реестр не проверяет связь номеров с проживаниями: это делают
    прикладные сервисы заселения и выезда внутри одной единицы работы.
    """

    def __init__(self, room_repository: IRoomRepository):
        self.room_repository = room_repository

    def list_rooms(self, status: Optional[RoomStatus] = None) -> List[Room]:
        """Возвращает снимок номерного фонда."""
        return sorted(self.room_repository.list(status), key=lambda r: r.number)

    def get_room(self, room_id: EntityId) -> Room:
        room = self.room_repository.get_by_id(room_id)
        if room is None:
            raise NotFoundException(f"Номер {room_id} не найден")
        return room

    def set_status(
        self,
        room_id: EntityId,
        new_status: RoomStatus,
        expected_status: Optional[RoomStatus] = None,
        stay_id: Optional[EntityId] = None,
    ) -> RoomStatusChanged:
        """Меняет статус номера с проверкой ожидаемого текущего статуса."""
        room = self.get_room(room_id)
        if expected_status is not None and room.status != expected_status:
            raise ConcurrencyException(
                f"Статус номера {room.name} изменился: ожидался "
                f"{RoomStatus(expected_status).value}, текущий {room.status.value}"
            )

        expected_version = room.version
        event = room.change_status(new_status, stay_id=stay_id)
        self.room_repository.update(room, expected_version=expected_version)
        return event


class StayLedger:
    """Доменный сервис: журнал проживаний, источник данных для расчетов."""

    def __init__(
        self,
        stay_repository: IStayRepository,
        room_repository: IRoomRepository,
        currency: str = DEFAULT_CURRENCY,
    ):
        self.stay_repository = stay_repository
        self.room_repository = room_repository
        self.currency = currency

    def create_stay(
        self,
        guest: GuestInfo,
        room_ids: Iterable[EntityId],
        booked_days: int,
        base_amount_override: Optional[Money] = None,
        check_in_at: Optional[datetime] = None,
    ) -> Stay:
        """Регистрирует заселение гостя в свободные номера."""
        if not guest.name:
            raise ValidationException("Укажите имя гостя")
        if isinstance(booked_days, bool) or not isinstance(booked_days, int):
            raise ValidationException(f"Некорректное количество суток: {booked_days}")
        if booked_days < 1:
            raise ValidationException("Минимальный срок проживания - 1 сутки")

        # Упорядоченное множество: порядок выбора сохраняется, дубли отбрасываются
        unique_ids = list(dict.fromkeys(room_ids))
        if not unique_ids:
            raise InvalidSelectionException("Выберите хотя бы один номер")

        rooms = []
        for room_id in unique_ids:
            room = self.room_repository.get_by_id(room_id)
            if room is None:
                raise NotFoundException(f"Номер {room_id} не найден")
            rooms.append(room)

        unavailable = [room.name for room in rooms if not room.is_free()]
        if unavailable:
            raise InvalidSelectionException(
                f"Номера недоступны для заселения: {', '.join(unavailable)}"
            )

        base_amount = (
            base_amount_override
            if base_amount_override is not None
            else room_total(rooms, booked_days, currency=self.currency)
        )

        stay = Stay.open(
            guest=guest,
            room_ids=unique_ids,
            booked_days=booked_days,
            base_amount=base_amount,
            check_in_at=check_in_at,
        )
        self.stay_repository.add(stay)
        return stay

    def get_stay(self, stay_id: EntityId) -> Stay:
        stay = self.stay_repository.get_by_id(stay_id)
        if stay is None:
            raise NotFoundException(f"Проживание {stay_id} не найдено")
        return stay

    def close_stay(self, stay_id: EntityId, checkout: StayCheckout) -> Stay:
        """Фиксирует выезд гостя."""
        stay = self.get_stay(stay_id)
        stay.close(checkout)
        self.stay_repository.update(stay)
        return stay

    def list_active(self) -> List[Stay]:
        """Текущие гости, последние заселившиеся первыми."""
        stays = self.stay_repository.list(StayStatus.CHECKED_IN)
        return sorted(stays, key=lambda s: s.check_in_at, reverse=True)

    def list_history(self) -> List[Stay]:
        """Выехавшие гости, последние выехавшие первыми."""
        stays = self.stay_repository.list(StayStatus.CHECKED_OUT)
        return sorted(stays, key=lambda s: s.check_out_at, reverse=True)
