"""
Доменная модель контекста бронирования.

Сессия оператора: номера, отмеченные на шахматке до заселения гостя.
Сессия живет только в памяти и не сохраняется в хранилище.
"""

from typing import Any, Dict, Iterable, List, Optional

from accommodation.domain import Room
from shared_kernel import (
    DEFAULT_CURRENCY,
    EntityId,
    InvalidSelectionException,
    Money,
    RoomStatus,
)
from shared_kernel.pricing import parse_amount, room_total

_UNAVAILABLE_REASONS = {
    RoomStatus.OCCUPIED: "занят гостем",
    RoomStatus.MAINTENANCE: "на обслуживании",
    RoomStatus.HOUSEKEEPING: "ожидает уборки, сначала отметьте его убранным",
}


class BookingSession:
    """Выбор номеров для заселения."""

    def __init__(self, currency: str = DEFAULT_CURRENCY):
        self.currency = currency
        self._selected: Dict[EntityId, Room] = {}  # Порядок выбора сохраняется

    @property
    def rooms(self) -> List[Room]:
        return list(self._selected.values())

    @property
    def room_ids(self) -> List[EntityId]:
        return list(self._selected)

    def is_empty(self) -> bool:
        return not self._selected

    def __contains__(self, room_id: EntityId) -> bool:
        return room_id in self._selected

    def __len__(self) -> int:
        return len(self._selected)

    def toggle_room(self, room: Room) -> bool:
        """Добавляет номер в выбор или убирает его. Возвращает True, если номер выбран."""
        if room.id in self._selected:
            del self._selected[room.id]
            return False

        if not room.is_free():
            reason = _UNAVAILABLE_REASONS.get(room.status, room.status.value)
            raise InvalidSelectionException(f"Номер {room.name} {reason}")

        self._selected[room.id] = room
        return True

    def reconcile(self, current_rooms: Iterable[Room]) -> List[Room]:
        """Сверяет выбор с актуальным номерным фондом.

        Номера, которые перестали быть свободными (или исчезли), удаляются
        из выбора. Возвращает удаленные номера.
        """
        current = {room.id: room for room in current_rooms}
        dropped = []
        for room_id, room in list(self._selected.items()):
            fresh = current.get(room_id)
            if fresh is None or not fresh.is_free():
                dropped.append(fresh or room)
                del self._selected[room_id]
            else:
                self._selected[room_id] = fresh
        return dropped

    def price_override(self, value: Any) -> Optional[Money]:
        """Ручная цена действует, только если это положительное число."""
        amount = parse_amount(value, "ручная цена")
        if amount is None or amount <= 0:
            return None
        return Money(amount=amount, currency=self.currency)

    def compute_total(self, days: Any, manual_price_override: Any = None) -> Money:
        """Стоимость выбранных номеров за срок или ручная цена."""
        override = self.price_override(manual_price_override)
        if override is not None:
            return override
        return room_total(self.rooms, days, currency=self.currency)

    def clear(self) -> None:
        self._selected.clear()
