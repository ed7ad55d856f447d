from typing import Dict, Iterable, List

from shared_kernel import EntityId, RoomStatus

from .domain import Room, RoomStatusChanged
from .interfaces import ILogger


class HousekeepingBoard:
    """Список оповещений об уборке для службы housekeeping."""

    def __init__(self, logger: ILogger):
        self._logger = logger
        self._pending: Dict[EntityId, str] = {}

    def on_room_status_changed(self, event: RoomStatusChanged) -> None:
        """Обработчик события смены статуса номера."""
        if event.new_status == RoomStatus.HOUSEKEEPING:
            self._pending[event.room_id] = event.room_name
            self._logger.info(f"Оповещение об уборке отправлено: {event.room_name}")
        elif event.old_status == RoomStatus.HOUSEKEEPING:
            self._pending.pop(event.room_id, None)

    def seed(self, rooms: Iterable[Room]) -> None:
        """Восстанавливает список по номерам, которые уже ждут уборки."""
        for room in rooms:
            if room.status == RoomStatus.HOUSEKEEPING:
                self._pending[room.id] = room.name

    def pending(self) -> List[str]:
        """Номера, по которым оповещение отправлено, а уборка не отмечена."""
        return list(self._pending.values())
