"""
Интерфейсы (порты) для контекста проживания.
"""

from __future__ import annotations

from typing import (
    TYPE_CHECKING,
    Any,
    Callable,
    List,
    Optional,
    Protocol,
    Type,
    TypeVar,
)

from shared_kernel import DomainEvent, EntityId, RoomStatus, StayStatus

if TYPE_CHECKING:
    from .domain import Room, Stay

T_Event = TypeVar("T_Event", bound=DomainEvent)


class ILogger(Protocol):
    """Интерфейс для логгера."""

    def info(self, message: str, **kwargs: Any) -> None: ...
    def error(self, message: str, **kwargs: Any) -> None: ...
    def warning(self, message: str, **kwargs: Any) -> None: ...
    def debug(self, message: str, **kwargs: Any) -> None: ...


class IEventBus(Protocol):
    """Интерфейс для шины событий."""

    def publish(self, event: DomainEvent) -> None: ...
    def subscribe(
        self, event_type: Type[T_Event], handler: Callable[[T_Event], None]
    ) -> None: ...


class IRoomRepository(Protocol):
    """Интерфейс репозитория номеров."""

    def list(self, status: Optional[RoomStatus] = None) -> List[Room]: ...
    def get_by_id(self, room_id: EntityId) -> Room | None: ...
    def update(self, room: Room, expected_version: int) -> None:
        """Сохраняет номер, только если сохраненная версия равна expected_version."""
        ...


class IStayRepository(Protocol):
    """Интерфейс репозитория проживаний."""

    def list(self, status: Optional[StayStatus] = None) -> List[Stay]: ...
    def get_by_id(self, stay_id: EntityId) -> Stay | None: ...
    def add(self, stay: Stay) -> None: ...
    def update(self, stay: Stay) -> None: ...


class IAccommodationUnitOfWork(Protocol):
    """Интерфейс Unit of Work для контекста проживания."""

    @property
    def rooms(self) -> IRoomRepository: ...
    @property
    def stays(self) -> IStayRepository: ...
    @property
    def event_bus(self) -> IEventBus: ...

    def __enter__(self) -> IAccommodationUnitOfWork: ...
    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> bool: ...
    def commit(self) -> None: ...
    def rollback(self) -> None: ...
