"""
Инфраструктурный слой контекста проживания.

Содержит реализации репозиториев и других интерфейсов,
зависимые от конкретных технологий (память процесса, JSON-файлы, консоль).
"""

import json
import os
import sys
import threading
import time
from pathlib import Path
from typing import (
    Any,
    Callable,
    Dict,
    Generic,
    Iterable,
    List,
    Optional,
    Type,
    TypeVar,
    Union,
)

from pydantic import BaseModel, ValidationError
from shared_kernel import (
    ConcurrencyException,
    DomainEvent,
    EntityId,
    Money,
    NotFoundException,
    PersistenceException,
    ResortSettings,
    RoomCategory,
    RoomStatus,
    StayStatus,
)

from . import interfaces as ports
from .domain import Room, Stay

T = TypeVar("T", bound=BaseModel)
R = TypeVar("R")


class ConsoleLogger(ports.ILogger):
    """Простая реализация логгера, выводящая сообщения в консоль."""

    def __init__(self, verbose: bool = False):
        self._verbose = verbose

    def _emit(self, level: str, message: str, stream, context: Dict[str, Any]) -> None:
        print(f"[{level}] {message}", file=stream, flush=True)
        if context:
            print(
                "  Context:",
                json.dumps(context, default=str, indent=2, ensure_ascii=False),
                file=stream,
                flush=True,
            )

    def info(self, message: str, **kwargs) -> None:
        self._emit("INFO", message, sys.stdout, kwargs)

    def error(self, message: str, **kwargs) -> None:
        self._emit("ERROR", message, sys.stderr, kwargs)

    def warning(self, message: str, **kwargs) -> None:
        self._emit("WARNING", message, sys.stderr, kwargs)

    def debug(self, message: str, **kwargs) -> None:
        """Отладочные сообщения выводятся только в подробном режиме."""
        if self._verbose:
            self._emit("DEBUG", message, sys.stdout, kwargs)


class InMemoryEventBus(ports.IEventBus):
    """Реализация шины событий в памяти."""

    def __init__(self, logger: Optional[ports.ILogger] = None):
        self._subscribers: Dict[Type[DomainEvent], List[Callable[[Any], None]]] = {}
        self._logger = logger or ConsoleLogger()

    def publish(self, event: DomainEvent) -> None:
        """Публикует событие. Ошибки обработчиков логируются и не пробрасываются."""
        handlers = self._subscribers.get(type(event), [])
        if not handlers:
            self._logger.debug(f"No subscribers for event type {event.event_type}")
            return

        self._logger.debug(
            f"Publishing event: {event.event_type}", event=event.model_dump()
        )

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                self._logger.error(
                    f"Error in event handler for {event.event_type}",
                    error=str(e),
                    event=event.model_dump(),
                )

    def subscribe(self, event_type: Type[DomainEvent], handler) -> None:
        """Подписывает обработчик на события указанного типа."""
        self._subscribers.setdefault(event_type, []).append(handler)
        self._logger.debug(f"Subscribed handler to {event_type.__name__} events")


def retry_read(
    operation: Callable[[], R],
    attempts: int = 3,
    backoff: float = 0.1,
    logger: Optional[ports.ILogger] = None,
) -> R:
    """Повторяет чтение из хранилища при PersistenceException.

    Пауза растет линейно: backoff, 2*backoff, ... Только для чтения:
    операции записи, подтвержденные оператором, не повторяются.
    """
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except PersistenceException as e:
            if attempt == attempts:
                raise
            if logger is not None:
                logger.warning(
                    "Ошибка чтения из хранилища, повтор",
                    attempt=attempt,
                    error=str(e),
                )
            time.sleep(backoff * attempt)
    raise PersistenceException("Чтение не выполнено")  # attempts < 1


class JsonFileStore(Generic[T]):
    """Хранилище записей одного типа в JSON-файле."""

    def __init__(self, file_path: Union[str, Path], model_class: Type[T]):
        """
        Args:
            file_path: Путь к JSON-файлу с данными
            model_class: Класс модели данных
        """
        self._file_path = Path(file_path)
        self._model_class = model_class

    @property
    def exists(self) -> bool:
        return self._file_path.exists()

    def load(self) -> Dict[EntityId, T]:
        """Загружает записи из файла; отсутствующий или пустой файл - пустой набор."""
        if not self._file_path.exists():
            return {}

        try:
            raw_data = self._file_path.read_text(encoding="utf-8")
        except OSError as e:
            raise PersistenceException(f"Не удалось прочитать {self._file_path}: {e}") from e

        if not raw_data.strip():
            return {}

        try:
            items = [self._model_class.model_validate(item) for item in json.loads(raw_data)]
        except (ValueError, ValidationError) as e:
            raise PersistenceException(f"Поврежден файл {self._file_path}: {e}") from e
        return {item.id: item for item in items}

    def save(self, items: Iterable[T]) -> None:
        """Атомарно перезаписывает файл."""
        data = [item.model_dump(mode="json") for item in items]
        tmp_path = self._file_path.with_suffix(self._file_path.suffix + ".tmp")
        try:
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8"
            )
            os.replace(tmp_path, self._file_path)
        except OSError as e:
            raise PersistenceException(f"Не удалось записать {self._file_path}: {e}") from e


def generate_room_inventory(settings: Optional[ResortSettings] = None) -> List[Room]:
    """Создает номерной фонд: первая треть Deluxe, вторая Executive, остальные Suite.

    При 33 номерах: 1-11 Deluxe, 12-22 Executive, 23-33 Suite.
    """
    settings = settings or ResortSettings()
    band = settings.room_count // 3
    rooms = []
    for number in range(1, settings.room_count + 1):
        if number <= band:
            category = RoomCategory.DELUXE
        elif number <= band * 2:
            category = RoomCategory.EXECUTIVE
        else:
            category = RoomCategory.SUITE
        rooms.append(
            Room(
                number=number,
                name=f"Room {number}",
                category=category,
                price_per_day=Money(
                    amount=settings.price_for(category), currency=settings.currency
                ),
                status=RoomStatus.FREE,
            )
        )
    return rooms


class InMemoryRoomRepository(ports.IRoomRepository):
    """Реализация репозитория номеров в памяти.

    Хранит копии: изменения полученного объекта не видны другим
    читателям, пока не вызван update.
    """

    def __init__(self, rooms: Optional[Iterable[Room]] = None):
        self._rooms: Dict[EntityId, Room] = {}
        for room in generate_room_inventory() if rooms is None else rooms:
            self.add(room)

    def add(self, room: Room) -> None:
        if room.id in self._rooms:
            raise ValueError(f"Room with id {room.id} already exists")
        self._rooms[room.id] = room.model_copy(deep=True)

    def list(self, status: Optional[RoomStatus] = None) -> List[Room]:
        return [
            room.model_copy(deep=True)
            for room in self._rooms.values()
            if status is None or room.status == status
        ]

    def get_by_id(self, room_id: EntityId) -> Optional[Room]:
        room = self._rooms.get(room_id)
        return room.model_copy(deep=True) if room is not None else None

    def update(self, room: Room, expected_version: int) -> None:
        stored = self._rooms.get(room.id)
        if stored is None:
            raise NotFoundException(f"Номер {room.id} не найден")
        if stored.version != expected_version:
            raise ConcurrencyException(
                f"Номер {room.name} изменен другим оператором "
                f"(версия {stored.version}, ожидалась {expected_version})"
            )
        self._rooms[room.id] = room.model_copy(deep=True)

    def snapshot(self) -> Dict[EntityId, Room]:
        return dict(self._rooms)

    def restore(self, snapshot: Dict[EntityId, Room]) -> None:
        self._rooms = dict(snapshot)


class InMemoryStayRepository(ports.IStayRepository):
    """Реализация репозитория проживаний в памяти."""

    def __init__(self) -> None:
        self._stays: Dict[EntityId, Stay] = {}

    def list(self, status: Optional[StayStatus] = None) -> List[Stay]:
        return [
            stay.model_copy(deep=True)
            for stay in self._stays.values()
            if status is None or stay.status == status
        ]

    def get_by_id(self, stay_id: EntityId) -> Optional[Stay]:
        stay = self._stays.get(stay_id)
        return stay.model_copy(deep=True) if stay is not None else None

    def add(self, stay: Stay) -> None:
        if stay.id in self._stays:
            raise ValueError(f"Stay with id {stay.id} already exists")
        self._stays[stay.id] = self._stored_copy(stay)

    def update(self, stay: Stay) -> None:
        if stay.id not in self._stays:
            raise NotFoundException(f"Проживание {stay.id} не найдено")
        self._stays[stay.id] = self._stored_copy(stay)

    @staticmethod
    def _stored_copy(stay: Stay) -> Stay:
        copy = stay.model_copy(deep=True)
        copy.clear_events()
        return copy

    def snapshot(self) -> Dict[EntityId, Stay]:
        return dict(self._stays)

    def restore(self, snapshot: Dict[EntityId, Stay]) -> None:
        self._stays = dict(snapshot)


class JsonFileRoomRepository(InMemoryRoomRepository):
    """Репозиторий номеров, сохраняемый в JSON-файл при фиксации."""

    def __init__(self, file_path: Union[str, Path], settings: Optional[ResortSettings] = None):
        self._store = JsonFileStore(file_path, Room)
        if self._store.exists:
            super().__init__(rooms=self._store.load().values())
        else:
            # Первый запуск: создаем номерной фонд
            super().__init__(rooms=generate_room_inventory(settings))

    def flush(self) -> None:
        self._store.save(self._rooms.values())


class JsonFileStayRepository(InMemoryStayRepository):
    """Репозиторий проживаний, сохраняемый в JSON-файл при фиксации."""

    def __init__(self, file_path: Union[str, Path]):
        super().__init__()
        self._store = JsonFileStore(file_path, Stay)
        self._stays = self._store.load()

    def flush(self) -> None:
        self._store.save(self._stays.values())


class AccommodationUnitOfWork(ports.IAccommodationUnitOfWork):
    """Единица работы для контекста проживания.

    Блок ``with`` сериализует запись (одна транзакция за раз), при входе
    запоминает состояние репозиториев и при ошибке восстанавливает его.
    Вложенные блоки работают в транзакции внешнего.
    """

    def __init__(
        self,
        rooms_repo: Optional[ports.IRoomRepository] = None,
        stays_repo: Optional[ports.IStayRepository] = None,
        event_bus: Optional[ports.IEventBus] = None,
        logger: Optional[ports.ILogger] = None,
    ):
        self._logger = logger or ConsoleLogger()
        self._rooms = rooms_repo if rooms_repo is not None else InMemoryRoomRepository()
        self._stays = stays_repo if stays_repo is not None else InMemoryStayRepository()
        self._event_bus = event_bus or InMemoryEventBus(self._logger)
        self._lock = threading.RLock()
        self._depth = 0
        self._snapshots: Dict[str, Any] = {}
        self._flushed: List[str] = []  # Репозитории, уже записанные при фиксации
        self._committed = False

    @property
    def rooms(self) -> ports.IRoomRepository:
        return self._rooms

    @property
    def stays(self) -> ports.IStayRepository:
        return self._stays

    @property
    def event_bus(self) -> ports.IEventBus:
        return self._event_bus

    def _repositories(self) -> Dict[str, Any]:
        return {"rooms": self._rooms, "stays": self._stays}

    def commit(self) -> None:
        """Фиксирует все изменения."""
        self._flushed = []
        for name, repo in self._repositories().items():
            flush = getattr(repo, "flush", None)
            if flush is not None:
                flush()
                self._flushed.append(name)
        self._flushed = []
        self._committed = True
        self._logger.debug("AccommodationUnitOfWork committed")

    def rollback(self) -> None:
        """Откатывает все изменения с начала транзакции.

        Репозитории, которые уже успели записаться при неудачной фиксации,
        перезаписываются восстановленным состоянием.
        """
        repositories = self._repositories()
        for name, repo in repositories.items():
            if name in self._snapshots and hasattr(repo, "restore"):
                repo.restore(self._snapshots[name])
        for name in self._flushed:
            try:
                repositories[name].flush()
            except PersistenceException as e:
                self._logger.error(
                    "Не удалось вернуть хранилище к состоянию до транзакции",
                    repository=name,
                    error=str(e),
                )
        self._flushed = []
        self._committed = False
        self._logger.warning("AccommodationUnitOfWork rolled back")

    def __enter__(self):
        self._lock.acquire()
        if self._depth == 0:
            self._committed = False
            self._flushed = []
            self._snapshots = {
                name: repo.snapshot()
                for name, repo in self._repositories().items()
                if hasattr(repo, "snapshot")
            }
        self._depth += 1
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self._depth -= 1
        try:
            if self._depth == 0:
                if exc_type is None:
                    try:
                        self.commit()
                    except Exception:
                        self.rollback()
                        raise
                else:
                    self.rollback()
        finally:
            if self._depth == 0:
                self._snapshots = {}
            self._lock.release()
        return False  # Пробрасываем исключение дальше, если оно было
