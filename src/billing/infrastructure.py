"""
Инфраструктурный слой контекста расчетов.

Журнал финансовых записей в памяти и в JSON-файле. Запись в бухгалтерию
не входит в транзакцию выезда, поэтому файл обновляется сразу при add.
"""

from datetime import datetime
from pathlib import Path
from typing import List, Optional, Union

from accommodation.infrastructure import JsonFileStore

from . import interfaces as ports
from .domain import FinanceRecord


class InMemoryFinanceRecordRepository(ports.IFinanceRecordRepository):
    """Реализация журнала финансовых записей в памяти."""

    def __init__(self) -> None:
        self._records: List[FinanceRecord] = []

    def add(self, record: FinanceRecord) -> None:
        if any(existing.id == record.id for existing in self._records):
            raise ValueError(f"Finance record with id {record.id} already exists")
        self._records.append(record.model_copy(deep=True))

    def list(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[FinanceRecord]:
        """Записи за полуинтервал [start, end), в порядке поступления."""
        return [
            record.model_copy(deep=True)
            for record in self._records
            if (start is None or record.recorded_at >= start)
            and (end is None or record.recorded_at < end)
        ]


class JsonFileFinanceRecordRepository(InMemoryFinanceRecordRepository):
    """Журнал финансовых записей в JSON-файле."""

    def __init__(self, file_path: Union[str, Path]):
        super().__init__()
        self._store = JsonFileStore(file_path, FinanceRecord)
        self._records = sorted(self._store.load().values(), key=lambda r: r.recorded_at)

    def add(self, record: FinanceRecord) -> None:
        super().add(record)
        try:
            self._store.save(self._records)
        except Exception:
            self._records.pop()
            raise
