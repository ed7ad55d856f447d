"""
Интерфейсы (порты) для контекста расчетов.
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Protocol

if TYPE_CHECKING:
    from .domain import FinanceRecord


class IFinanceRecordRepository(Protocol):
    """Интерфейс бухгалтерии: журнал поступлений."""

    def add(self, record: FinanceRecord) -> None: ...
    def list(
        self, start: Optional[datetime] = None, end: Optional[datetime] = None
    ) -> List[FinanceRecord]: ...
