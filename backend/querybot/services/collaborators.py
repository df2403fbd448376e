from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

Row = Dict[str, Any]


@dataclass(frozen=True)
class DatasetRecord:
    identifier: Optional[int]
    table_name: str
    # original header -> sanitized column, insertion ordered
    column_mapping: Mapping[str, str] = field(default_factory=dict)


class DatasetMetadataProvider(ABC):
    @abstractmethod
    def list_datasets(self) -> List[DatasetRecord]:
        """Return every registered dataset."""
        ...


class TextGenerator(ABC):
    @abstractmethod
    def generate_sql(self, context: str, target_table: str, columns: List[str]) -> Optional[str]:
        """
        Return one candidate SQL statement for the prompt context, or None
        when nothing was generated. May raise; in both cases the caller runs
        its default query unchanged.
        """
        ...

    @abstractmethod
    def generate_summary(
        self,
        question: str,
        table: str,
        rows: List[Row],
        transcript: str,
        fact_snippet: str,
        conversational: bool,
    ) -> Optional[str]:
        """
        Return a natural-language answer grounded in `rows` and `fact_snippet`,
        or None. May raise; the caller degrades to a result without summary.
        """
        ...


class SqlExecutor(ABC):
    @abstractmethod
    def execute(self, sql: str) -> List[Row]:
        ...


class HistorySink(ABC):
    @abstractmethod
    def record(self, question: str, sql: str, row_preview: List[Row], timestamp: datetime) -> None:
        ...
