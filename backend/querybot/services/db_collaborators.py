import json
import logging
from datetime import datetime
from typing import Dict, List

from sqlalchemy import text
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker

from ..core.db import session_scope
from ..models.query_history import QueryHistory
from ..models.uploaded_table import UploadedTable
from .collaborators import (
    DatasetMetadataProvider,
    DatasetRecord,
    HistorySink,
    Row,
    SqlExecutor,
)

logger = logging.getLogger(__name__)


def parse_column_mapping(columns_json) -> Dict[str, str]:
    """
    Decode the stored header mapping. Broken metadata degrades to no columns
    rather than blocking queries on the table.
    """
    if not columns_json:
        return {}
    try:
        mapping = json.loads(columns_json)
    except (TypeError, ValueError):
        logger.warning("Failed to parse columns metadata: %r", columns_json)
        return {}
    if not isinstance(mapping, dict):
        logger.warning("Columns metadata is not an object: %r", columns_json)
        return {}
    return {str(k): str(v) for k, v in mapping.items()}


class SqlAlchemyMetadataProvider(DatasetMetadataProvider):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def list_datasets(self) -> List[DatasetRecord]:
        with session_scope(self.session_factory) as db:
            tables = db.query(UploadedTable).all()
            return [
                DatasetRecord(
                    identifier=t.id,
                    table_name=t.table_name,
                    column_mapping=parse_column_mapping(t.columns_json),
                )
                for t in tables
            ]


class SqlAlchemyExecutor(SqlExecutor):
    """Runs validated SQL and returns rows as dicts in column order."""

    def __init__(self, engine: Engine):
        self.engine = engine

    def execute(self, sql: str) -> List[Row]:
        with self.engine.connect() as conn:
            result = conn.execute(text(sql))
            return [dict(row) for row in result.mappings()]


class SqlAlchemyHistorySink(HistorySink):
    def __init__(self, session_factory: sessionmaker):
        self.session_factory = session_factory

    def record(self, question: str, sql: str, row_preview: List[Row], timestamp: datetime) -> None:
        with session_scope(self.session_factory) as db:
            db.add(
                QueryHistory(
                    nl_query=question,
                    generated_sql=sql,
                    result_preview=json.dumps(row_preview, default=str),
                    executed_at=timestamp,
                )
            )
