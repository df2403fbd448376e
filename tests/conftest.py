import threading
from typing import List, Optional

import pytest
from sqlalchemy.orm import sessionmaker

from querybot.core.db import Base, build_engine
from querybot.core.init_db import init_db
from querybot.services.collaborators import (
    DatasetMetadataProvider,
    DatasetRecord,
    HistorySink,
    SqlExecutor,
    TextGenerator,
)
from querybot.services.conversation_memory import ConversationMemoryStore
from querybot.services.query_service import QueryService


# ------------------------------------------------------
# In-memory collaborators
# ------------------------------------------------------
class FakeMetadataProvider(DatasetMetadataProvider):
    def __init__(self, datasets: Optional[List[DatasetRecord]] = None):
        self.datasets = list(datasets or [])
        self.calls = 0

    def list_datasets(self):
        self.calls += 1
        return list(self.datasets)


class FakeGenerator(TextGenerator):
    def __init__(self, sql="SELECT product, amount FROM sales", summary="A grounded answer."):
        self.sql = sql
        self.summary = summary
        self.sql_calls = []
        self.summary_calls = []

    def generate_sql(self, context, target_table, columns):
        self.sql_calls.append((context, target_table, list(columns)))
        if isinstance(self.sql, Exception):
            raise self.sql
        return self.sql

    def generate_summary(self, question, table, rows, transcript, fact_snippet, conversational):
        self.summary_calls.append(
            dict(
                question=question,
                table=table,
                rows=rows,
                transcript=transcript,
                fact_snippet=fact_snippet,
                conversational=conversational,
            )
        )
        if isinstance(self.summary, Exception):
            raise self.summary
        return self.summary


class FakeExecutor(SqlExecutor):
    def __init__(self, rows=None, error: Optional[Exception] = None):
        self.rows = rows if rows is not None else [{"product": "Laptop", "amount": 1200}]
        self.error = error
        self.executed = []

    def execute(self, sql):
        self.executed.append(sql)
        if self.error is not None:
            raise self.error
        return list(self.rows)


class FakeHistorySink(HistorySink):
    def __init__(self, error: Optional[Exception] = None):
        self.error = error
        self.records = []

    def record(self, question, sql, row_preview, timestamp):
        if self.error is not None:
            raise self.error
        self.records.append((question, sql, row_preview, timestamp))


class BlockingGenerator(FakeGenerator):
    """Blocks generate_sql / generate_summary until released, to trigger timeouts."""

    def __init__(self, block_sql=False, block_summary=False, **kwargs):
        super().__init__(**kwargs)
        self.release = threading.Event()
        self.block_sql = block_sql
        self.block_summary = block_summary

    def generate_sql(self, context, target_table, columns):
        if self.block_sql:
            self.release.wait(5)
        return super().generate_sql(context, target_table, columns)

    def generate_summary(self, *args):
        if self.block_summary:
            self.release.wait(5)
        return super().generate_summary(*args)


SALES = DatasetRecord(identifier=1, table_name="sales", column_mapping={"Product": "product", "Amount": "amount"})


# ------------------------------------------------------
# Fixtures
# ------------------------------------------------------
@pytest.fixture
def memory():
    return ConversationMemoryStore(max_messages=10)


@pytest.fixture
def metadata():
    return FakeMetadataProvider([SALES])


@pytest.fixture
def generator():
    return FakeGenerator()


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def history():
    return FakeHistorySink()


@pytest.fixture
def service(metadata, generator, executor, history, memory):
    svc = QueryService(
        metadata_provider=metadata,
        generator=generator,
        executor=executor,
        history_sink=history,
        memory=memory,
    )
    yield svc
    svc.close()


@pytest.fixture
def engine():
    eng = build_engine("sqlite://")
    init_db(eng)
    yield eng
    Base.metadata.drop_all(bind=eng)
    eng.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
