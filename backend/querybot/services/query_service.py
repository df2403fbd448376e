import logging
import time
from concurrent.futures import ThreadPoolExecutor, TimeoutError as CallTimeout
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, List, Optional, Tuple

from ..core.errors import ExecutionFailed, GenerationDegraded, QueryBotError
from .collaborators import (
    DatasetMetadataProvider,
    HistorySink,
    Row,
    SqlExecutor,
    TextGenerator,
)
from .conversation_memory import FACT_PREFIX, ConversationMemoryStore, Message, Role
from .fact_extractor import extract_facts
from .sql_policy import ConversationalClassifier, SelectStarPolicy, default_query
from .sql_validator import validate_sql
from .table_scope import ActiveDataset, TableScopeResolver

logger = logging.getLogger(__name__)


@dataclass
class QueryAttempt:
    """State of one NL query while it moves through the pipeline."""

    question: str
    session_key: Optional[str]
    dataset: Optional[ActiveDataset] = None
    prompt_context: str = ""
    transcript: str = ""
    generated_sql: str = ""
    validated: bool = False
    rows: List[Row] = field(default_factory=list)
    fact_snippet: str = ""
    summary: Optional[str] = None
    deadline: float = 0.0

    @property
    def table(self) -> str:
        return self.dataset.table_name if self.dataset else ""

    @property
    def columns(self) -> List[str]:
        return self.dataset.columns if self.dataset else []


@dataclass(frozen=True)
class QueryResult:
    sql: str
    rows: List[Row]
    summary: Optional[str]

    @property
    def degraded(self) -> bool:
        return self.summary is None


def build_columns_context(columns: List[str]) -> str:
    if not columns:
        return "(No columns available)\n"
    lines = ["This table contains the following columns:"]
    lines.extend(f" - {col}" for col in columns)
    lines.append("")
    lines.append("When answering the question, use ONLY these columns.")
    return "\n".join(lines) + "\n"


def build_prompt_context(table: str, columns: List[str], transcript: str, question: str) -> str:
    return (
        f"Table name: {table}\n"
        f"{build_columns_context(columns)}"
        f"Conversation history:\n{transcript}\n"
        f"User question: {question}\n"
    )


class QueryService:
    """
    NL question -> SQL -> rows -> grounded summary.

    Pipeline for one call of `run_query`:

        resolve table -> build context -> generate -> validate -> execute
        -> summarize -> persist -> remember

    Any failure up to and including execution aborts the attempt. Summary
    and history problems never do: the caller still gets SQL and rows.
    """

    def __init__(
        self,
        metadata_provider: DatasetMetadataProvider,
        generator: TextGenerator,
        executor: SqlExecutor,
        history_sink: HistorySink,
        memory: ConversationMemoryStore,
        select_star_policy: Optional[SelectStarPolicy] = None,
        is_conversational: Optional[Callable[[str], bool]] = None,
        timeout_seconds: Optional[float] = None,
        history_preview_rows: int = 50,
        default_limit: int = 50,
        max_workers: int = 8,
    ):
        self.scope = TableScopeResolver(metadata_provider)
        self.generator = generator
        self.executor = executor
        self.history_sink = history_sink
        self.memory = memory
        self.select_star_policy = select_star_policy or SelectStarPolicy(default_limit=default_limit)
        self.is_conversational = is_conversational or ConversationalClassifier()
        self.timeout_seconds = timeout_seconds
        self.history_preview_rows = history_preview_rows
        self.default_limit = default_limit

        self._pool: Optional[ThreadPoolExecutor] = None
        if timeout_seconds is not None:
            self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="querybot-call")

    def close(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=False)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def run_query(
        self,
        question: str,
        target_table: Optional[str] = None,
        session_key: Optional[str] = None,
    ) -> QueryResult:
        attempt = QueryAttempt(question=question, session_key=session_key)
        if self.timeout_seconds is not None:
            attempt.deadline = time.monotonic() + self.timeout_seconds

        attempt.dataset = self.scope.resolve_active_table()
        self.scope.check_requested_table(target_table, attempt.dataset)

        self._build_context(attempt)
        self._generate(attempt)

        validate_sql(attempt.generated_sql, attempt.table)
        attempt.validated = True

        attempt.rows = self._execute(attempt)
        logger.info("Query on %s returned %d rows", attempt.table, len(attempt.rows))

        attempt.fact_snippet = extract_facts(attempt.rows)
        attempt.summary = self._summarize(attempt)

        self._persist(attempt)
        self._remember_answer(attempt)

        return QueryResult(sql=attempt.generated_sql, rows=attempt.rows, summary=attempt.summary)

    def get_transcript(self, session_key: str) -> Tuple[Message, ...]:
        return self.memory.render_all(session_key)

    def get_transcript_text(self, session_key: str) -> str:
        return self.memory.render_text(session_key)

    def record_external_fact(self, session_key: str, role, content: str) -> None:
        if not content or not content.strip():
            return
        self.memory.append(session_key, role, content)

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------
    def _build_context(self, attempt: QueryAttempt) -> None:
        # Recorded before generation so the next turn sees it even if this one fails
        self.memory.append(attempt.session_key, Role.USER, attempt.question)

        attempt.transcript = self.memory.render_filtered(attempt.session_key)
        attempt.prompt_context = build_prompt_context(
            attempt.table, attempt.columns, attempt.transcript, attempt.question
        )
        logger.debug("LLM prompt context:\n%s", attempt.prompt_context)

    def _generate(self, attempt: QueryAttempt) -> None:
        fallback = default_query(attempt.table, self.default_limit)
        sql = None
        try:
            sql = self._bounded(
                attempt,
                self.generator.generate_sql,
                attempt.prompt_context,
                attempt.table,
                attempt.columns,
            )
        except CallTimeout:
            logger.warning("SQL generation timed out after %ss; using default query", self.timeout_seconds)
        except Exception:
            logger.exception("SQL generation failed; using default query")

        if sql and sql.strip():
            sql = self.select_star_policy.apply(sql.strip(), attempt.question, attempt.table, attempt.columns)
        else:
            sql = fallback
        logger.info("SQL for %s: %s", attempt.table, sql)
        attempt.generated_sql = sql

    def _execute(self, attempt: QueryAttempt) -> List[Row]:
        try:
            rows = self._bounded(attempt, self.executor.execute, attempt.generated_sql)
        except CallTimeout:
            raise ExecutionFailed(f"Query timed out after {self.timeout_seconds}s")
        except QueryBotError:
            raise
        except Exception as e:
            raise ExecutionFailed(f"Execution error: {e}") from e
        return list(rows or [])

    def _summarize(self, attempt: QueryAttempt) -> Optional[str]:
        conversational = self.is_conversational(attempt.question)
        try:
            summary = self._bounded(
                attempt,
                self.generator.generate_summary,
                attempt.question,
                attempt.table,
                attempt.rows,
                attempt.transcript,
                attempt.fact_snippet,
                conversational,
            )
        except CallTimeout:
            logger.warning("Summary timed out after %ss; returning rows only", self.timeout_seconds)
            return None
        except GenerationDegraded as e:
            logger.warning("Summary degraded: %s", e.message)
            return None
        except Exception:
            logger.exception("Summary generation failed; returning rows only")
            return None

        if not summary or not summary.strip():
            logger.warning("Summary degraded: empty response")
            return None
        return summary.strip()

    def _persist(self, attempt: QueryAttempt) -> None:
        preview = attempt.rows[: self.history_preview_rows]
        try:
            self.history_sink.record(
                attempt.question,
                attempt.generated_sql,
                preview,
                datetime.now(timezone.utc),
            )
        except Exception:
            # Audit only; never fails the answer
            logger.warning("Failed to record query history", exc_info=True)

    def _remember_answer(self, attempt: QueryAttempt) -> None:
        if attempt.summary:
            self.memory.append(attempt.session_key, Role.ASSISTANT, attempt.summary)
        if attempt.fact_snippet:
            self.memory.append(attempt.session_key, Role.ASSISTANT, FACT_PREFIX + attempt.fact_snippet)

    def _bounded(self, attempt: QueryAttempt, fn, *args):
        if self._pool is None:
            return fn(*args)
        # One budget per request, shared by every external call
        remaining = max(0.0, attempt.deadline - time.monotonic())
        return self._pool.submit(fn, *args).result(timeout=remaining)
