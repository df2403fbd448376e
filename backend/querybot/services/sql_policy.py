import logging
import re
from typing import Iterable, List, Optional, Pattern

logger = logging.getLogger(__name__)

RANKING_TERMS = ("most", "highest", "max", "top", "expensive", "largest", "greatest")
FULL_TABLE_PHRASES = ("all rows", "full table", "everything")
NUMERIC_COLUMN_PATTERN = r"(amount|price|cost|value|total|quantity|qty)"

CONVERSATIONAL_PHRASES = (
    "do you think", "do u think", "what do you think", "what do u think",
    "i feel", "i think", "u think", "think abt", "think about",
    "opinion", "thoughts", "would you", "would u", "should",
    "is it overpriced", "overpriced", "pricey",
    "what about", "what abt", "do you recommend", "recommend",
    "how about", "how abt", "your thoughts", "ur thoughts",
    "abt the", "abt ur", "about the",
)

_SELECT_STAR = re.compile(r"\bselect\s+\*", re.IGNORECASE)


def default_query(table: str, limit: int = 50) -> str:
    return f"SELECT * FROM {table} LIMIT {limit}"


def selects_star(sql: str) -> bool:
    return bool(_SELECT_STAR.search(sql or ""))


class SelectStarPolicy:
    """
    Rewrites `SELECT *` answers the question did not ask for.

    Ranking questions get a single-column ORDER BY on the first numeric-looking
    column; any other unrequested `SELECT *` is replaced by the default query.
    The column choice is a name-pattern guess, so both the pattern and the
    ranking terms can be swapped per deployment.
    """

    def __init__(
        self,
        ranking_terms: Iterable[str] = RANKING_TERMS,
        numeric_column_pattern: str = NUMERIC_COLUMN_PATTERN,
        full_table_phrases: Iterable[str] = FULL_TABLE_PHRASES,
        block_select_star: bool = True,
        default_limit: int = 50,
    ):
        self._ranking = re.compile(
            r"\b(?:" + "|".join(re.escape(t) for t in ranking_terms) + ")",
            re.IGNORECASE,
        )
        self._numeric_column: Pattern = re.compile(numeric_column_pattern, re.IGNORECASE)
        self.full_table_phrases = tuple(p.lower() for p in full_table_phrases)
        self.block_select_star = block_select_star
        self.default_limit = default_limit

    def is_ranking_question(self, question: str) -> bool:
        return bool(self._ranking.search(question or ""))

    def ranking_column(self, columns: List[str]) -> Optional[str]:
        for col in columns:
            if self._numeric_column.search(col):
                return col
        return None

    def apply(self, sql: str, question: str, table: str, columns: List[str]) -> str:
        if not selects_star(sql):
            return sql

        fallback = default_query(table, self.default_limit)
        if self.is_ranking_question(question):
            col = self.ranking_column(columns)
            if col:
                logger.warning("SELECT * returned for a ranking question; ordering by %s", col)
                return f"SELECT {col} FROM {table} ORDER BY {col} DESC LIMIT 1"
            logger.warning("SELECT * for a ranking question but no numeric column; using default query")
            return fallback

        if sql.strip() == fallback:
            return sql
        q = (question or "").lower()
        if self.block_select_star and not any(p in q for p in self.full_table_phrases):
            logger.warning("Blocked SELECT * (user did not ask for the full table)")
            return fallback
        return sql


class ConversationalClassifier:
    """Question expects an opinionated, conversational reply rather than a strict readout."""

    def __init__(self, phrases: Iterable[str] = CONVERSATIONAL_PHRASES, question_mark: bool = True):
        self.phrases = tuple(p.lower() for p in phrases)
        self.question_mark = question_mark

    def __call__(self, question: str) -> bool:
        if not question:
            return False
        q = question.strip().lower()
        if any(p in q for p in self.phrases):
            return True
        return self.question_mark and "?" in q
