import logging
import re
from textwrap import dedent
from typing import List, Optional

from ..core.errors import GenerationDegraded
from ..llm.chat_client import ChatCompletionsLLM, get_chat_llm
from ..services.collaborators import Row, TextGenerator

logger = logging.getLogger(__name__)

SQL_SYSTEM_PROMPT = dedent(
    """
    You are an expert SQL generator.
    You must generate EXACTLY ONE SQL SELECT query.

    STRICT RULES:
    1. Only SELECT allowed. No INSERT/UPDATE/DELETE/ALTER/DROP.
    2. Use ONLY the provided table + column names (never hallucinate).
    3. NEVER return SELECT * unless user explicitly says 'all rows', 'full table', or 'everything'.

    4. COMPLEX QUERIES:
       a) Multi-item questions (cheapest AND most expensive, top 3 AND bottom 2):
          wrap each part in parentheses and combine with UNION ALL:
          (SELECT product, amount FROM table ORDER BY amount ASC LIMIT 1)
          UNION ALL
          (SELECT product, amount FROM table ORDER BY amount DESC LIMIT 1)
       b) Nested questions ('items above average price'):
          SELECT product, amount FROM table
          WHERE amount > (SELECT AVG(amount) FROM table)
          ORDER BY amount DESC
       c) Multiple filters ('expensive items by category'):
          SELECT category, product, amount FROM table
          WHERE amount > 5000
          ORDER BY category, amount DESC

    5. RANKING & AGGREGATION:
       - most, highest, max, top, expensive, largest, greatest -> ORDER BY ... DESC LIMIT N
       - least, lowest, min, cheapest, smallest -> ORDER BY ... ASC LIMIT N
       - average, avg, mean -> AVG(column)
       - total, sum -> SUM(column)
       - count, how many -> COUNT(*)
       - grouped by category/type -> GROUP BY

    6. OUTPUT FORMAT:
       - Return ONLY the SQL string. No markdown, no ``` fences, no explanations.
       - Never split the answer into several statements separated by semicolons.
       - Never add comments.
    """
).strip()

STRICT_SUMMARY_SYSTEM = (
    "You are a careful data analyst. STRICT INSTRUCTIONS: Use ONLY the provided facts and rows. "
    "Do NOT hallucinate additional rows, columns, or values. Do NOT ask the user questions. "
    "If data is missing or ambiguous, simply state that. Do NOT output SQL or JSON. "
    "Keep answers concise and data-focused, written as natural language."
)
STRICT_SUMMARY_INSTRUCTIONS = (
    "Instructions: Respond strictly using ONLY the Rows and Facts provided. Do NOT invent data. "
    "Do NOT ask the user any questions back. Never output the FACTS string or raw row data; "
    "synthesize the information into a readable answer."
)

CONVERSATIONAL_SUMMARY_SYSTEM = (
    "You are a helpful data analyst who can talk conversationally. Reference the provided Rows "
    "and Facts when relevant; you MAY answer in a natural, opinionated style. Do NOT invent facts "
    "not present in Rows/Facts. Do NOT ask the user questions or ask for more information."
)
CONVERSATIONAL_SUMMARY_INSTRUCTIONS = (
    "Instructions: Answer conversationally using only the provided Rows and Facts. Do NOT invent "
    "data. Do NOT ask for clarifications. Always give a natural language answer, never just "
    "echo the facts or raw data."
)

_CODE_FENCE = re.compile(r"```(?:sql)?", re.IGNORECASE)


def clean_generated_sql(text: str) -> str:
    """Strip markdown fences, BOMs and trailing semicolons from model output."""
    sql = _CODE_FENCE.sub("", text or "")
    sql = sql.replace("\ufeff", "").strip()
    return sql.rstrip(";").strip()


def format_rows(rows: List[Row]) -> str:
    # Plain "k=v" lines read better for the model than JSON
    if not rows:
        return "[no rows returned]"
    lines = []
    for i, row in enumerate(rows, start=1):
        parts = ", ".join(f"{k}={v}" for k, v in row.items())
        lines.append(f"Row {i}: {parts}")
    return "\n".join(lines) + "\n"


class LLMTextGenerator(TextGenerator):
    """
    Produces SQL and summaries with the configured chat LLM.

    Without a configured provider it stays usable: no SQL is generated, so
    the caller runs its default query, and summaries fall back to a row count.
    """

    def __init__(self, llm: Optional[ChatCompletionsLLM] = None):
        self.llm = llm
        if self.llm is None:
            logger.info("No LLM configured; using deterministic fallbacks")

    def generate_sql(self, context: str, target_table: str, columns: List[str]) -> Optional[str]:
        if self.llm is None:
            logger.warning("LLM not configured; no SQL generated")
            return None

        user_content = context + "\n\nAvailable columns: " + ", ".join(columns) + "\n"
        raw = self.llm.invoke(user_content, system=SQL_SYSTEM_PROMPT, max_tokens=400)
        logger.debug("LLM raw SQL response: %s", raw)
        return clean_generated_sql(raw)

    def generate_summary(
        self,
        question: str,
        table: str,
        rows: List[Row],
        transcript: str,
        fact_snippet: str,
        conversational: bool,
    ) -> Optional[str]:
        if self.llm is None:
            if not rows:
                return "No rows found."
            return f"Found {len(rows)} matching rows."

        if conversational:
            system, instructions = CONVERSATIONAL_SUMMARY_SYSTEM, CONVERSATIONAL_SUMMARY_INSTRUCTIONS
        else:
            system, instructions = STRICT_SUMMARY_SYSTEM, STRICT_SUMMARY_INSTRUCTIONS

        user_content = (
            f"Conversation history:\n{transcript}\n\n"
            f"User question: {question}\n\n"
            f"Table: {table}\n\n"
            f"Rows returned ({len(rows)}):\n{format_rows(rows)}\n"
            f"Facts: {fact_snippet or ''}\n\n"
            f"{instructions}"
        )

        text = self.llm.invoke(user_content, system=system, max_tokens=300)
        if not text or not text.strip():
            raise GenerationDegraded("LLM returned an empty summary")
        return text.strip()


def get_text_generator() -> LLMTextGenerator:
    return LLMTextGenerator(llm=get_chat_llm())
