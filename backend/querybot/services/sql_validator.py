"""
Lexical safety gate for model-generated SQL.

Two independent checks must both pass before a statement may run:

- `is_select_only`: the statement is a read (SELECT, parenthesised UNION
  member, or CTE) and carries no write/DDL keyword or comment marker.
- `references_only_table`: every FROM/JOIN target is the active table.

This is an allow-list over tokens, not a SQL parser. It will not see through
every obfuscation; it targets an unreliable generator, not an attacker.
"""

import re
from typing import List

from ..core.errors import PolicyViolation

ALLOWED_PREFIXES = ("select", "(", "with")

FORBIDDEN_KEYWORDS = frozenset(
    {"insert", "update", "delete", "alter", "drop", "create", "truncate"}
)
FORBIDDEN_MARKERS = (";--", "--", "/*")

# Whitespace plus statement punctuation, so "1;drop" still yields "drop"
_TOKEN_SPLIT = re.compile(r"[\s;,()]+")

_TABLE_REFERENCE = re.compile(r'\b(?:from|join)\s+"?([A-Za-z0-9_]+)"?', re.IGNORECASE)


def normalize_identifier(name: str) -> str:
    if name is None:
        return ""
    return name.replace('"', "").strip().lower()


def is_select_only(sql: str) -> bool:
    if not sql:
        return False
    cleaned = sql.strip().lower()
    if not cleaned.startswith(ALLOWED_PREFIXES):
        return False

    if any(marker in cleaned for marker in FORBIDDEN_MARKERS):
        return False

    tokens = _TOKEN_SPLIT.split(cleaned)
    return not any(token in FORBIDDEN_KEYWORDS for token in tokens)


def referenced_tables(sql: str) -> List[str]:
    """Identifiers following FROM/JOIN, in order of appearance."""
    return [m.group(1) for m in _TABLE_REFERENCE.finditer(sql or "")]


def references_only_table(sql: str, allowed_table: str) -> bool:
    target = normalize_identifier(allowed_table)
    if not sql or not target:
        return False

    for found in referenced_tables(sql):
        if normalize_identifier(found) != target:
            return False

    # A statement naming no table at all is not scoped to ours
    return target in sql.lower()


def validate_sql(sql: str, allowed_table: str) -> str:
    """Raise PolicyViolation unless `sql` passes both checks; return it unchanged."""
    if not is_select_only(sql):
        raise PolicyViolation("Only SELECT queries allowed")
    if not references_only_table(sql, allowed_table):
        raise PolicyViolation(
            f"SQL references unauthorized tables (allowed: {allowed_table})"
        )
    return sql
