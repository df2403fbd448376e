from typing import Any, Iterable, List, Mapping

NO_ROWS = "(no rows)"

# Business-metric columns listed first so the summarizer sees them even when
# a row has many columns.
PREFERRED_FIELDS = (
    "product",
    "item",
    "name",
    "amount",
    "price",
    "cost",
    "quantity",
    "qty",
    "customer",
)

MAX_FACT_ROWS = 5
MAX_FIELDS_PER_ROW = 6
ROW_SEPARATOR = " | "
FIELD_SEPARATOR = "; "


def _row_fields(row: Mapping[str, Any]) -> List[str]:
    parts: List[str] = []
    for key in PREFERRED_FIELDS:
        if len(parts) >= MAX_FIELDS_PER_ROW:
            return parts
        if row.get(key) is not None:
            parts.append(f"{key}={row[key]}")

    for key, value in row.items():
        if len(parts) >= MAX_FIELDS_PER_ROW:
            break
        if value is None or key in PREFERRED_FIELDS:
            continue
        parts.append(f"{key}={value}")
    return parts


def extract_facts(rows: Iterable[Mapping[str, Any]]) -> str:
    """
    Deterministic digest of the first result rows.

    >>> extract_facts([{"product": "Pen", "amount": 3, "note": None}])
    'ROW1: product=Pen; amount=3'
    """
    lines: List[str] = []
    for i, row in enumerate(rows):
        if i >= MAX_FACT_ROWS:
            break
        lines.append(f"ROW{i + 1}: " + FIELD_SEPARATOR.join(_row_fields(row)))

    if not lines:
        return NO_ROWS
    return ROW_SEPARATOR.join(lines)
