import io
import json
import logging
import re
import time
from pathlib import Path
from typing import Dict, Iterable

import pandas as pd
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session

from ..models.uploaded_table import UploadedTable

logger = logging.getLogger(__name__)

RESERVED_COLUMN_NAMES = {
    "select", "insert", "update", "delete", "table", "date", "user", "order", "group", "value",
}

_NON_IDENTIFIER = re.compile(r"[^a-zA-Z0-9_]")
_NON_ALNUM = re.compile(r"[^a-z0-9]")


def sanitize_identifier(name: str) -> str:
    return _NON_IDENTIFIER.sub("_", name.strip()).lower()


def sanitize_column_name(header) -> str:
    """
    Turn a file header into a plain SQL column name, e.g.
    "Unit Price ($)" -> "unit_price", "2024 Sales" -> "c_2024_sales", "Order" -> "order_col".
    """
    if header is None or not str(header).strip():
        return "col"
    candidate = _NON_ALNUM.sub("_", str(header).strip().lower())
    if candidate[0].isdigit():
        candidate = "c_" + candidate
    if candidate in RESERVED_COLUMN_NAMES:
        candidate = candidate + "_col"
    candidate = re.sub(r"_+", "_", candidate).strip("_")
    return sanitize_identifier(candidate or "col")


def build_column_mapping(headers: Iterable) -> Dict[str, str]:
    """Original header -> unique sanitized column, in file order."""
    mapping: Dict[str, str] = {}
    used = set()
    for header in headers:
        safe = sanitize_column_name(header)
        candidate = safe
        suffix = 1
        while candidate in used:
            suffix += 1
            candidate = f"{safe}_{suffix}"
        used.add(candidate)
        mapping[str(header)] = candidate
    return mapping


def build_table_name(filename: str) -> str:
    base = Path(filename or "upload").stem or "upload"
    return sanitize_identifier(f"{base}_{int(time.time() * 1000)}")


def read_upload(filename: str, content: bytes) -> pd.DataFrame:
    """
    Parse uploaded bytes into a DataFrame.
    Supports CSV, JSON (array of objects) and Excel.
    """
    suffix = Path(filename or "").suffix.lower()
    buffer = io.BytesIO(content)

    if suffix == ".csv":
        return pd.read_csv(buffer)
    elif suffix == ".json":
        return pd.read_json(buffer, orient="records")
    elif suffix in (".xlsx", ".xls"):
        return pd.read_excel(buffer)
    else:
        raise ValueError(f"Unsupported file type: {suffix or '(none)'}")


def import_upload(db: Session, engine: Engine, filename: str, content: bytes) -> UploadedTable:
    """
    Load an uploaded file into a fresh table and register it as the newest
    dataset. Column types are left to pandas/SQLAlchemy inference.
    """
    if not content:
        raise ValueError("Uploaded file is empty.")
    df = read_upload(filename, content)
    if df.shape[1] == 0:
        raise ValueError("Dataset has no columns.")

    mapping = build_column_mapping(df.columns)
    table_name = build_table_name(filename)

    df = df.rename(columns={orig: mapping[str(orig)] for orig in df.columns})
    df.to_sql(table_name, engine, index=False, if_exists="fail")
    logger.info("Imported %s into %s (%d rows, %d columns)", filename, table_name, len(df), df.shape[1])

    meta = UploadedTable(
        original_filename=filename or "upload",
        table_name=table_name,
        columns_json=json.dumps(mapping),
        row_count=int(len(df)),
    )
    db.add(meta)
    db.commit()
    db.refresh(meta)
    return meta
