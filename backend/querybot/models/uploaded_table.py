from sqlalchemy import Column, Integer, String, DateTime, Text
from sqlalchemy.sql import func

from ..core.db import Base


class UploadedTable(Base):
    """One imported file. The row with the highest id is the active dataset."""

    __tablename__ = "uploaded_table_metadata"

    id = Column(Integer, primary_key=True, index=True)
    original_filename = Column(String, nullable=False)

    # Generated physical table holding the rows
    table_name = Column(String, nullable=False, unique=True)

    # JSON object: original header -> sanitized column, in file order
    columns_json = Column(Text, nullable=True)
    row_count = Column(Integer, nullable=True)

    uploaded_at = Column(DateTime(timezone=True), server_default=func.now())
