from sqlalchemy import Column, Integer, DateTime, Text
from sqlalchemy.sql import func

from ..core.db import Base


class QueryHistory(Base):
    __tablename__ = "query_history"

    id = Column(Integer, primary_key=True, index=True)

    nl_query = Column(Text, nullable=False)
    generated_sql = Column(Text, nullable=False)

    # JSON list of the first result rows, never the full result set
    result_preview = Column(Text, nullable=True)

    executed_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
