from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field


class NLQueryRequest(BaseModel):
    nl_query: str = Field(..., min_length=1, description="Natural language question")
    target_table: Optional[str] = Field(None, description="Optional hint; must be the latest uploaded table")


class NLQueryResponse(BaseModel):
    sql: Optional[str] = None
    rows: List[Dict[str, Any]] = Field(default_factory=list)
    nl_answer: Optional[str] = None
    message: str = "OK"


class MemoryRequest(BaseModel):
    role: Literal["user", "assistant"] = "assistant"
    content: str = ""


class ConversationMessage(BaseModel):
    role: str
    content: str


class UploadResponse(BaseModel):
    table_name: Optional[str] = None
    row_count: int = 0
    message: str
