# backend/querybot/api/routes_query.py

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import PlainTextResponse
from fastapi.encoders import jsonable_encoder

from ..core.errors import QueryBotError
from ..services.query_service import QueryService
from .deps import get_query_service, get_session_key
from .schemas import ConversationMessage, MemoryRequest, NLQueryRequest, NLQueryResponse

router = APIRouter(prefix="/api/query", tags=["query"])


# ------------------------------------------------------
# NATURAL LANGUAGE QUERY
# ------------------------------------------------------
@router.post("/nl", response_model=NLQueryResponse)
def nl_query(
    req: NLQueryRequest,
    service: QueryService = Depends(get_query_service),
    session_key: str = Depends(get_session_key),
):
    try:
        result = service.run_query(req.nl_query, req.target_table, session_key)
    except QueryBotError as e:
        raise HTTPException(status_code=e.status_code, detail=e.to_detail())

    return NLQueryResponse(
        sql=result.sql,
        rows=jsonable_encoder(result.rows),
        nl_answer=result.summary,
        message="OK",
    )


# ------------------------------------------------------
# SESSION TRANSCRIPT
# ------------------------------------------------------
@router.get("/history", response_model=List[ConversationMessage])
def get_history(
    service: QueryService = Depends(get_query_service),
    session_key: str = Depends(get_session_key),
):
    return [m.to_dict() for m in service.get_transcript(session_key)]


@router.get("/history/text", response_class=PlainTextResponse)
def get_history_text(
    service: QueryService = Depends(get_query_service),
    session_key: str = Depends(get_session_key),
):
    return service.get_transcript_text(session_key)


# ------------------------------------------------------
# OUT-OF-BAND CONTEXT (e.g. upload confirmations from the UI)
# ------------------------------------------------------
@router.post("/memory", response_model=dict)
def add_memory(
    req: MemoryRequest,
    service: QueryService = Depends(get_query_service),
    session_key: str = Depends(get_session_key),
):
    service.record_external_fact(session_key, req.role, req.content)
    return {"status": "ok"}
