import uuid
from functools import lru_cache

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from ..agents.query_agent import get_text_generator
from ..core.config import settings
from ..core.db import SessionLocal, engine
from ..services.conversation_memory import ConversationMemoryStore
from ..services.db_collaborators import (
    SqlAlchemyExecutor,
    SqlAlchemyHistorySink,
    SqlAlchemyMetadataProvider,
)
from ..services.query_service import QueryService
from ..services.sql_policy import SelectStarPolicy

SESSION_COOKIE = "session_id"


@lru_cache
def get_memory_store() -> ConversationMemoryStore:
    return ConversationMemoryStore(max_messages=settings.MEMORY_MAX_MESSAGES)


@lru_cache
def get_query_service() -> QueryService:
    """Process-wide service; per-request state lives in the memory store only."""
    return QueryService(
        metadata_provider=SqlAlchemyMetadataProvider(SessionLocal),
        generator=get_text_generator(),
        executor=SqlAlchemyExecutor(engine),
        history_sink=SqlAlchemyHistorySink(SessionLocal),
        memory=get_memory_store(),
        select_star_policy=SelectStarPolicy(
            block_select_star=settings.BLOCK_SELECT_STAR,
            default_limit=settings.DEFAULT_QUERY_LIMIT,
        ),
        timeout_seconds=settings.QUERY_TIMEOUT_SECONDS,
        history_preview_rows=settings.HISTORY_PREVIEW_ROWS,
        default_limit=settings.DEFAULT_QUERY_LIMIT,
    )


class SessionCookieMiddleware(BaseHTTPMiddleware):
    """
    Issues the session key before routing and sets the cookie on whatever
    response comes back, error responses included.

    Routes read the key through `get_session_key`.
    """

    async def dispatch(self, request: Request, call_next):
        key = request.cookies.get(SESSION_COOKIE)
        issued = not key
        if issued:
            key = uuid.uuid4().hex
        request.state.session_key = key

        response = await call_next(request)
        if issued:
            response.set_cookie(SESSION_COOKIE, key, httponly=True, samesite="lax")
        return response


def get_session_key(request: Request) -> str:
    return request.state.session_key
