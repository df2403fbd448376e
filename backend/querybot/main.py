import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI

from .core.config import settings
from .core.init_db import init_db
from .api.deps import SessionCookieMiddleware, get_query_service
from .api.routes_files import router as files_router
from .api.routes_query import router as query_router


def configure_logging() -> None:
    logging.basicConfig(
        level=settings.LOG_LEVEL.upper(),
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_db()
    yield
    get_query_service().close()


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title=settings.APP_NAME,
        version="1.0.0",
        lifespan=lifespan,
    )

    app.add_middleware(SessionCookieMiddleware)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    app.include_router(files_router)
    app.include_router(query_router)

    return app


app = create_app()
