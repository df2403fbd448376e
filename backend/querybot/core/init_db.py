import logging

from sqlalchemy.engine import Engine

from .db import Base, engine as default_engine
from ..models import uploaded_table, query_history  # noqa: F401

logger = logging.getLogger(__name__)


def init_db(bind: Engine = default_engine) -> None:
    # Models are imported above so their tables are registered on Base.metadata
    Base.metadata.create_all(bind=bind)
    logger.info("Metadata tables ready on %s", bind.url.render_as_string(hide_password=True))
