# backend/querybot/api/routes_files.py

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.db import get_db
from ..services.conversation_memory import FACT_PREFIX, Role
from ..services.ingestion_service import import_upload
from ..services.query_service import QueryService
from .deps import get_query_service, get_session_key
from .schemas import UploadResponse

router = APIRouter(prefix="/api/files", tags=["files"])


# ------------------------------------------------------
# UPLOAD DATASET
# ------------------------------------------------------
@router.post("/upload", response_model=UploadResponse)
def upload_file(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    service: QueryService = Depends(get_query_service),
    session_key: str = Depends(get_session_key),
):
    content = file.file.read()
    try:
        meta = import_upload(db, db.get_bind(), file.filename or "upload", content)
    except (ValueError, SQLAlchemyError) as e:
        db.rollback()
        raise HTTPException(status_code=400, detail=f"Upload failed: {e}")

    # Later prompts should know which table the user is talking about
    service.record_external_fact(
        session_key,
        Role.ASSISTANT,
        f"{FACT_PREFIX}Uploaded '{meta.original_filename}' as table {meta.table_name} "
        f"with {meta.row_count} rows",
    )

    return UploadResponse(
        table_name=meta.table_name,
        row_count=meta.row_count or 0,
        message="Uploaded and imported",
    )
