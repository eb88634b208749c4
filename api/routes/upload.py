"""
POST /api/v1/upload/{entity} endpoint.

Accepts a CSV or JSON file, validates every row against the schema inferred
from the entity's existing documents, and inserts the rows only when all of
them pass.  Validation failures are reported in the body with 200 so the
client can show them next to the file; a store that cannot be read is 503.

The handler is a plain function so FastAPI runs the store reads and batched
writes in its threadpool.
"""

import logging

from fastapi import APIRouter, Depends, File, UploadFile

from api.database import get_definition, get_repository
from api.models import UploadResponse
from pipeline.entities import EntityDefinition
from pipeline.repository import SnapshotRepository
from pipeline.upload import format_validation_errors, upload_with_validation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post(
    "/{entity}",
    response_model=UploadResponse,
    summary="Upload CSV or JSON records after schema validation",
)
def upload_records(
    file: UploadFile = File(..., description="CSV (header row) or JSON (array or object)"),
    definition: EntityDefinition = Depends(get_definition),
    repo: SnapshotRepository = Depends(get_repository),
) -> dict:
    content = file.file.read()
    filename = file.filename or ""
    logger.info("upload of %s (%d bytes) into %s", filename, len(content),
                definition.collection)
    result = upload_with_validation(repo, definition.collection, filename, content)
    body = result.to_dict()
    body["report"] = format_validation_errors(result.validation_errors)
    return body
