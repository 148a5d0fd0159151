"""
Image analysis endpoint
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, File, UploadFile

from core.config import settings
from models.analysis import AggregateResponse, ErrorResponse
from models.upload import UploadedFile
from services.aggregator import aggregate
from services.analysis import AnalysisOrchestrator, get_orchestrator
from services.storage import StagingArea, staging_area
from utils.error_handlers import AnalysisError
from utils.validators import validate_file_count, validate_file_size, validate_mime_type

router = APIRouter()
logger = logging.getLogger(__name__)


def get_staging_area() -> StagingArea:
    return staging_area


async def receive_uploads(
    uploads: List[UploadFile],
    staging: StagingArea
) -> List[UploadedFile]:
    """
    Validate every attachment, then stage them all.

    Nothing is written unless the whole request is valid.
    """
    validate_file_count(len(uploads), settings.MAX_FILES)

    accepted = []
    for upload in uploads:
        mime_type = validate_mime_type(upload.content_type, settings.ALLOWED_MIME_TYPES)
        # Read one byte past the limit so oversized files are never fully buffered
        contents = await upload.read(settings.MAX_FILE_SIZE + 1)
        validate_file_size(len(contents), settings.MAX_FILE_SIZE)
        accepted.append((upload.filename, contents, mime_type))

    staged = []
    try:
        for filename, contents, mime_type in accepted:
            staged.append(await staging.stage(contents, filename, mime_type))
    except OSError as e:
        logger.error(f"Failed to stage uploads: {e}")
        for done in staged:
            await staging.delete(done.staged_path)
        raise
    return staged


@router.post(
    "/analyze",
    response_model=AggregateResponse,
    response_model_exclude_unset=True,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
async def analyze_images(
    images: Optional[List[UploadFile]] = File(None),
    orchestrator: AnalysisOrchestrator = Depends(get_orchestrator),
    staging: StagingArea = Depends(get_staging_area)
):
    """
    Analyze up to ``MAX_FILES`` skin images.

    - Rejects the request (400) on missing, too many, oversized or non-image files
    - Analyzes accepted images concurrently; a failing image only fails its own entry
    - Returns one result per image, in upload order
    """
    logger.info("POST /api/analyze - Request received")

    # Browsers submit an empty part when the file input is left blank
    uploads = [upload for upload in images or [] if upload.filename]
    staged = await receive_uploads(uploads, staging)

    try:
        outcomes = await orchestrator.analyze_all(staged)
        return aggregate(outcomes)
    except Exception as e:
        logger.error(f"Analysis error: {e}", exc_info=True)
        for file in staged:
            staging.schedule_deletion(file.staged_path, orchestrator.cleanup_delay)
        raise AnalysisError() from e
