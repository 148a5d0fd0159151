"""
Analysis orchestration: one inference call per staged upload, run concurrently.
"""

import asyncio
import logging
from typing import List, Optional, Protocol, Sequence

from core.config import settings
from models.analysis import (
    AnalysisRecord,
    FileOutcome,
    ProductCategory,
    Severity,
    SkinType,
)
from models.upload import UploadedFile
from services.aggregator import utc_timestamp
from services.gemini_client import gemini_client
from services.result_parser import parse_analysis
from services.storage import StagingArea, staging_area
from utils.error_handlers import ErrorRecovery
from utils.validators import normalize_mime_type

logger = logging.getLogger(__name__)


def _choices(enum_cls) -> str:
    return "|".join(member.value for member in enum_cls)


ANALYSIS_PROMPT = f"""You are an expert dermatology AI assistant. Analyze this skin image and provide a comprehensive assessment.

Return ONLY a valid JSON object with this exact structure:
{{
  "skin_type": "{_choices(SkinType)}",
  "overall_condition": "Brief description of overall skin health",
  "detected_conditions": [
    {{
      "condition_name": "Name of detected condition",
      "confidence": 0.85,
      "description": "Brief description of the condition",
      "severity": "{_choices(Severity)}"
    }}
  ],
  "recommended_products": [
    {{
      "category": "{_choices(ProductCategory)}",
      "recommendation": "Specific product type or brand recommendation",
      "ingredients_to_look_for": ["ingredient1", "ingredient2"]
    }}
  ],
  "personalized_advice": "Detailed skincare advice based on analysis"
}}

Rules:
- Return ONLY valid JSON
- No markdown formatting
- No explanations before or after JSON
- Use realistic confidence scores (0.0-1.0)
- Be specific but professional
- Include 2-4 product recommendations
- Provide actionable advice"""


class InferenceClient(Protocol):
    async def generate(self, prompt: str, image: bytes, mime_type: str) -> str:
        ...


class AnalysisOrchestrator:
    """Fans a batch of staged uploads out to the inference service"""

    def __init__(
        self,
        client: Optional[InferenceClient] = None,
        staging: Optional[StagingArea] = None,
        cleanup_delay: Optional[float] = None,
        timeout: Optional[float] = None
    ):
        self.client = client or gemini_client
        self.staging = staging or staging_area
        self.cleanup_delay = settings.CLEANUP_DELAY_SECONDS if cleanup_delay is None else cleanup_delay
        self.timeout = settings.ANALYSIS_TIMEOUT_SECONDS if timeout is None else timeout

    async def analyze_image(self, staged: UploadedFile) -> AnalysisRecord:
        """
        Run one file through the model and parse the reply.

        Raises whatever reading the file or calling the model raised; malformed
        replies are not errors and come back as the fallback record.
        """
        image = await self.staging.read(staged)
        mime_type = normalize_mime_type(staged.declared_mime_type)
        logger.info(f"Analyzing image: {staged.file_id} ({mime_type})")

        text = await ErrorRecovery.with_timeout(
            lambda: self.client.generate(ANALYSIS_PROMPT, image, mime_type),
            self.timeout,
            timeout_message=f"Analysis timed out after {self.timeout:g}s"
        )
        return parse_analysis(text)

    async def analyze_file(self, staged: UploadedFile, index: int = 0, total: int = 1) -> FileOutcome:
        """Produce the outcome for one file; never raises for analysis failures"""
        logger.info(f"Analyzing file {index + 1}/{total}: {staged.original_name}")
        try:
            analysis = await self.analyze_image(staged)
            outcome = FileOutcome(
                filename=staged.original_name,
                file_id=staged.file_id,
                timestamp=utc_timestamp(),
                success=True,
                analysis=analysis
            )
        except Exception as e:
            logger.error(f"Error processing file {staged.original_name}: {e}")
            outcome = FileOutcome(
                filename=staged.original_name,
                file_id=staged.file_id,
                timestamp=utc_timestamp(),
                success=False,
                error=f"Analysis failed: {e}"
            )

        self.staging.schedule_deletion(staged.staged_path, self.cleanup_delay)
        return outcome

    async def analyze_all(self, files: Sequence[UploadedFile]) -> List[FileOutcome]:
        """Analyze every file concurrently; outcomes keep the input order"""
        total = len(files)
        logger.info(f"Processing {total} image(s)")
        return list(await asyncio.gather(
            *(self.analyze_file(staged, index, total) for index, staged in enumerate(files))
        ))


def get_orchestrator() -> AnalysisOrchestrator:
    """FastAPI dependency providing the default orchestrator"""
    return AnalysisOrchestrator()
