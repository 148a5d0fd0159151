"""
Turns the model's free-form reply into an AnalysisRecord.

The model is told to answer with bare JSON but regularly wraps it in markdown
fences or prose. ``parse_analysis`` strips the fences, parses and minimally
validates the object, and falls back to a fixed record instead of raising.
"""

import json
import logging
from typing import Optional

from pydantic import ValidationError

from models.analysis import AnalysisRecord, ProductCategory

logger = logging.getLogger(__name__)

FENCE = "```"
JSON_FENCE = "```json"

INVALID_FORMAT_MESSAGE = "Analysis completed but returned invalid format"

# Longest slice of a bad reply written to the log
MAX_LOGGED_RESPONSE = 500


def fallback_analysis() -> AnalysisRecord:
    """Record returned whenever the reply cannot be used"""
    return AnalysisRecord(
        error=INVALID_FORMAT_MESSAGE,
        skin_type="unknown",
        overall_condition="Unable to determine from image",
        detected_conditions=[],
        recommended_products=[
            {
                "category": ProductCategory.CLEANSER.value,
                "recommendation": "Gentle, pH-balanced cleanser",
                "ingredients_to_look_for": ["ceramides", "hyaluronic acid"],
            }
        ],
        personalized_advice="Please upload a clearer image for better analysis.",
    )


def extract_json_block(text: str) -> str:
    """
    Return the payload of the first fenced block, preferring one labelled json.

    Text without fences is returned trimmed and otherwise untouched.
    """
    text = (text or "").strip()
    if JSON_FENCE in text:
        text = text.split(JSON_FENCE, 1)[1].split(FENCE, 1)[0]
    elif FENCE in text:
        text = text.split(FENCE, 2)[1]
    return text.strip()


def parse_analysis(raw_text: Optional[str]) -> AnalysisRecord:
    """
    Parse raw model output into an AnalysisRecord.

    Never raises: invalid or too deeply nested JSON, a non-object payload or
    a missing/blank ``skin_type`` or ``overall_condition`` all yield
    ``fallback_analysis()``. Every other field is kept as the model sent it.
    """
    text = extract_json_block(raw_text or "")
    try:
        payload = json.loads(text)
        if not isinstance(payload, dict):
            raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
        return AnalysisRecord.model_validate(payload)
    except (ValueError, ValidationError, RecursionError) as e:
        logger.warning(f"Failed to parse analysis response: {e}")
        logger.debug(f"Raw response: {text[:MAX_LOGGED_RESPONSE]}")
        return fallback_analysis()
