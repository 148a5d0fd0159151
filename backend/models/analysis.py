"""
Analysis-related Pydantic models
"""

from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class SkinType(str, Enum):
    """Skin types the model is asked to choose from"""
    NORMAL = "normal"
    DRY = "dry"
    OILY = "oily"
    COMBINATION = "combination"
    SENSITIVE = "sensitive"


class Severity(str, Enum):
    MILD = "mild"
    MODERATE = "moderate"
    SEVERE = "severe"


class ProductCategory(str, Enum):
    CLEANSER = "cleanser"
    MOISTURIZER = "moisturizer"
    TREATMENT = "treatment"
    SUNSCREEN = "sunscreen"


class AnalysisRecord(BaseModel):
    """
    Structured dermatological assessment returned by the model.

    Only ``skin_type`` and ``overall_condition`` are enforced. Nested entries
    and any extra keys are kept exactly as the model produced them; serialize
    with ``exclude_unset=True`` to emit only what was present.
    """
    model_config = ConfigDict(extra="allow", frozen=True)

    skin_type: str
    overall_condition: str
    detected_conditions: Any = Field(default_factory=list)
    recommended_products: Any = Field(default_factory=list)
    personalized_advice: Any = None
    error: Optional[str] = None  # set on fallback records only

    @field_validator("skin_type", "overall_condition")
    @classmethod
    def not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must not be blank")
        return v


class FileOutcome(BaseModel):
    """Per-file result; carries either ``analysis`` or ``error``"""
    model_config = ConfigDict(frozen=True)

    filename: str
    file_id: str
    timestamp: str
    success: bool
    analysis: Optional[AnalysisRecord] = None
    error: Optional[str] = None


class AggregateResponse(BaseModel):
    """Response model for POST /api/analyze"""
    success: bool
    timestamp: str
    total_files: int
    successful_analyses: int
    results: List[FileOutcome]


class ErrorResponse(BaseModel):
    """Body of every non-2xx response"""
    success: bool = False
    error: str
    code: str
