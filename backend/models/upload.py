"""
Upload-related Pydantic models
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict


class UploadedFile(BaseModel):
    """An accepted attachment written to the staging directory"""
    model_config = ConfigDict(frozen=True)

    original_name: str
    staged_path: Path
    declared_mime_type: str
    size_bytes: int

    @property
    def file_id(self) -> str:
        return self.staged_path.name
