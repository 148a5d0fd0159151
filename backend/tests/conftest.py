"""
Shared fixtures.

The environment is prepared before any application module is imported so the
settings singleton picks up a credential and a throwaway staging directory.
"""

import os
import tempfile

os.environ.setdefault("GEMINI_API_KEY", "test-key")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="skin-analyzer-staging-"))

import pytest  # noqa: E402

from fakes import make_image_bytes  # noqa: E402
from services.storage import StagingArea  # noqa: E402


@pytest.fixture
def jpeg_bytes():
    return make_image_bytes("JPEG")


@pytest.fixture
def png_bytes():
    return make_image_bytes("PNG", color="blue")


@pytest.fixture
def staging(tmp_path):
    return StagingArea(tmp_path / "uploads")
