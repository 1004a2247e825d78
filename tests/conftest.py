"""
Pytest fixtures for ffrender tests.

ffmpeg/ffprobe are never executed here: subprocess calls are patched and
network access goes through httpx.MockTransport.
"""

import os
import tempfile
from pathlib import Path

# Settings are cached on first use, so point them at scratch dirs before any
# ffrender import.
_SCRATCH = Path(tempfile.mkdtemp(prefix="ffrender_tests_"))
os.environ.setdefault("TEMP_DIR", str(_SCRATCH / "temp"))
os.environ.setdefault("FONTS_DIR", str(_SCRATCH / "fonts"))
os.environ.setdefault("LOCAL_STORAGE_PATH", str(_SCRATCH / "storage"))
os.environ.setdefault("USE_LOCAL_STORAGE", "true")
os.environ.setdefault("DOWNLOAD_FONTS_ON_STARTUP", "false")
os.environ.setdefault("PUBLIC_BASE_URL", "http://render.test")
os.environ.setdefault("MIN_FREE_DISK_MB", "0")

import pytest  # noqa: E402

from ffrender.render.workspace import JobWorkspace  # noqa: E402
from ffrender.services.font_service import FontService  # noqa: E402


@pytest.fixture
def temp_output_dir():
    """Temporary directory for test outputs."""
    with tempfile.TemporaryDirectory(prefix="ffrender_test_") as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def workspace(temp_output_dir: Path) -> JobWorkspace:
    return JobWorkspace("job123", temp_output_dir)


@pytest.fixture
def fonts(temp_output_dir: Path) -> FontService:
    """Font service with an empty fonts dir (everything resolves to the system font)."""
    fonts_dir = temp_output_dir / "fonts"
    fonts_dir.mkdir()
    return FontService(fonts_dir=str(fonts_dir), default_font_path="/system/DejaVuSans.ttf")


@pytest.fixture
def cached_fonts(fonts: FontService) -> FontService:
    """Font service with poppins_bold and inter_regular present on disk."""
    for name in ("poppins_bold", "inter_regular"):
        fonts.font_path(name).write_bytes(b"\0" * 2048)
    return fonts
