"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from sourceprint.framerate import FPS_23_976
from sourceprint.models import MediaDescriptor, MediaType, Resolution

FIXTURES_DIR = Path(__file__).parent / "fixtures"


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"


@pytest.fixture
def sample_manifest_data(sample_manifest_path: Path) -> dict:
    return json.loads(sample_manifest_path.read_text())


def make_descriptor(file_name: str, media_type=MediaType.GRADED_SEGMENT, **kwargs) -> MediaDescriptor:
    kwargs.setdefault("resolution", Resolution(1920, 1080))
    kwargs.setdefault("frame_rate", FPS_23_976)
    return MediaDescriptor(
        file_name=file_name,
        source=f"/media/{file_name}",
        media_type=media_type,
        **kwargs,
    )


@pytest.fixture
def ocf_a001() -> MediaDescriptor:
    return make_descriptor(
        "A001C001.mov",
        MediaType.ORIGINAL_CAMERA_FILE,
        source_timecode="01:00:00:00",
        end_timecode="01:10:00:00",
    )


@pytest.fixture
def segment_a001_s01() -> MediaDescriptor:
    return make_descriptor(
        "A001C001_s01.mov",
        source_timecode="01:02:00:00",
        end_timecode="01:02:10:00",
    )
