"""JSON manifest schema: the contract between CLI/API and engine."""

import json
from dataclasses import dataclass, field
from pathlib import Path

from sourceprint.analyzers.matcher import DEFAULT_RESOLUTION_TOLERANCE
from sourceprint.framerate import FrameRate
from sourceprint.models import MediaDescriptor, MediaType, Resolution


@dataclass
class MatchingConfig:
    """Configuration for segment -> OCF linking."""

    resolution_tolerance: int = DEFAULT_RESOLUTION_TOLERANCE


@dataclass
class AnalysisConfig:
    """Configuration for per-parent frame ownership analysis."""

    enabled: bool = True
    include_visualization: bool = False
    workers: int = 1


@dataclass
class Manifest:
    """Top-level reconciliation manifest."""

    parents: list[MediaDescriptor] = field(default_factory=list)
    segments: list[MediaDescriptor] = field(default_factory=list)
    version: str = "1"
    matching: MatchingConfig = field(default_factory=MatchingConfig)
    analysis: AnalysisConfig = field(default_factory=AnalysisConfig)


def _resolution(value) -> Resolution | None:
    if value is None:
        return None
    if isinstance(value, str):
        w, _, h = value.lower().partition("x")
        return Resolution(width=int(w), height=int(h))
    if isinstance(value, dict):
        return Resolution(width=int(value["width"]), height=int(value["height"]))
    return Resolution(width=int(value[0]), height=int(value[1]))


def descriptor_from_dict(data: dict, media_type: MediaType) -> MediaDescriptor:
    """Build a MediaDescriptor from manifest JSON.

    ``file_name`` defaults to the last component of ``source``.
    """
    if "source" not in data and "file_name" not in data:
        raise ValueError("Media entries must contain 'source' or 'file_name'")
    source = data.get("source") or data["file_name"]
    rate = data.get("frame_rate")

    return MediaDescriptor(
        file_name=data.get("file_name") or Path(source).name,
        source=source,
        media_type=MediaType(data.get("media_type", media_type)),
        resolution=_resolution(data.get("resolution")),
        display_resolution=_resolution(data.get("display_resolution")),
        sample_aspect_ratio=data.get("sample_aspect_ratio"),
        frame_rate=FrameRate.parse(rate) if rate is not None else None,
        source_timecode=data.get("source_timecode"),
        end_timecode=data.get("end_timecode"),
        duration_in_frames=data.get("duration_in_frames"),
        is_drop_frame=data.get("is_drop_frame"),
        reel_name=data.get("reel_name"),
        is_vfx_shot=data.get("is_vfx_shot"),
    )


def manifest_from_dict(data: dict) -> Manifest:
    """Validate manifest JSON that has already been decoded."""
    if "parents" not in data or "segments" not in data:
        raise ValueError("Manifest must contain 'parents' and 'segments' fields")

    matching = MatchingConfig(**data["matching"]) if "matching" in data else MatchingConfig()
    analysis = AnalysisConfig(**data["analysis"]) if "analysis" in data else AnalysisConfig()

    return Manifest(
        version=data.get("version", "1"),
        parents=[
            descriptor_from_dict(d, MediaType.ORIGINAL_CAMERA_FILE) for d in data["parents"]
        ],
        segments=[
            descriptor_from_dict(d, MediaType.GRADED_SEGMENT) for d in data["segments"]
        ],
        matching=matching,
        analysis=analysis,
    )


def load_manifest(path: str | Path) -> Manifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())
    return manifest_from_dict(data)
