"""ffprobe helpers feeding MediaDescriptors to the linker and analyzer."""

import json
import logging
import shutil
import subprocess
from pathlib import Path

from sourceprint.errors import TimecodeError
from sourceprint.framerate import FrameRate
from sourceprint.models import MediaDescriptor, MediaType, Resolution
from sourceprint.timecode import TimecodeEngine, uses_drop_frame_separator

logger = logging.getLogger(__name__)

VIDEO_EXTENSIONS = frozenset({".mov", ".mp4", ".m4v", ".mxf", ".avi", ".mkv"})

_REEL_TAGS = ("reel_name", "reel", "com.apple.proapps.reel", "com.arri.camera.ReelName")


class FFprobeNotFoundError(RuntimeError):
    pass


def check_ffprobe() -> None:
    """Raise FFprobeNotFoundError if ffprobe is not on PATH."""
    if shutil.which("ffprobe") is None:
        raise FFprobeNotFoundError("ffprobe not found on PATH")


def find_media_files(directory: Path, extensions=VIDEO_EXTENSIONS) -> list[Path]:
    """Video files under *directory*, sorted by path; hidden files are skipped."""
    wanted = {e.lower() for e in extensions}
    return sorted(
        p for p in Path(directory).rglob("*")
        if p.is_file() and p.suffix.lower() in wanted and not p.name.startswith(".")
    )


def _tag(tags: dict, *names: str) -> str | None:
    lowered = {k.lower(): v for k, v in tags.items()}
    for name in names:
        value = lowered.get(name.lower())
        if value:
            return str(value)
    return None


def _end_timecode(start_tc: str, frames: int, rate: FrameRate, drop_frame: bool) -> str | None:
    """Timecode of the last frame (inclusive)."""
    if frames <= 0:
        return None
    engine = TimecodeEngine(rate, drop_frame=drop_frame)
    try:
        return engine.add_frames(start_tc, frames - 1)
    except TimecodeError as e:
        logger.warning("Could not compute end timecode from %s: %s", start_tc, e)
        return None


def descriptor_from_probe(
    data: dict, input_path: Path, media_type: MediaType
) -> MediaDescriptor:
    """Build a MediaDescriptor from ``ffprobe -show_format -show_streams`` JSON."""
    input_path = Path(input_path)
    streams = data.get("streams", [])
    video_stream = next((s for s in streams if s.get("codec_type") == "video"), None)
    if video_stream is None:
        raise ValueError(f"No video stream found in {input_path}")

    rate = None
    for key in ("r_frame_rate", "avg_frame_rate"):
        value = video_stream.get(key)
        if value and not value.startswith("0/") and not value.endswith("/0"):
            rate = FrameRate.parse(value)
            break

    resolution = None
    if video_stream.get("width") and video_stream.get("height"):
        resolution = Resolution(int(video_stream["width"]), int(video_stream["height"]))
    sar = video_stream.get("sample_aspect_ratio")
    if sar in ("0:1", "N/A"):
        sar = None

    format_tags = data.get("format", {}).get("tags", {})
    stream_tags = video_stream.get("tags", {})
    tmcd_tags = {}
    for s in streams:
        if s.get("codec_tag_string") == "tmcd" or s.get("codec_type") == "data":
            tmcd_tags.update(s.get("tags", {}))
    timecode = (
        _tag(stream_tags, "timecode")
        or _tag(tmcd_tags, "timecode")
        or _tag(format_tags, "timecode")
    )

    frames = None
    if str(video_stream.get("nb_frames", "")).isdigit():
        frames = int(video_stream["nb_frames"])
    elif rate is not None and data.get("format", {}).get("duration"):
        seconds = data["format"]["duration"]
        frames = round(rate.seconds_to_frames(str(seconds)))

    drop_frame = uses_drop_frame_separator(timecode) if timecode else None
    end_tc = None
    if timecode and rate is not None and frames:
        end_tc = _end_timecode(timecode, frames, rate, bool(drop_frame))

    return MediaDescriptor(
        file_name=input_path.name,
        source=str(input_path),
        media_type=media_type,
        resolution=resolution,
        sample_aspect_ratio=sar,
        frame_rate=rate,
        source_timecode=timecode,
        end_timecode=end_tc,
        duration_in_frames=frames,
        is_drop_frame=drop_frame,
        reel_name=_tag(format_tags, *_REEL_TAGS) or _tag(stream_tags, *_REEL_TAGS),
    )


def probe(input_path: Path, media_type: MediaType = MediaType.GRADED_SEGMENT) -> MediaDescriptor:
    """Extract media metadata via ffprobe."""
    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(input_path),
    ]
    result = subprocess.run(cmd, capture_output=True, text=True, check=True)
    data = json.loads(result.stdout)
    return descriptor_from_probe(data, Path(input_path), media_type)
