"""Shared data types used across SourcePrint."""

import bisect
from dataclasses import dataclass, field
from enum import Enum, Flag, auto
from pathlib import PurePath

from sourceprint.framerate import FrameRate, describe
from sourceprint.timecode import TimecodeEngine


class MediaType(str, Enum):
    ORIGINAL_CAMERA_FILE = "original_camera_file"
    GRADED_SEGMENT = "graded_segment"


@dataclass(frozen=True)
class Resolution:
    """Pixel dimensions."""

    width: int
    height: int

    def within(self, other: "Resolution", tolerance: int) -> bool:
        return (
            abs(self.width - other.width) <= tolerance
            and abs(self.height - other.height) <= tolerance
        )

    def __str__(self) -> str:
        return f"{self.width}x{self.height}"


@dataclass(frozen=True)
class MediaDescriptor:
    """Pre-extracted metadata for one media file.

    Timecodes are kept as the provider reported them. A malformed value does
    not prevent construction; check ``has_valid_timecodes``.
    """

    file_name: str
    source: str
    media_type: MediaType
    resolution: Resolution | None = None
    display_resolution: Resolution | None = None
    sample_aspect_ratio: str | None = None
    frame_rate: FrameRate | None = None
    source_timecode: str | None = None
    end_timecode: str | None = None
    duration_in_frames: int | None = None
    is_drop_frame: bool | None = None
    reel_name: str | None = None
    is_vfx_shot: bool | None = None

    def __post_init__(self) -> None:
        if self.duration_in_frames is not None and self.duration_in_frames < 0:
            raise ValueError(
                f"{self.file_name}: duration_in_frames must be >= 0, "
                f"got {self.duration_in_frames}"
            )

    @property
    def base_name(self) -> str:
        """File name without its extension."""
        return PurePath(self.file_name).stem

    @property
    def effective_display_resolution(self) -> Resolution | None:
        """Display resolution, else coded resolution corrected by a non-square SAR."""
        if self.display_resolution is not None:
            return self.display_resolution
        if self.resolution is not None and self.sample_aspect_ratio not in (None, "1:1"):
            parts = self.sample_aspect_ratio.split(":")
            if len(parts) == 2:
                try:
                    num, den = int(parts[0]), int(parts[1])
                except ValueError:
                    return self.resolution
                if num > 0 and den > 0:
                    return Resolution(
                        width=round(self.resolution.width * num / den),
                        height=self.resolution.height,
                    )
        return self.resolution

    @property
    def is_vfx(self) -> bool:
        """Explicit VFX flag, falling back to "VFX" in the file name."""
        if self.is_vfx_shot is not None:
            return self.is_vfx_shot
        return "VFX" in self.file_name.upper()

    @property
    def frame_rate_description(self) -> str:
        return describe(self.frame_rate, self.is_drop_frame)

    @property
    def has_valid_timecodes(self) -> bool:
        """True if every timecode present parses at this file's frame rate."""
        if self.frame_rate is None:
            return False
        engine = TimecodeEngine(self.frame_rate, drop_frame=bool(self.is_drop_frame))
        return all(
            engine.is_valid_timecode(tc)
            for tc in (self.source_timecode, self.end_timecode)
            if tc is not None
        )


# --- Linking ---------------------------------------------------------------


class LinkConfidence(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class MatchFactor(Flag):
    """Evidence that a segment was cut from a given camera original."""

    FILENAME_CONTAINS = auto()
    FILENAME_PARTIAL = auto()
    RESOLUTION = auto()
    FPS = auto()
    TIMECODE_RANGE = auto()
    REEL = auto()
    FILENAME_FALLBACK = auto()

    @property
    def tag(self) -> str:
        """``"filename_contains+fps"`` style label, ``"no_match"`` when empty."""
        tags = [f.name.lower() for f in MatchFactor if f in self]
        return "+".join(tags) if tags else "no_match"


MATCH_WEIGHTS: dict[MatchFactor, int] = {
    MatchFactor.FILENAME_CONTAINS: 3,
    MatchFactor.FILENAME_PARTIAL: 1,
    MatchFactor.RESOLUTION: 1,
    MatchFactor.FPS: 1,
    MatchFactor.TIMECODE_RANGE: 1,
    MatchFactor.REEL: 1,
    MatchFactor.FILENAME_FALLBACK: 0,
}


@dataclass(frozen=True)
class LinkedSegment:
    segment: MediaDescriptor
    confidence: LinkConfidence
    factors: MatchFactor

    @property
    def method(self) -> str:
        return self.factors.tag


@dataclass(frozen=True)
class OCFParent:
    """A camera original and the segments linked to it, in input order."""

    ocf: MediaDescriptor
    children: tuple[LinkedSegment, ...] = ()

    @property
    def child_count(self) -> int:
        return len(self.children)

    @property
    def has_children(self) -> bool:
        return bool(self.children)


@dataclass(frozen=True)
class LinkingResult:
    parents: tuple[OCFParent, ...]
    unmatched_segments: tuple[MediaDescriptor, ...]
    unmatched_parents: tuple[MediaDescriptor, ...]

    @property
    def parents_with_children(self) -> tuple[OCFParent, ...]:
        return tuple(p for p in self.parents if p.has_children)

    @property
    def total_linked_segments(self) -> int:
        return sum(p.child_count for p in self.parents)

    @property
    def total_segments(self) -> int:
        return self.total_linked_segments + len(self.unmatched_segments)

    @property
    def success_rate(self) -> float:
        if self.total_segments == 0:
            return 0.0
        return self.total_linked_segments / self.total_segments

    @property
    def summary(self) -> str:
        return (
            f"{len(self.parents_with_children)} OCF parents with "
            f"{self.total_linked_segments} child segments "
            f"({int(self.success_rate * 100)}% success)"
        )


# --- Frame ownership -------------------------------------------------------


@dataclass(frozen=True)
class TimelineProperties:
    """The shared output timeline a plan is computed against.

    ``is_drop_frame`` left as None is read from the base timecode separator.
    """

    frame_rate: FrameRate
    base_timecode: str | None = None
    is_drop_frame: bool | None = None


@dataclass(frozen=True)
class TimelineSegment:
    """A segment to be placed on the timeline.

    ``start_time`` and ``duration`` are seconds relative to the timeline start
    and are only used when timecode placement is impossible.
    """

    name: str
    start_time: float | None = None
    duration: float | None = None
    is_vfx_shot: bool = False
    source: str | None = None
    source_timecode: str | None = None
    frame_rate: FrameRate | None = None
    is_drop_frame: bool | None = None
    duration_in_frames: int | None = None


@dataclass(frozen=True)
class ConsolidatedRange:
    """Timeline frames ``[start_frame, end_frame)`` copied from one segment."""

    segment: TimelineSegment
    start_frame: int
    end_frame: int
    segment_start_offset: int

    @property
    def frame_count(self) -> int:
        return self.end_frame - self.start_frame

    @property
    def description(self) -> str:
        return (
            f"[{self.start_frame}-{self.end_frame}): {self.segment.name} "
            f"@ offset {self.segment_start_offset} ({self.frame_count} frames)"
        )


class WarningKind(str, Enum):
    OVERLAP_GRADE_GRADE = "overlap_grade_grade"
    OVERLAP_GRADE_VFX = "overlap_grade_vfx"
    OVERLAP_VFX_VFX = "overlap_vfx_vfx"
    RANGE_CLAMP = "range_clamp"
    RANGE_OUTSIDE = "range_outside"
    PRECISION_FALLBACK = "precision_fallback"
    SEGMENT_SKIPPED = "segment_skipped"

    @property
    def is_overlap(self) -> bool:
        return self.value.startswith("overlap_")


@dataclass(frozen=True)
class AnalysisWarning:
    kind: WarningKind
    message: str
    start_frame: int | None = None
    end_frame: int | None = None
    participants: tuple[str, ...] = ()


@dataclass(frozen=True)
class PlanStatistics:
    total_frames: int
    segment_count: int = 0
    vfx_segment_count: int = 0
    overlap_count: int = 0
    frames_overwritten: int = 0
    vfx_frames: int = 0
    grade_frames: int = 0


@dataclass(frozen=True)
class SegmentPlacement:
    segment: TimelineSegment
    start_frame: int
    end_frame: int
    is_vfx: bool
    overwritten_ranges: tuple[tuple[int, int], ...]
    color: str


@dataclass(frozen=True)
class ConflictZone:
    start_frame: int
    end_frame: int
    description: str


@dataclass(frozen=True)
class TimelineVisualization:
    total_frames: int
    placements: tuple[SegmentPlacement, ...] = ()
    conflict_zones: tuple[ConflictZone, ...] = ()


@dataclass(frozen=True)
class ProcessingPlan:
    ranges: tuple[ConsolidatedRange, ...]
    statistics: PlanStatistics
    warnings: tuple[AnalysisWarning, ...] = ()
    visualization: TimelineVisualization | None = None
    _starts: tuple[int, ...] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_starts", tuple(r.start_frame for r in self.ranges))

    @property
    def overlap_warnings(self) -> tuple[AnalysisWarning, ...]:
        return tuple(w for w in self.warnings if w.kind.is_overlap)

    def range_at(self, frame: int) -> ConsolidatedRange | None:
        """The range supplying timeline *frame*, or None for a gap."""
        i = bisect.bisect_right(self._starts, frame) - 1
        if i >= 0 and frame < self.ranges[i].end_frame:
            return self.ranges[i]
        return None
