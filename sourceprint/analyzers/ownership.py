"""Frame ownership analysis: resolves overlapping segments into a cut plan.

Grading passes and VFX deliveries are produced independently and often
overlap. Every output frame is assigned to exactly one segment:

* grade segments are painted first, in input order (later wins),
* VFX segments are painted on top, in input order (later wins among VFX),

and the per-frame owners are then merged into contiguous copy ranges.
"""

import itertools
import logging
from dataclasses import dataclass
from fractions import Fraction
from typing import Sequence

from sourceprint.errors import TimecodeError
from sourceprint.framerate import are_compatible, describe, drop_frame_mode
from sourceprint.models import (
    AnalysisWarning,
    ConflictZone,
    ConsolidatedRange,
    PlanStatistics,
    ProcessingPlan,
    SegmentPlacement,
    TimelineProperties,
    TimelineSegment,
    TimelineVisualization,
    WarningKind,
)
from sourceprint.timecode import TimecodeEngine

logger = logging.getLogger(__name__)

VFX_COLOR = "#FF6B6B"
GRADE_COLOR = "#4DABF7"


@dataclass(frozen=True)
class _Positioned:
    index: int
    segment: TimelineSegment
    raw_start: int
    start: int
    end: int

    @property
    def is_vfx(self) -> bool:
        return self.segment.is_vfx_shot

    @property
    def name(self) -> str:
        return self.segment.name


class FrameOwnershipAnalyzer:
    """Builds a ProcessingPlan for one timeline.

    Args:
        timeline: Rate and base timecode of the output timeline.
        segments: Segments in priority order; within a tier, later entries
            win overlaps.
        total_frames: Length of the output timeline.
        include_visualization: Attach placement/conflict data for previews.
    """

    def __init__(
        self,
        timeline: TimelineProperties,
        segments: Sequence[TimelineSegment],
        total_frames: int,
        include_visualization: bool = False,
    ) -> None:
        if total_frames < 0:
            raise ValueError(f"total_frames must be >= 0, got {total_frames}")
        self.timeline = timeline
        self.segments = tuple(segments)
        self.total_frames = total_frames
        self.include_visualization = include_visualization

    def analyze(self) -> ProcessingPlan:
        warnings: list[AnalysisWarning] = []
        positioned = self._position_segments(warnings)

        owners = self._paint(positioned)
        by_index = {p.index: p for p in positioned}
        ranges = self._consolidate(owners, by_index)

        overlaps = self._overlap_warnings(positioned)
        warnings.extend(overlaps)
        for w in warnings:
            logger.warning("%s", w.message)

        vfx_frames = sum(1 for o in owners if o is not None and by_index[o].is_vfx)
        grade_frames = sum(1 for o in owners if o is not None) - vfx_frames
        statistics = PlanStatistics(
            total_frames=self.total_frames,
            segment_count=len(self.segments),
            vfx_segment_count=sum(1 for s in self.segments if s.is_vfx_shot),
            overlap_count=len(overlaps),
            # Summed over overlapping pairs.
            frames_overwritten=sum(w.end_frame - w.start_frame for w in overlaps),
            vfx_frames=vfx_frames,
            grade_frames=grade_frames,
        )

        visualization = None
        if self.include_visualization:
            visualization = self._visualize(positioned, owners)

        return ProcessingPlan(
            ranges=tuple(ranges),
            statistics=statistics,
            warnings=tuple(warnings),
            visualization=visualization,
        )

    # --- Step 1: positions ---------------------------------------------------

    def _position_segments(self, warnings: list[AnalysisWarning]) -> list[_Positioned]:
        positioned: list[_Positioned] = []
        for index, segment in enumerate(self.segments):
            span = self._locate(segment, warnings)
            if span is None:
                continue
            raw_start, raw_end = span
            start = max(0, raw_start)
            end = min(self.total_frames, raw_end)

            if end <= start:
                warnings.append(AnalysisWarning(
                    kind=WarningKind.RANGE_OUTSIDE,
                    message=(
                        f"Segment '{segment.name}' at frames [{raw_start}-{raw_end}) "
                        f"falls outside the timeline [0-{self.total_frames}); skipped"
                    ),
                    start_frame=raw_start,
                    end_frame=raw_end,
                    participants=(segment.name,),
                ))
                continue
            if (start, end) != (raw_start, raw_end):
                warnings.append(AnalysisWarning(
                    kind=WarningKind.RANGE_CLAMP,
                    message=(
                        f"Segment '{segment.name}' at frames [{raw_start}-{raw_end}) "
                        f"clamped to [{start}-{end})"
                    ),
                    start_frame=start,
                    end_frame=end,
                    participants=(segment.name,),
                ))
            positioned.append(_Positioned(index, segment, raw_start, start, end))
        return positioned

    def _locate(
        self, segment: TimelineSegment, warnings: list[AnalysisWarning]
    ) -> tuple[int, int] | None:
        """Unclamped ``[start, end)`` of a segment on the timeline."""
        try:
            return self._locate_by_timecode(segment)
        except _NoTimecodePlacement as e:
            reason = str(e)

        fps = self.timeline.frame_rate.fps
        if segment.duration is not None:
            duration = round(segment.duration * fps)
        elif segment.duration_in_frames is not None \
                and are_compatible(segment.frame_rate, self.timeline.frame_rate):
            duration = segment.duration_in_frames
        else:
            duration = None

        if segment.start_time is None or duration is None:
            warnings.append(AnalysisWarning(
                kind=WarningKind.SEGMENT_SKIPPED,
                message=(
                    f"Segment '{segment.name}' has no usable timing ({reason}); skipped"
                ),
                participants=(segment.name,),
            ))
            return None

        start = round(segment.start_time * fps)
        warnings.append(AnalysisWarning(
            kind=WarningKind.PRECISION_FALLBACK,
            message=(
                f"Segment '{segment.name}' placed from seconds at "
                f"{describe(self.timeline.frame_rate)} ({reason}); frame accuracy "
                f"is approximate"
            ),
            start_frame=start,
            end_frame=start + duration,
            participants=(segment.name,),
        ))
        return start, start + duration

    def _locate_by_timecode(self, segment: TimelineSegment) -> tuple[int, int]:
        timeline = self.timeline
        if not timeline.base_timecode:
            raise _NoTimecodePlacement("timeline has no base timecode")
        if not segment.source_timecode:
            raise _NoTimecodePlacement("segment has no source timecode")
        if segment.frame_rate is None:
            raise _NoTimecodePlacement("segment has no frame rate")
        if not are_compatible(segment.frame_rate, timeline.frame_rate):
            raise _NoTimecodePlacement(
                f"segment rate {describe(segment.frame_rate)} differs from "
                f"timeline rate {describe(timeline.frame_rate)}"
            )

        if segment.duration_in_frames is not None:
            duration = segment.duration_in_frames
        elif segment.duration is not None:
            duration = round(Fraction(str(segment.duration)) * segment.frame_rate.fraction)
        else:
            raise _NoTimecodePlacement("segment has no duration")

        segment_engine = TimecodeEngine(
            segment.frame_rate,
            drop_frame_mode(segment.is_drop_frame, segment.source_timecode, segment.frame_rate),
        )
        timeline_engine = TimecodeEngine(
            timeline.frame_rate,
            drop_frame_mode(timeline.is_drop_frame, timeline.base_timecode, timeline.frame_rate),
        )
        try:
            start = (
                segment_engine.frames_from_timecode(segment.source_timecode)
                - timeline_engine.frames_from_timecode(timeline.base_timecode)
            )
        except TimecodeError as e:
            raise _NoTimecodePlacement(str(e)) from e
        return start, start + duration

    # --- Steps 2-4: paint and consolidate ------------------------------------

    def _paint(self, positioned: list[_Positioned]) -> list[int | None]:
        """Owner (input index) of every timeline frame, None for gaps."""
        owners: list[int | None] = [None] * self.total_frames
        for p in sorted(positioned, key=lambda p: (p.is_vfx, p.index)):
            owners[p.start:p.end] = [p.index] * (p.end - p.start)
        return owners

    @staticmethod
    def _consolidate(
        owners: list[int | None], by_index: dict[int, _Positioned]
    ) -> list[ConsolidatedRange]:
        ranges: list[ConsolidatedRange] = []
        run_owner: int | None = None
        run_start = run_offset = last_offset = 0

        def close(end: int) -> None:
            if run_owner is not None:
                ranges.append(ConsolidatedRange(
                    segment=by_index[run_owner].segment,
                    start_frame=run_start,
                    end_frame=end,
                    segment_start_offset=run_offset,
                ))

        for frame, owner in enumerate(owners):
            if owner is None:
                close(frame)
                run_owner = None
                continue
            offset = frame - by_index[owner].raw_start
            if owner == run_owner and offset == last_offset + 1:
                last_offset = offset
                continue
            close(frame)
            run_owner, run_start, run_offset, last_offset = owner, frame, offset, offset
        close(len(owners))
        return ranges

    # --- Step 5: warnings and statistics -------------------------------------

    @staticmethod
    def _overlap_warnings(positioned: list[_Positioned]) -> list[AnalysisWarning]:
        warnings: list[AnalysisWarning] = []
        for a, b in itertools.combinations(positioned, 2):
            lo, hi = max(a.start, b.start), min(a.end, b.end)
            if lo >= hi:
                continue
            if a.is_vfx and b.is_vfx:
                kind, label = WarningKind.OVERLAP_VFX_VFX, "VFX/VFX"
            elif a.is_vfx or b.is_vfx:
                kind, label = WarningKind.OVERLAP_GRADE_VFX, "Grade/VFX"
            else:
                kind, label = WarningKind.OVERLAP_GRADE_GRADE, "Grade/Grade"
            if a.is_vfx != b.is_vfx:
                winner = a if a.is_vfx else b
            else:
                winner = b
            warnings.append(AnalysisWarning(
                kind=kind,
                message=(
                    f"{label} overlap at frames [{lo}-{hi}) ({hi - lo} frames): "
                    f"'{a.name}' and '{b.name}'; '{winner.name}' takes priority"
                ),
                start_frame=lo,
                end_frame=hi,
                participants=(a.name, b.name),
            ))
        return warnings

    def _visualize(
        self, positioned: list[_Positioned], owners: list[int | None]
    ) -> TimelineVisualization:
        placements = []
        for p in positioned:
            lost: list[tuple[int, int]] = []
            lost_start: int | None = None
            for frame in range(p.start, p.end):
                if owners[frame] != p.index:
                    if lost_start is None:
                        lost_start = frame
                elif lost_start is not None:
                    lost.append((lost_start, frame))
                    lost_start = None
            if lost_start is not None:
                lost.append((lost_start, p.end))
            placements.append(SegmentPlacement(
                segment=p.segment,
                start_frame=p.start,
                end_frame=p.end,
                is_vfx=p.is_vfx,
                overwritten_ranges=tuple(lost),
                color=VFX_COLOR if p.is_vfx else GRADE_COLOR,
            ))

        zones = []
        for a, b in itertools.combinations(positioned, 2):
            lo, hi = max(a.start, b.start), min(a.end, b.end)
            if lo < hi:
                zones.append(ConflictZone(lo, hi, f"{a.name} vs {b.name}"))

        return TimelineVisualization(
            total_frames=self.total_frames,
            placements=tuple(placements),
            conflict_zones=tuple(zones),
        )


class _NoTimecodePlacement(Exception):
    pass


def analyze_frame_ownership(
    timeline: TimelineProperties,
    segments: Sequence[TimelineSegment],
    total_frames: int,
    include_visualization: bool = False,
) -> ProcessingPlan:
    """Convenience wrapper around ``FrameOwnershipAnalyzer(...).analyze()``."""
    return FrameOwnershipAnalyzer(
        timeline, segments, total_frames, include_visualization
    ).analyze()
