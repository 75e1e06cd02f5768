"""Links segments to parents, then plans each parent's timeline."""

import logging
from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass, field
from functools import partial
from typing import Callable

from sourceprint.analyzers.matcher import SegmentMatcher
from sourceprint.analyzers.ownership import FrameOwnershipAnalyzer
from sourceprint.framerate import drop_frame_mode
from sourceprint.manifest import Manifest
from sourceprint.models import (
    LinkingResult,
    OCFParent,
    ProcessingPlan,
    TimelineProperties,
    TimelineSegment,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ParentPlan:
    parent: OCFParent
    plan: ProcessingPlan


@dataclass
class EngineResult:
    linking: LinkingResult
    plans: list[ParentPlan] = field(default_factory=list)
    # OCF file name -> reason its timeline could not be planned
    skipped_parents: dict[str, str] = field(default_factory=dict)


class ParentNotPlannableError(ValueError):
    """Raised when an OCF lacks the rate or length needed to build a timeline."""
    pass


def timeline_for_parent(
    parent: OCFParent,
) -> tuple[TimelineProperties, list[TimelineSegment], int]:
    """Describe a parent's output timeline and its children as analyzer input.

    The OCF supplies the timeline: its rate, its source timecode as the base
    and its length. Children keep their link order.
    """
    ocf = parent.ocf
    if ocf.frame_rate is None:
        raise ParentNotPlannableError(f"{ocf.file_name}: OCF has no frame rate")
    if ocf.duration_in_frames is None:
        raise ParentNotPlannableError(f"{ocf.file_name}: OCF has no duration")

    timeline = TimelineProperties(
        frame_rate=ocf.frame_rate,
        base_timecode=ocf.source_timecode,
        is_drop_frame=drop_frame_mode(ocf.is_drop_frame, ocf.source_timecode, ocf.frame_rate),
    )

    segments = []
    for child in parent.children:
        seg = child.segment
        duration = None
        if seg.duration_in_frames is not None and seg.frame_rate is not None:
            duration = float(seg.frame_rate.frames_to_seconds(seg.duration_in_frames))
        segments.append(TimelineSegment(
            name=seg.file_name,
            source=seg.source,
            # Children without timecode have no timeline position of their own.
            start_time=None,
            duration=duration,
            is_vfx_shot=seg.is_vfx,
            source_timecode=seg.source_timecode,
            frame_rate=seg.frame_rate,
            is_drop_frame=drop_frame_mode(seg.is_drop_frame, seg.source_timecode, seg.frame_rate),
            duration_in_frames=seg.duration_in_frames,
        ))
    return timeline, segments, ocf.duration_in_frames


def plan_parent(parent: OCFParent, include_visualization: bool = False) -> ProcessingPlan:
    timeline, segments, total_frames = timeline_for_parent(parent)
    return FrameOwnershipAnalyzer(
        timeline, segments, total_frames, include_visualization
    ).analyze()


def process(
    manifest: Manifest,
    on_progress: Callable[[str, float], None] | None = None,
) -> EngineResult:
    """Link every segment, then plan each parent that received children.

    Args:
        manifest: Validated reconciliation manifest.
        on_progress: Optional callback(stage_name, fraction_complete).
    """

    def _progress(stage: str, frac: float) -> None:
        if on_progress:
            on_progress(stage, frac)

    _progress("Linking segments to OCF parents", 0.0)
    matcher = SegmentMatcher(resolution_tolerance=manifest.matching.resolution_tolerance)
    linking = matcher.link(manifest.segments, manifest.parents)
    _progress("Linking complete", 0.3)

    result = EngineResult(linking=linking)
    if not manifest.analysis.enabled:
        _progress("Done", 1.0)
        return result

    plannable: list[OCFParent] = []
    for parent in linking.parents_with_children:
        try:
            timeline_for_parent(parent)
        except ParentNotPlannableError as e:
            logger.warning("Skipping analysis: %s", e)
            result.skipped_parents[parent.ocf.file_name] = str(e)
            continue
        plannable.append(parent)

    include_vis = manifest.analysis.include_visualization
    total = len(plannable)

    if manifest.analysis.workers > 1 and total > 1:
        plan = partial(plan_parent, include_visualization=include_vis)
        with ProcessPoolExecutor(max_workers=manifest.analysis.workers) as pool:
            # map() yields in parent order.
            for i, (parent, parent_plan) in enumerate(
                zip(plannable, pool.map(plan, plannable)), 1
            ):
                result.plans.append(ParentPlan(parent=parent, plan=parent_plan))
                _progress("Analyzing frame ownership", 0.3 + 0.7 * i / total)
    else:
        for i, parent in enumerate(plannable, 1):
            _progress(f"Analyzing {parent.ocf.file_name}", 0.3 + 0.7 * (i - 1) / total)
            result.plans.append(
                ParentPlan(parent=parent, plan=plan_parent(parent, include_vis))
            )

    _progress("Done", 1.0)
    return result
