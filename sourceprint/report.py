"""JSON-ready dicts for linking results and processing plans."""

from sourceprint.models import (
    AnalysisWarning,
    LinkedSegment,
    LinkingResult,
    MediaDescriptor,
    ProcessingPlan,
)


def descriptor_to_dict(desc: MediaDescriptor) -> dict:
    res = desc.effective_display_resolution
    return {
        "file_name": desc.file_name,
        "source": desc.source,
        "media_type": desc.media_type.value,
        "resolution": str(desc.resolution) if desc.resolution else None,
        "display_resolution": str(res) if res else None,
        "frame_rate": str(desc.frame_rate) if desc.frame_rate else None,
        "frame_rate_description": desc.frame_rate_description,
        "source_timecode": desc.source_timecode,
        "end_timecode": desc.end_timecode,
        "duration_in_frames": desc.duration_in_frames,
        "is_drop_frame": desc.is_drop_frame,
        "reel_name": desc.reel_name,
        "is_vfx": desc.is_vfx,
    }


def _link_to_dict(link: LinkedSegment) -> dict:
    return {
        "file_name": link.segment.file_name,
        "source": link.segment.source,
        "confidence": link.confidence.value,
        "method": link.method,
    }


def linking_to_dict(result: LinkingResult) -> dict:
    return {
        "summary": result.summary,
        "success_rate": result.success_rate,
        "parents": [
            {
                "file_name": p.ocf.file_name,
                "source": p.ocf.source,
                "children": [_link_to_dict(c) for c in p.children],
            }
            for p in result.parents
        ],
        "unmatched_segments": [d.file_name for d in result.unmatched_segments],
        "unmatched_parents": [d.file_name for d in result.unmatched_parents],
    }


def _warning_to_dict(w: AnalysisWarning) -> dict:
    return {
        "kind": w.kind.value,
        "message": w.message,
        "start_frame": w.start_frame,
        "end_frame": w.end_frame,
        "participants": list(w.participants),
    }


def plan_to_dict(plan: ProcessingPlan) -> dict:
    s = plan.statistics
    data = {
        "ranges": [
            {
                "segment": r.segment.name,
                "source": r.segment.source,
                "is_vfx": r.segment.is_vfx_shot,
                "start_frame": r.start_frame,
                "end_frame": r.end_frame,
                "segment_start_offset": r.segment_start_offset,
            }
            for r in plan.ranges
        ],
        "warnings": [_warning_to_dict(w) for w in plan.warnings],
        "statistics": {
            "total_frames": s.total_frames,
            "segment_count": s.segment_count,
            "vfx_segment_count": s.vfx_segment_count,
            "overlap_count": s.overlap_count,
            "frames_overwritten": s.frames_overwritten,
            "vfx_frames": s.vfx_frames,
            "grade_frames": s.grade_frames,
        },
    }
    if plan.visualization is not None:
        vis = plan.visualization
        data["visualization"] = {
            "total_frames": vis.total_frames,
            "placements": [
                {
                    "segment": p.segment.name,
                    "start_frame": p.start_frame,
                    "end_frame": p.end_frame,
                    "is_vfx": p.is_vfx,
                    "overwritten_ranges": [list(r) for r in p.overwritten_ranges],
                    "color": p.color,
                }
                for p in vis.placements
            ],
            "conflict_zones": [
                {"start_frame": z.start_frame, "end_frame": z.end_frame,
                 "description": z.description}
                for z in vis.conflict_zones
            ],
        }
    return data
