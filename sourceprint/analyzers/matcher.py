"""Segment -> camera-original linking.

Segment file names are edited by hand and only loosely trace back to their
camera original, so every candidate parent is scored on several independent
factors (see ``MATCH_WEIGHTS``) and the best-scoring parent wins.
"""

import logging
import re
from dataclasses import dataclass
from pathlib import PurePath
from typing import Sequence

from sourceprint.errors import TimecodeError
from sourceprint.framerate import are_compatible
from sourceprint.models import (
    MATCH_WEIGHTS,
    LinkConfidence,
    LinkedSegment,
    LinkingResult,
    MatchFactor,
    MediaDescriptor,
    OCFParent,
)
from sourceprint.timecode import TimecodeEngine, uses_drop_frame_separator

logger = logging.getLogger(__name__)

# Trailing segment numbers added by editors and grading tools.
SEGMENT_SUFFIX_PATTERNS = [
    re.compile(r"_s\d+$"),
    re.compile(r"_S\d+$"),
    re.compile(r" S\d+$"),
    re.compile(r"_seg\d+$"),
    re.compile(r"_segment\d+$"),
    re.compile(r"\s+S\d+\s*$"),
]

DEFAULT_RESOLUTION_TOLERANCE = 5


def strip_segment_suffix(file_name: str) -> str | None:
    """Base name with segment-number suffixes removed, or None if nothing is left."""
    base = PurePath(file_name).stem
    for pattern in SEGMENT_SUFFIX_PATTERNS:
        base = pattern.sub("", base).strip()
    return base or None


@dataclass(frozen=True)
class MatchScore:
    factors: MatchFactor

    @property
    def total(self) -> int:
        return sum(w for f, w in MATCH_WEIGHTS.items() if f in self.factors)


class SegmentMatcher:
    """Links graded segments to the camera originals they were cut from.

    Each segment goes to at most one parent; a parent may take any number of
    segments. Candidates are considered in the order given and a later
    candidate only displaces the current best with a strictly higher score,
    so ties always resolve to the earliest parent.
    """

    def __init__(self, resolution_tolerance: int = DEFAULT_RESOLUTION_TOLERANCE) -> None:
        self.resolution_tolerance = resolution_tolerance

    def link(
        self,
        segments: Sequence[MediaDescriptor],
        parents: Sequence[MediaDescriptor],
    ) -> LinkingResult:
        logger.info("Linking %d segments with %d OCF parents", len(segments), len(parents))

        children: list[list[LinkedSegment]] = [[] for _ in parents]
        unmatched: list[MediaDescriptor] = []

        for segment in segments:
            match = self.find_best_match(segment, parents)
            if match is None:
                unmatched.append(segment)
                logger.info("%s -> no parent OCF found", segment.file_name)
                continue
            index, linked = match
            children[index].append(linked)
            logger.info(
                "%s -> %s (%s, %s)",
                segment.file_name, parents[index].file_name,
                linked.confidence.value, linked.method,
            )

        result = LinkingResult(
            parents=tuple(
                OCFParent(ocf=p, children=tuple(c)) for p, c in zip(parents, children)
            ),
            unmatched_segments=tuple(unmatched),
            unmatched_parents=tuple(p for p, c in zip(parents, children) if not c),
        )
        logger.info("Linking complete: %s", result.summary)
        return result

    def find_best_match(
        self,
        segment: MediaDescriptor,
        parents: Sequence[MediaDescriptor],
    ) -> tuple[int, LinkedSegment] | None:
        """Index of the winning parent and the resulting link, or None."""
        best_index: int | None = None
        best_score: MatchScore | None = None

        for i, parent in enumerate(parents):
            score = self.score(segment, parent)
            logger.debug(
                "  %s vs %s: %d (%s)",
                segment.file_name, parent.file_name, score.total, score.factors.tag,
            )
            if score.total > (best_score.total if best_score else 0):
                best_index, best_score = i, score

        if best_score is not None:
            return best_index, LinkedSegment(
                segment=segment,
                confidence=self._confidence(best_score),
                factors=best_score.factors,
            )

        base = strip_segment_suffix(segment.file_name)
        if base is not None:
            for i, parent in enumerate(parents):
                if base.lower() in parent.file_name.lower():
                    return i, LinkedSegment(
                        segment=segment,
                        confidence=LinkConfidence.LOW,
                        factors=MatchFactor.FILENAME_FALLBACK,
                    )
        return None

    def score(self, segment: MediaDescriptor, parent: MediaDescriptor) -> MatchScore:
        factors = MatchFactor(0)

        parent_base = parent.base_name.lower()
        if parent_base and parent_base in segment.file_name.lower():
            factors |= MatchFactor.FILENAME_CONTAINS
        else:
            segment_base = strip_segment_suffix(segment.file_name)
            if segment_base is not None and segment_base.lower() in parent_base:
                factors |= MatchFactor.FILENAME_PARTIAL

        seg_res = segment.effective_display_resolution
        par_res = parent.effective_display_resolution
        if seg_res is not None and par_res is not None \
                and seg_res.within(par_res, self.resolution_tolerance):
            factors |= MatchFactor.RESOLUTION

        rates_match = are_compatible(segment.frame_rate, parent.frame_rate)
        if rates_match:
            factors |= MatchFactor.FPS
            if self._timecode_range_contained(segment, parent):
                factors |= MatchFactor.TIMECODE_RANGE

        if segment.reel_name and parent.reel_name \
                and segment.reel_name.lower() == parent.reel_name.lower():
            factors |= MatchFactor.REEL

        return MatchScore(factors)

    @staticmethod
    def _confidence(score: MatchScore) -> LinkConfidence:
        if score.total >= 4 and MatchFactor.FILENAME_CONTAINS in score.factors:
            return LinkConfidence.HIGH
        if score.total >= 2:
            return LinkConfidence.MEDIUM
        return LinkConfidence.LOW

    def _timecode_range_contained(
        self, segment: MediaDescriptor, parent: MediaDescriptor
    ) -> bool:
        seg_span = _frame_span(segment)
        par_span = _frame_span(parent)
        if seg_span is None or par_span is None:
            return False
        return par_span[0] <= seg_span[0] and seg_span[1] <= par_span[1]


def _drop_frame_mode(desc: MediaDescriptor) -> bool:
    if desc.is_drop_frame is not None:
        return desc.is_drop_frame
    return any(
        uses_drop_frame_separator(tc)
        for tc in (desc.source_timecode, desc.end_timecode)
        if tc
    )


def _frame_span(desc: MediaDescriptor) -> tuple[int, int] | None:
    """Inclusive absolute [start, end] frames, or None if they can't be computed.

    A missing end timecode is derived from ``duration_in_frames``.
    """
    if desc.frame_rate is None or not desc.source_timecode:
        return None
    engine = TimecodeEngine(desc.frame_rate, drop_frame=_drop_frame_mode(desc))
    try:
        start = engine.frames_from_timecode(desc.source_timecode)
        if desc.end_timecode:
            end = engine.frames_from_timecode(desc.end_timecode)
        elif desc.duration_in_frames:
            end = start + desc.duration_in_frames - 1
        else:
            return None
    except TimecodeError as e:
        logger.warning("%s: timecode ignored for matching: %s", desc.file_name, e)
        return None
    return start, end
