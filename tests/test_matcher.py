"""Tests for segment -> OCF linking."""

import pytest

from conftest import make_descriptor
from sourceprint.analyzers.matcher import SegmentMatcher, strip_segment_suffix
from sourceprint.framerate import FPS_24, FPS_25, FPS_29_97
from sourceprint.models import LinkConfidence, MatchFactor, MediaType, Resolution


def _ocf(file_name, **kwargs):
    return make_descriptor(file_name, MediaType.ORIGINAL_CAMERA_FILE, **kwargs)


class TestStripSegmentSuffix:
    @pytest.mark.parametrize("name,expected", [
        ("A001C001_s01.mov", "A001C001"),
        ("A001C001_S3.mov", "A001C001"),
        ("A001C001 S2.mov", "A001C001"),
        ("clip_seg12.mxf", "clip"),
        ("clip_segment3.mov", "clip"),
        ("A001C001.mov", "A001C001"),
    ])
    def test_patterns(self, name, expected):
        assert strip_segment_suffix(name) == expected

    def test_nothing_left(self):
        assert strip_segment_suffix("_s01.mov") is None


class TestScenario:
    def test_single_high_confidence_link(self, ocf_a001, segment_a001_s01):
        result = SegmentMatcher().link([segment_a001_s01], [ocf_a001])

        assert result.total_linked_segments == 1
        assert result.unmatched_segments == ()
        assert result.unmatched_parents == ()
        link = result.parents[0].children[0]
        assert link.confidence is LinkConfidence.HIGH
        assert link.method == "filename_contains+resolution+fps+timecode_range"
        assert result.success_rate == 1.0

    def test_score_total(self, ocf_a001, segment_a001_s01):
        assert SegmentMatcher().score(segment_a001_s01, ocf_a001).total == 6


class TestFactors:
    def test_24_never_matches_23_976(self, ocf_a001):
        segment = make_descriptor(
            "A001C001_s01.mov", frame_rate=FPS_24,
            source_timecode="01:02:00:00", end_timecode="01:02:10:00",
        )
        score = SegmentMatcher().score(segment, ocf_a001)
        assert MatchFactor.FPS not in score.factors
        assert MatchFactor.TIMECODE_RANGE not in score.factors

    def test_partial_filename(self):
        segment = make_descriptor("A001C001_s01.mov", resolution=None, frame_rate=None)
        parent = _ocf("A001C001_v2.mov", resolution=None, frame_rate=None)
        score = SegmentMatcher().score(segment, parent)
        assert score.factors == MatchFactor.FILENAME_PARTIAL
        assert score.total == 1

    def test_resolution_tolerance(self):
        matcher = SegmentMatcher()
        parent = _ocf("X.mov")
        close = make_descriptor("a.mov", resolution=Resolution(1916, 1082))
        far = make_descriptor("b.mov", resolution=Resolution(1910, 1080))
        assert MatchFactor.RESOLUTION in matcher.score(close, parent).factors
        assert MatchFactor.RESOLUTION not in matcher.score(far, parent).factors

    def test_custom_resolution_tolerance(self):
        parent = _ocf("X.mov")
        far = make_descriptor("b.mov", resolution=Resolution(1910, 1080))
        assert MatchFactor.RESOLUTION in SegmentMatcher(resolution_tolerance=10).score(
            far, parent
        ).factors

    def test_reel_is_case_insensitive(self):
        parent = _ocf("X.mov", reel_name="A001")
        segment = make_descriptor("a.mov", reel_name="a001")
        assert MatchFactor.REEL in SegmentMatcher().score(segment, parent).factors

    def test_timecode_outside_parent(self, ocf_a001):
        segment = make_descriptor(
            "A001C001_s01.mov",
            source_timecode="01:09:59:00", end_timecode="01:10:05:00",
        )
        score = SegmentMatcher().score(segment, ocf_a001)
        assert MatchFactor.TIMECODE_RANGE not in score.factors

    def test_end_derived_from_duration(self, ocf_a001):
        segment = make_descriptor(
            "A001C001_s01.mov", source_timecode="01:02:00:00", duration_in_frames=240,
        )
        score = SegmentMatcher().score(segment, ocf_a001)
        assert MatchFactor.TIMECODE_RANGE in score.factors

    def test_drop_frame_timecodes(self):
        parent = _ocf(
            "A001C001.mov", frame_rate=FPS_29_97,
            source_timecode="01:00:00;00", end_timecode="01:10:00;00",
        )
        segment = make_descriptor(
            "A001C001_s01.mov", frame_rate=FPS_29_97,
            source_timecode="01:05:00;02", duration_in_frames=300,
        )
        score = SegmentMatcher().score(segment, parent)
        assert MatchFactor.TIMECODE_RANGE in score.factors

    def test_malformed_timecode_contributes_nothing(self, ocf_a001):
        segment = make_descriptor("A001C001_s01.mov", source_timecode="garbage")
        score = SegmentMatcher().score(segment, ocf_a001)
        assert MatchFactor.TIMECODE_RANGE not in score.factors
        assert MatchFactor.FPS in score.factors


class TestConfidence:
    def test_contains_without_other_evidence_is_medium(self):
        segment = make_descriptor("A001C001_s01.mov", resolution=None, frame_rate=None)
        parent = _ocf("A001C001.mov", resolution=None, frame_rate=None)
        _, link = SegmentMatcher().find_best_match(segment, [parent])
        assert link.confidence is LinkConfidence.MEDIUM

    def test_metadata_only_match(self):
        segment = make_descriptor("graded.mov")
        parent = _ocf("camera.mov")
        _, link = SegmentMatcher().find_best_match(segment, [parent])
        assert link.confidence is LinkConfidence.MEDIUM
        assert link.method == "resolution+fps"

    def test_single_factor_is_low(self):
        segment = make_descriptor("graded.mov", frame_rate=FPS_25)
        parent = _ocf("camera.mov", resolution=Resolution(720, 576), frame_rate=FPS_25)
        _, link = SegmentMatcher().find_best_match(segment, [parent])
        assert link.confidence is LinkConfidence.LOW
        assert link.factors == MatchFactor.FPS


class TestBestMatch:
    def test_tie_goes_to_first_candidate(self, segment_a001_s01):
        first = _ocf("A001C001.mov", source_timecode="01:00:00:00", end_timecode="01:10:00:00")
        second = _ocf("A001C001.mov", source_timecode="01:00:00:00", end_timecode="01:10:00:00")
        index, _ = SegmentMatcher().find_best_match(segment_a001_s01, [first, second])
        assert index == 0

    def test_strictly_higher_score_wins(self, segment_a001_s01):
        weak = _ocf("A001C001.mov", resolution=Resolution(3840, 2160), frame_rate=FPS_25)
        strong = _ocf("A001C001.mov")
        assert SegmentMatcher().find_best_match(segment_a001_s01, [weak, strong])[0] == 1
        assert SegmentMatcher().find_best_match(segment_a001_s01, [strong, weak])[0] == 0

    def test_filename_fallback(self):
        segment = make_descriptor("001.mov_s02.mxf", resolution=None, frame_rate=None)
        parent = _ocf("A001C001.mov", resolution=None, frame_rate=None)
        index, link = SegmentMatcher().find_best_match(segment, [parent])
        assert index == 0
        assert link.confidence is LinkConfidence.LOW
        assert link.method == "filename_fallback"

    def test_no_match(self):
        segment = make_descriptor("Unknown_clip.mov", resolution=Resolution(720, 576),
                                  frame_rate=FPS_25)
        parent = _ocf("A001C001.mov")
        assert SegmentMatcher().find_best_match(segment, [parent]) is None

    def test_no_parents(self, segment_a001_s01):
        assert SegmentMatcher().find_best_match(segment_a001_s01, []) is None


class TestLink:
    def test_unmatched_segments_and_parents(self, ocf_a001, segment_a001_s01):
        stray = make_descriptor("Unknown_clip.mov", resolution=Resolution(720, 576),
                                frame_rate=FPS_25)
        idle = _ocf("B002C003.mov", resolution=Resolution(4096, 2160), frame_rate=FPS_24)
        result = SegmentMatcher().link([segment_a001_s01, stray], [ocf_a001, idle])

        assert result.unmatched_segments == (stray,)
        assert result.unmatched_parents == (idle,)
        assert [p.ocf for p in result.parents_with_children] == [ocf_a001]
        assert result.success_rate == 0.5
        assert result.summary == "1 OCF parents with 1 child segments (50% success)"

    def test_children_keep_input_order(self, ocf_a001):
        segments = [
            make_descriptor(f"A001C001_s{i:02d}.mov", source_timecode="01:02:00:00",
                            duration_in_frames=24)
            for i in (3, 1, 2)
        ]
        result = SegmentMatcher().link(segments, [ocf_a001])
        names = [c.segment.file_name for c in result.parents[0].children]
        assert names == ["A001C001_s03.mov", "A001C001_s01.mov", "A001C001_s02.mov"]

    def test_parents_keep_input_order(self, ocf_a001):
        other = _ocf("B002C003.mov")
        result = SegmentMatcher().link([], [other, ocf_a001])
        assert [p.ocf.file_name for p in result.parents] == ["B002C003.mov", "A001C001.mov"]
        assert result.success_rate == 0.0
