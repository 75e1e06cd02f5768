"""SMPTE timecode <-> frame count conversion, drop-frame aware."""

import logging
import re

from sourceprint.errors import TimecodeError, TimecodeParseError
from sourceprint.framerate import FrameRate, describe

logger = logging.getLogger(__name__)

_TIMECODE_RE = re.compile(r"^(\d{2,})[:;](\d{2})[:;](\d{2})([:;])(\d{2,3})$")


def uses_drop_frame_separator(tc: str) -> bool:
    """True if the timecode is written with a drop-frame ``;`` separator."""
    return ";" in tc


class TimecodeEngine:
    """Converts between timecode strings and absolute frame counts.

    Args:
        rate: Nominal frame rate (FrameRate, Fraction, float, int, ``"num/den"``).
        drop_frame: Count with SMPTE drop-frame numbering. Only honoured for
            the 30000/1001 family; elsewhere the engine counts non-drop.
    """

    def __init__(self, rate, drop_frame: bool = False) -> None:
        self.rate = FrameRate.parse(rate)
        self.frame_base = self.rate.frame_base

        if drop_frame and not self.rate.supports_drop_frame:
            logger.warning(
                "Drop-frame requested for %s which has no drop-frame standard; "
                "counting non-drop", describe(self.rate),
            )
            drop_frame = False
        self.drop_frame = drop_frame
        self.drop_per_minute = round(self.frame_base / 15) if drop_frame else 0

    def __repr__(self) -> str:
        return f"TimecodeEngine(rate={self.rate}, drop_frame={self.drop_frame})"

    def _fields(self, tc: str) -> tuple[int, int, int, int]:
        if not isinstance(tc, str):
            raise TimecodeParseError(f"Timecode must be a string, got {tc!r}")
        m = _TIMECODE_RE.match(tc.strip())
        if m is None:
            raise TimecodeParseError(
                f"Invalid timecode format: {tc!r}. Expected HH:MM:SS:FF or HH:MM:SS;FF"
            )
        hours, minutes, seconds = int(m.group(1)), int(m.group(2)), int(m.group(3))
        frames = int(m.group(5))

        if minutes > 59:
            raise TimecodeParseError(f"Minutes out of range in {tc!r}: {minutes}")
        if seconds > 59:
            raise TimecodeParseError(f"Seconds out of range in {tc!r}: {seconds}")
        if frames >= self.frame_base:
            raise TimecodeParseError(
                f"Frame field out of range in {tc!r}: {frames} >= {self.frame_base} "
                f"at {describe(self.rate)}"
            )
        if (
            self.drop_frame
            and seconds == 0
            and minutes % 10 != 0
            and frames < self.drop_per_minute
        ):
            raise TimecodeParseError(
                f"Timecode {tc!r} names a frame number skipped by drop-frame counting"
            )
        return hours, minutes, seconds, frames

    def frames_from_timecode(self, tc: str) -> int:
        """Absolute frame count for *tc*.

        Either separator is accepted in either mode; counting follows the
        engine's drop-frame setting.

        Raises:
            TimecodeParseError: malformed string or out-of-range field.
        """
        hours, minutes, seconds, frames = self._fields(tc)
        total_minutes = 60 * hours + minutes
        dropped = self.drop_per_minute * (total_minutes - total_minutes // 10)
        return (hours * 3600 + minutes * 60 + seconds) * self.frame_base + frames - dropped

    def timecode_from_frames(self, frames: int) -> str:
        """Timecode string for an absolute frame count (exact inverse)."""
        if frames < 0:
            raise TimecodeError(f"Frame count must be non-negative, got {frames}")

        base = self.frame_base
        if self.drop_frame:
            drop = self.drop_per_minute
            frames_per_minute = base * 60 - drop
            frames_per_10_minutes = base * 600 - drop * 9

            tens, rem = divmod(frames, frames_per_10_minutes)
            if rem > drop:
                frames += drop * 9 * tens + drop * ((rem - drop) // frames_per_minute)
            else:
                frames += drop * 9 * tens

        hours, rem = divmod(frames, base * 3600)
        minutes, rem = divmod(rem, base * 60)
        seconds, ff = divmod(rem, base)
        sep = ";" if self.drop_frame else ":"
        return f"{hours:02d}:{minutes:02d}:{seconds:02d}{sep}{ff:02d}"

    def is_valid_timecode(self, tc: str) -> bool:
        """Structural and range check only.

        A separator that disagrees with the drop-frame mode is accepted but
        logged.
        """
        try:
            self._fields(tc)
        except TimecodeParseError:
            return False
        if not self.separator_matches_mode(tc):
            logger.warning(
                "Timecode %s uses a %s separator but the engine counts %s",
                tc,
                "drop-frame" if uses_drop_frame_separator(tc) else "non-drop",
                "drop-frame" if self.drop_frame else "non-drop",
            )
        return True

    def separator_matches_mode(self, tc: str) -> bool:
        return uses_drop_frame_separator(tc) == self.drop_frame

    def add_frames(self, tc: str, frames: int) -> str:
        return self.timecode_from_frames(self.frames_from_timecode(tc) + frames)

    def frame_difference(self, start_tc: str, end_tc: str) -> int:
        return self.frames_from_timecode(end_tc) - self.frames_from_timecode(start_tc)
