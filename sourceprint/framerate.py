"""Rational frame rates.

Every rate is held as an exact, reduced ``num/den`` pair so that two rates are
only ever considered the same when they are the same rational number. Float
rates reported by tools (``23.976``, ``29.97``) are mapped onto their NTSC
rational before any arithmetic happens.
"""

import logging
import math
import re
from dataclasses import dataclass
from fractions import Fraction

from sourceprint.errors import TimecodeRateError

logger = logging.getLogger(__name__)

# Floats within this distance of n*1000/1001 are read as the NTSC rate.
NTSC_TOLERANCE = 0.001
FLOAT_MAX_DENOMINATOR = 1001

_RATIO_RE = re.compile(r"^\s*(\d+)\s*[/:]\s*(-?\d+)\s*$")


@dataclass(frozen=True)
class FrameRate:
    """A frame rate stored as a reduced numerator/denominator pair."""

    num: int
    den: int

    def __post_init__(self) -> None:
        if not isinstance(self.num, int) or not isinstance(self.den, int) \
                or isinstance(self.num, bool) or isinstance(self.den, bool):
            raise TimecodeRateError(
                f"Frame rate terms must be integers, got {self.num!r}/{self.den!r}"
            )
        if self.den <= 0:
            raise TimecodeRateError(
                f"Frame rate denominator must be positive, got {self.num}/{self.den}"
            )
        if self.num <= 0:
            raise TimecodeRateError(
                f"Frame rate numerator must be positive, got {self.num}/{self.den}"
            )
        g = math.gcd(self.num, self.den)
        if g != 1:
            object.__setattr__(self, "num", self.num // g)
            object.__setattr__(self, "den", self.den // g)

    @classmethod
    def from_float(cls, value: float) -> "FrameRate":
        """Map a float rate to its exact rational.

        Values sitting on the ``n*1000/1001`` family (23.976, 29.97, 59.94,
        119.88, ...) resolve to that rational; anything else becomes the
        closest fraction with a small denominator, so 12.5 is ``25/2``.
        """
        if not math.isfinite(value) or value <= 0:
            raise TimecodeRateError(f"Frame rate must be a positive number, got {value!r}")

        nominal = round(value * 1001 / 1000)
        if nominal > 0 and abs(value - nominal) > NTSC_TOLERANCE:
            ntsc = nominal * 1000 / 1001
            if abs(value - ntsc) < NTSC_TOLERANCE:
                return cls(nominal * 1000, 1001)

        approx = Fraction(value).limit_denominator(FLOAT_MAX_DENOMINATOR)
        if approx <= 0:
            raise TimecodeRateError(f"Frame rate {value!r} is too small to represent")
        return cls(approx.numerator, approx.denominator)

    @classmethod
    def parse(cls, value) -> "FrameRate":
        """Coerce a FrameRate, Fraction, int, float, (num, den) pair or string."""
        if isinstance(value, FrameRate):
            return value
        if value is None or isinstance(value, bool):
            raise TimecodeRateError(f"Unrecognized frame rate {value!r}")
        if isinstance(value, Fraction):
            return cls(value.numerator, value.denominator)
        if isinstance(value, int):
            return cls(value, 1)
        if isinstance(value, float):
            return cls.from_float(value)
        if isinstance(value, (tuple, list)) and len(value) == 2:
            try:
                return cls(int(value[0]), int(value[1]))
            except (TypeError, ValueError) as e:
                raise TimecodeRateError(f"Unrecognized frame rate {value!r}") from e
        if isinstance(value, str):
            m = _RATIO_RE.match(value)
            if m:
                return cls(int(m.group(1)), int(m.group(2)))
            try:
                return cls.from_float(float(value))
            except ValueError as e:
                raise TimecodeRateError(f"Unrecognized frame rate {value!r}") from e
        raise TimecodeRateError(f"Unrecognized frame rate {value!r}")

    @property
    def fraction(self) -> Fraction:
        return Fraction(self.num, self.den)

    @property
    def fps(self) -> float:
        return self.num / self.den

    @property
    def frame_base(self) -> int:
        """Frames per timecode second: the rate rounded up (24 for 23.976)."""
        return -(-self.num // self.den)

    @property
    def is_ntsc(self) -> bool:
        return self.den == 1001

    @property
    def supports_drop_frame(self) -> bool:
        """Drop-frame counting only exists for the 30000/1001 family."""
        return self.is_ntsc and self.frame_base % 30 == 0

    def frames_to_seconds(self, frames: int) -> Fraction:
        return Fraction(frames) * self.den / self.num

    def seconds_to_frames(self, seconds) -> Fraction:
        """Exact frame count for a duration; floats are taken at face value."""
        return Fraction(seconds) * self.fraction

    def __str__(self) -> str:
        return f"{self.num}/{self.den}"


FPS_23_976 = FrameRate(24000, 1001)
FPS_24 = FrameRate(24, 1)
FPS_25 = FrameRate(25, 1)
FPS_29_97 = FrameRate(30000, 1001)
FPS_30 = FrameRate(30, 1)
FPS_50 = FrameRate(50, 1)
FPS_59_94 = FrameRate(60000, 1001)
FPS_60 = FrameRate(60, 1)


def are_compatible(a, b) -> bool:
    """True only when both rates normalize to the identical rational.

    ``24`` and ``23.976`` are never compatible, however close they look as
    floats. A missing rate is compatible with nothing.
    """
    if a is None or b is None:
        return False
    return FrameRate.parse(a) == FrameRate.parse(b)


def describe(rate, drop_frame: bool | None = False) -> str:
    """Human label such as ``"23.976fps (24000/1001)"``."""
    if rate is None:
        return "Unknown"
    fr = FrameRate.parse(rate)
    shown = f"{fr.fps:.3f}".rstrip("0").rstrip(".")
    text = f"{shown}fps ({fr.num}/{fr.den})"
    if drop_frame:
        text += " (drop frame)"
    return text


def timescale_for(rate) -> int:
    """Integer timescale in which one frame lasts a whole number of ticks.

    NTSC rates use their numerator (one frame = 1001 ticks); integer rates are
    scaled by 1000 (24 fps -> 24000).
    """
    fr = FrameRate.parse(rate)
    if fr.den == 1:
        return fr.num * 1000
    if (fr.num * 1000) % fr.den == 0:
        return fr.num * 1000 // fr.den
    return fr.num


def detect_drop_frame(timecode: str, rate) -> bool:
    """Infer drop-frame counting from the separator, cross-checked with the rate.

    The separator decides; a drop-frame separator at a rate without a
    drop-frame standard is logged.
    """
    has_separator = ";" in timecode
    try:
        capable = FrameRate.parse(rate).supports_drop_frame
    except TimecodeRateError:
        return has_separator
    if has_separator and not capable:
        logger.warning(
            "Timecode %s uses a drop-frame separator at %s",
            timecode, describe(rate),
        )
    return has_separator


def drop_frame_mode(explicit: bool | None, timecode: str | None, rate) -> bool:
    """Explicit drop-frame metadata if present, else inferred from *timecode*."""
    if explicit is not None:
        return explicit
    if not timecode:
        return False
    return detect_drop_frame(timecode, rate)
