"""
Single precision numeric helpers shared by the engine and the emitters.
"""

import math
import struct


F32_EPSILON = 2.0 ** -23
F32_MAX = 3.4028234663852886e38

I64_MIN = -(2 ** 63)
I64_MAX = 2 ** 63 - 1

_F32 = struct.Struct("<f")


def to_f32(value: float | int) -> float:
    """Round a Python number to the nearest single precision value."""
    try:
        return _F32.unpack(_F32.pack(float(value)))[0]
    except OverflowError:
        return math.copysign(math.inf, 1 if value > 0 else -1)


def f32_bits(value: float) -> int:
    """IEEE-754 bit pattern of a single precision value."""
    return struct.unpack("<I", _F32.pack(to_f32(value)))[0]


def to_i64(value: float) -> int:
    """
    Convert a float to an integer the way a saturating cast does.

    Truncates toward zero, maps NaN to 0 and clamps to the i64 range.
    """
    if math.isnan(value):
        return 0
    if value >= I64_MAX:
        return I64_MAX
    if value <= I64_MIN:
        return I64_MIN
    return int(value)


def format_value(value: float, precision: int = 6) -> str:
    """Format a value the way print() writes it ("NaN", "inf", "-inf")."""
    if math.isnan(value):
        return "NaN"
    return f"{value:.{precision}f}"
