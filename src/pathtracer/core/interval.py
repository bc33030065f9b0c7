"""Half-open numeric intervals used for hit windows and bounding-box slabs.

The host-side Interval is a small immutable value type used while building
bounding boxes and the BVH. Inside Taichi kernels intervals are carried as a
plain pair of floats and tested with interval_contains().
"""

import math
from typing import NamedTuple

import taichi as ti


class Interval(NamedTuple):
    """A half-open range of real numbers [start, end).

    An interval with start >= end contains nothing.

    Attributes:
        start: Lower bound.
        end: Upper bound.
    """

    start: float
    end: float

    @classmethod
    def empty(cls) -> "Interval":
        """The interval containing nothing: [+inf, -inf]."""
        return cls(math.inf, -math.inf)

    @classmethod
    def enclosing(cls, a: "Interval", b: "Interval") -> "Interval":
        """Smallest interval containing both a and b."""
        return cls(min(a.start, b.start), max(a.end, b.end))

    def size(self) -> float:
        """Length of the interval (negative when empty)."""
        return self.end - self.start

    def expand(self, delta: float) -> "Interval":
        """Grow the interval by delta in total, delta / 2 on each side."""
        padding = delta / 2.0
        return Interval(self.start - padding, self.end + padding)


@ti.func
def interval_contains(t_min: ti.f32, t_max: ti.f32, x: ti.f32) -> ti.i32:
    """Half-open window test t_min <= x < t_max for use inside kernels.

    Args:
        t_min: Lower bound of the window (inclusive).
        t_max: Upper bound of the window (exclusive).
        x: Value to test.

    Returns:
        1 if x is in the window, 0 otherwise.
    """
    result = 0
    if t_min <= x and x < t_max:
        result = 1
    return result
