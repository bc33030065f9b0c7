"""Axis-aligned bounding boxes.

Bounding boxes are built on the host while primitives are added to the scene
and while the BVH is constructed. Once the BVH is flattened, each node's box
is stored as a (min, max) corner pair in Taichi fields and tested against
rays with hit_aabb().

Example:
    >>> box = AABB.from_points((0, 0, 0), (1, 2, 3))
    >>> box.axis(1)
    Interval(start=0.0, end=2.0)
"""

from collections.abc import Sequence
from dataclasses import dataclass

import taichi as ti
import taichi.math as tm

from pathtracer.core.interval import Interval
from pathtracer.core.ray import Ray

vec3 = tm.vec3

# Minimum extent of a padded box along any axis
PAD_DELTA = 1e-4


@dataclass(frozen=True)
class AABB:
    """An axis-aligned box made of one Interval per axis.

    Attributes:
        x: Extent along the x axis.
        y: Extent along the y axis.
        z: Extent along the z axis.
    """

    x: Interval
    y: Interval
    z: Interval

    @classmethod
    def empty(cls) -> "AABB":
        """A box with inverted bounds, the neutral element of union."""
        return cls(Interval.empty(), Interval.empty(), Interval.empty())

    @classmethod
    def from_points(cls, a: Sequence[float], b: Sequence[float]) -> "AABB":
        """Minimal box containing the two corner points a and b."""
        return cls(
            Interval(min(a[0], b[0]), max(a[0], b[0])),
            Interval(min(a[1], b[1]), max(a[1], b[1])),
            Interval(min(a[2], b[2]), max(a[2], b[2])),
        )

    @classmethod
    def from_boxes(cls, a: "AABB", b: "AABB") -> "AABB":
        """Union of two boxes."""
        return cls(
            Interval.enclosing(a.x, b.x),
            Interval.enclosing(a.y, b.y),
            Interval.enclosing(a.z, b.z),
        )

    def axis(self, i: int) -> Interval:
        """Interval for axis i (0=x, 1=y, 2=z)."""
        if i == 1:
            return self.y
        if i == 2:
            return self.z
        return self.x

    def pad(self, delta: float = PAD_DELTA) -> "AABB":
        """Widen every axis thinner than delta so slab tests stay stable."""
        x = self.x if self.x.size() >= delta else self.x.expand(delta)
        y = self.y if self.y.size() >= delta else self.y.expand(delta)
        z = self.z if self.z.size() >= delta else self.z.expand(delta)
        return AABB(x, y, z)

    @property
    def min_corner(self) -> tuple[float, float, float]:
        return (self.x.start, self.y.start, self.z.start)

    @property
    def max_corner(self) -> tuple[float, float, float]:
        return (self.x.end, self.y.end, self.z.end)

    def surface_area(self) -> float:
        """Surface area of the box, zero for empty boxes."""
        dx, dy, dz = self.x.size(), self.y.size(), self.z.size()
        if dx < 0.0 or dy < 0.0 or dz < 0.0:
            return 0.0
        return 2.0 * (dx * dy + dy * dz + dz * dx)


@ti.func
def hit_aabb(box_min: vec3, box_max: vec3, ray: Ray, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Slab test of a ray against a box stored as a corner pair.

    Each axis narrows the [t_min, t_max] window to where the ray lies between
    that axis's two planes. The box is missed once the window is empty.

    Args:
        box_min: Lower corner of the box.
        box_max: Upper corner of the box.
        ray: The ray to test.
        t_min: Start of the hit window.
        t_max: End of the hit window.

    Returns:
        1 if the ray overlaps the box within the window, 0 otherwise.
    """
    hit = 1
    start = t_min
    end = t_max
    for i in ti.static(range(3)):
        inv_d = 1.0 / ray.direction[i]
        t0 = (box_min[i] - ray.origin[i]) * inv_d
        t1 = (box_max[i] - ray.origin[i]) * inv_d
        if inv_d < 0.0:
            t0, t1 = t1, t0
        if t0 > start:
            start = t0
        if t1 < end:
            end = t1
        if end < start:
            hit = 0
    return hit
