"""Sphere primitive with ray-sphere intersection and motion blur.

A sphere has a start center, a motion vector and a radius. Its center at
ray time t is ``center + t * motion``, so a stationary sphere simply has a
zero motion vector.

The ray-sphere intersection solves:
    |origin + t * direction - center(time)|^2 = radius^2

using the half-b form of the quadratic. The nearer root is tried first and
the farther one only if the nearer root lies outside the hit window, so the
closest valid intersection is always reported.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.geometry.sphere import Sphere, hit_sphere
    >>> sphere = Sphere(center=ti.math.vec3(0, 0, -1), motion=ti.math.vec3(0), radius=0.5)
    >>> # Use hit_sphere within a Taichi kernel
"""

from collections.abc import Sequence

import taichi as ti
import taichi.math as tm

from pathtracer.core.interval import interval_contains
from pathtracer.core.ray import Ray
from pathtracer.geometry.aabb import AABB

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Sphere:
    """A possibly moving sphere.

    Attributes:
        center: The center of the sphere at time 0 (vec3).
        motion: Displacement of the center between time 0 and time 1 (vec3).
        radius: The radius of the sphere (non-negative float).
    """

    center: vec3
    motion: vec3
    radius: ti.f32


@ti.dataclass
class HitRecord:
    """Record of a ray-primitive intersection.

    Attributes:
        hit: Whether the ray intersected the primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the primitive.
        normal: The unit surface normal, always facing against the ray.
        front_face: 1 if the ray arrived from the outside of the surface,
            0 if it arrived from the inside.
        u: Surface texture coordinate in [0, 1].
        v: Surface texture coordinate in [0, 1].

    All fields other than hit are only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32


@ti.func
def sphere_center(sphere: Sphere, time: ti.f32) -> vec3:
    """Center of the sphere at the given ray time."""
    return sphere.center + time * sphere.motion


@ti.func
def sphere_uv(unit_normal: vec3):
    """Spherical texture coordinates of a point on the unit sphere.

    u is the angle around the y axis starting from x = -1, and v is the
    angle from y = -1 up to y = +1, both mapped to [0, 1].

    Args:
        unit_normal: Outward unit normal at the hit point.

    Returns:
        Tuple of (u, v).
    """
    theta = tm.acos(tm.clamp(-unit_normal.y, -1.0, 1.0))
    phi = tm.atan2(-unit_normal.z, unit_normal.x) + tm.pi
    return phi / (2.0 * tm.pi), theta / tm.pi


@ti.func
def hit_sphere(ray: Ray, sphere: Sphere, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Test for ray-sphere intersection.

    Expanding the sphere equation gives a*t^2 + 2*h*t + c = 0 where:
        a = dot(direction, direction)
        h = dot(direction, oc)  (half of traditional b)
        c = dot(oc, oc) - radius^2
        oc = origin - center(time)

    Args:
        ray: The ray to test, whose time selects the sphere position.
        sphere: The sphere to test intersection against.
        t_min: Start of the hit window (inclusive).
        t_max: End of the hit window (exclusive).

    Returns:
        A HitRecord containing intersection information. Check the hit field
        to determine if intersection occurred.
    """
    center = sphere_center(sphere, ray.time)
    oc = ray.origin - center

    a = tm.dot(ray.direction, ray.direction)
    h = tm.dot(ray.direction, oc)
    c = tm.dot(oc, oc) - sphere.radius * sphere.radius
    discriminant = h * h - a * c

    # Initialize result fields (Taichi requires outer-scope declaration)
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    hit_u = 0.0
    hit_v = 0.0

    if discriminant >= 0.0 and a > 0.0:
        sqrt_d = ti.sqrt(discriminant)

        # Nearer root first
        t = (-h - sqrt_d) / a
        valid = interval_contains(t_min, t_max, t)
        if valid == 0:
            t = (-h + sqrt_d) / a
            valid = interval_contains(t_min, t_max, t)

        if valid == 1:
            did_hit = 1
            hit_t = t
            hit_point = ray.origin + t * ray.direction

            outward_normal = (hit_point - center) / sphere.radius
            hit_u, hit_v = sphere_uv(outward_normal)

            if tm.dot(ray.direction, outward_normal) > 0.0:
                # Ray is inside the sphere, hitting back face
                is_front_face = 0
                hit_normal = -outward_normal
            else:
                is_front_face = 1
                hit_normal = outward_normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=hit_u,
        v=hit_v,
    )


@ti.func
def make_sphere(center: vec3, motion: vec3, radius: ti.f32) -> Sphere:
    return Sphere(center=center, motion=motion, radius=radius)


def clamp_radius(radius: float) -> float:
    """Negative radii are treated as zero."""
    return max(0.0, float(radius))


def sphere_bounding_box(
    center: Sequence[float],
    radius: float,
    motion: Sequence[float] = (0.0, 0.0, 0.0),
) -> AABB:
    """Bounding box of a sphere over its whole motion path.

    Args:
        center: Center at time 0.
        radius: Sphere radius.
        motion: Displacement of the center between time 0 and time 1.

    Returns:
        The union of the boxes at time 0 and time 1.
    """
    r = clamp_radius(radius)
    start = AABB.from_points(
        [c - r for c in center],
        [c + r for c in center],
    )
    end_center = [c + m for c, m in zip(center, motion)]
    end = AABB.from_points(
        [c - r for c in end_center],
        [c + r for c in end_center],
    )
    return AABB.from_boxes(start, end)
