"""Quad primitive with ray-quad intersection.

A quad is a planar parallelogram defined by:
- Q: A corner point of the quad
- u: Edge vector from Q to adjacent corner
- v: Edge vector from Q to other adjacent corner

The quad spans the parallelogram from Q to Q+u+v. The plane normal, the
plane constant D and the helper vector w = n / (n . n), with n = u x v, are
computed once on the host by quad_frame() and stored with the quad, so the
per-ray test only needs dot and cross products.

Ray-quad intersection uses the parametric plane test:
1. Find where ray intersects the plane containing the quad
2. Express the hit point in plane coordinates (alpha, beta) using w
3. Accept the hit if both coordinates lie in [0, 1)

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.geometry.quad import quad_frame
    >>> normal, d, w = quad_frame((0, 0, 0), (1, 0, 0), (0, 0, 1))
    >>> # Store the frame in a Quad and use hit_quad within a Taichi kernel
"""

from collections.abc import Sequence

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray
from pathtracer.geometry.aabb import AABB

from .sphere import HitRecord

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3

# Rays with |normal . direction| below this are treated as parallel
PARALLEL_EPSILON = 1e-8


@ti.dataclass
class Quad:
    """A quad (parallelogram) with its precomputed plane frame.

    Attributes:
        Q: The corner point of the quad (vec3).
        u: Edge vector from Q to adjacent corner (vec3).
        v: Edge vector from Q to other adjacent corner (vec3).
        normal: Unit plane normal, normalize(u x v).
        d: Plane constant, normal . Q.
        w: Helper vector (u x v) / |u x v|^2 used to solve plane coordinates.
    """

    Q: vec3
    u: vec3
    v: vec3
    normal: vec3
    d: ti.f32
    w: vec3


def quad_frame(
    corner: Sequence[float],
    edge_u: Sequence[float],
    edge_v: Sequence[float],
) -> tuple[np.ndarray, float, np.ndarray]:
    """Compute the plane frame of a quad on the host.

    Args:
        corner: The corner point Q.
        edge_u: The first edge vector.
        edge_v: The second edge vector.

    Returns:
        Tuple of (normal, d, w).

    Raises:
        ValueError: If the edges are parallel or zero-length, so that the
            quad spans no area.
    """
    q = np.asarray(corner, dtype=np.float64)
    u = np.asarray(edge_u, dtype=np.float64)
    v = np.asarray(edge_v, dtype=np.float64)

    n = np.cross(u, v)
    n_dot_n = float(np.dot(n, n))
    if n_dot_n < 1e-20:
        raise ValueError(
            f"Degenerate quad: edges {tuple(edge_u)} and {tuple(edge_v)} span no area"
        )

    normal = n / np.sqrt(n_dot_n)
    d = float(np.dot(normal, q))
    w = n / n_dot_n
    return normal, d, w


def quad_bounding_box(
    corner: Sequence[float],
    edge_u: Sequence[float],
    edge_v: Sequence[float],
) -> AABB:
    """Padded bounding box enclosing all four corners of a quad."""
    q = np.asarray(corner, dtype=np.float64)
    u = np.asarray(edge_u, dtype=np.float64)
    v = np.asarray(edge_v, dtype=np.float64)

    diagonal_a = AABB.from_points(q, q + u + v)
    diagonal_b = AABB.from_points(q + u, q + v)
    return AABB.from_boxes(diagonal_a, diagonal_b).pad()


@ti.func
def hit_quad(ray: Ray, quad: Quad, t_min: ti.f32, t_max: ti.f32) -> HitRecord:
    """Test for ray-quad intersection.

    The ray-plane intersection is found by solving:
        dot(normal, origin + t * direction) = D

    The plane-local coordinates of the hit point P are then:
        alpha = w . ((P - Q) x v)
        beta = w . (u x (P - Q))

    Args:
        ray: The ray to test.
        quad: The quad to test intersection against.
        t_min: Start of the hit window (inclusive).
        t_max: End of the hit window (exclusive).

    Returns:
        A HitRecord containing intersection information. (u, v) of the record
        are the plane coordinates (alpha, beta).
    """
    denom = tm.dot(quad.normal, ray.direction)

    # Initialize result
    did_hit = 0
    hit_t = 0.0
    hit_point = vec3(0.0, 0.0, 0.0)
    hit_normal = vec3(0.0, 0.0, 0.0)
    is_front_face = 0
    alpha = 0.0
    beta = 0.0

    if ti.abs(denom) >= PARALLEL_EPSILON:
        t = (quad.d - tm.dot(quad.normal, ray.origin)) / denom

        if t_min <= t and t < t_max:
            point = ray.origin + t * ray.direction
            planar = point - quad.Q
            a = tm.dot(quad.w, tm.cross(planar, quad.v))
            b = tm.dot(quad.w, tm.cross(quad.u, planar))

            if 0.0 <= a and a < 1.0 and 0.0 <= b and b < 1.0:
                did_hit = 1
                hit_t = t
                hit_point = point
                alpha = a
                beta = b

                if denom > 0.0:
                    # Ray and normal point the same way: back face
                    is_front_face = 0
                    hit_normal = -quad.normal
                else:
                    is_front_face = 1
                    hit_normal = quad.normal

    return HitRecord(
        hit=did_hit,
        t=hit_t,
        point=hit_point,
        normal=hit_normal,
        front_face=is_front_face,
        u=alpha,
        v=beta,
    )


@ti.func
def quad_area(quad: Quad) -> ti.f32:
    """Area of the quad, the magnitude of u x v."""
    return tm.length(tm.cross(quad.u, quad.v))
