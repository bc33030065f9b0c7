"""Geometry module for shape primitives and bounding volumes.

Components:
    aabb: Axis-aligned bounding boxes and the slab test
    sphere: Sphere primitive (optionally moving) with ray-sphere intersection
    quad: Planar parallelogram primitive

Intersection routines are Taichi functions (@ti.func); bounding boxes are
built on the host for BVH construction.
"""

from .aabb import AABB, PAD_DELTA, hit_aabb
from .quad import Quad, hit_quad, quad_area, quad_bounding_box, quad_frame
from .sphere import (
    HitRecord,
    Sphere,
    hit_sphere,
    make_sphere,
    sphere_bounding_box,
    sphere_center,
    sphere_uv,
)

__all__ = [
    "AABB",
    "PAD_DELTA",
    "hit_aabb",
    "Sphere",
    "HitRecord",
    "hit_sphere",
    "make_sphere",
    "sphere_center",
    "sphere_uv",
    "sphere_bounding_box",
    "Quad",
    "hit_quad",
    "quad_area",
    "quad_frame",
    "quad_bounding_box",
]
