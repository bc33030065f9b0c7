"""Core rendering module.

Components:
    interval: Half-open parameter ranges [start, end) used for hit windows
    ray: Ray data structure, vector helpers and random sampling
    integrator: Path tracing kernels and the render target
    progressive: Batched, resumable sample accumulation

The core module evaluates the rendering loop: a ray bounces through the
scene up to a fixed depth, picking up emission and material attenuation,
and samples are averaged per pixel.
"""

from .interval import Interval, interval_contains
from .ray import (
    Ray,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    near_zero,
    normalize,
    random_in_unit_disk,
    random_in_unit_sphere,
    random_unit_vector,
    ray_at,
    reflect,
    reflectance,
    refract,
    vec3,
)

# integrator and progressive are NOT imported here to avoid circular imports.
# Import them directly, e.g. from pathtracer.core.progressive import ProgressiveRenderer

__all__ = [
    "Interval",
    "interval_contains",
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "dot",
    "cross",
    "reflect",
    "refract",
    "reflectance",
    "near_zero",
    "random_in_unit_sphere",
    "random_unit_vector",
    "random_in_unit_disk",
]
