"""Ray data structure and vector utilities for GPU-accelerated path tracing.

This module provides the Ray dataclass and the vector and sampling helpers
shared by geometry, materials and the camera. All operations are Taichi
functions and must be called from inside a kernel.

A ray carries a time value in addition to its origin and direction. Moving
primitives evaluate their position at that time, which is how motion blur
is produced.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> origin = ti.math.vec3(0.0, 0.0, 0.0)
    >>> direction = ti.math.vec3(0.0, 0.0, -1.0)
    >>> ray = Ray(origin=origin, direction=direction, time=0.0)
    >>> point = ray_at(ray, 5.0)  # Point 5 units along the ray
"""

import taichi as ti
import taichi.math as tm

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


@ti.dataclass
class Ray:
    """A ray with an origin, a direction and a time.

    Attributes:
        origin: The starting point of the ray (vec3).
        direction: The direction vector of the ray (vec3). Not required to be
            normalized.
        time: Sample time in [0, 1] used to position moving primitives.
    """

    origin: vec3
    direction: vec3
    time: ti.f32


@ti.func
def ray_at(ray: Ray, t: ti.f32) -> vec3:
    """Compute the point along the ray at parameter t.

    Args:
        ray: The ray to evaluate.
        t: The parameter value. Positive values are in front of the origin.

    Returns:
        The point ray.origin + t * ray.direction.
    """
    return ray.origin + t * ray.direction


@ti.func
def make_ray(origin: vec3, direction: vec3, time: ti.f32) -> Ray:
    """Create a ray from origin, direction and time inside a kernel."""
    return Ray(origin=origin, direction=direction, time=time)


# =============================================================================
# Vector Utility Functions
# =============================================================================


@ti.func
def length(v: vec3) -> ti.f32:
    return tm.length(v)


@ti.func
def length_squared(v: vec3) -> ti.f32:
    """Squared length of a vector, avoiding the square root."""
    return tm.dot(v, v)


@ti.func
def normalize(v: vec3) -> vec3:
    return tm.normalize(v)


@ti.func
def dot(a: vec3, b: vec3) -> ti.f32:
    return tm.dot(a, b)


@ti.func
def cross(a: vec3, b: vec3) -> vec3:
    return tm.cross(a, b)


@ti.func
def reflect(incident: vec3, normal: vec3) -> vec3:
    """Reflect an incident vector about a normal.

    Args:
        incident: The incoming direction vector (pointing toward the surface).
        normal: The surface normal (should be normalized).

    Returns:
        The reflected direction vector incident - 2(incident . normal)normal.
    """
    return incident - 2.0 * tm.dot(incident, normal) * normal


@ti.func
def refract(unit_incident: vec3, normal: vec3, eta_ratio: ti.f32) -> vec3:
    """Refract a unit incident vector through a surface.

    The outgoing direction is split into the component perpendicular to the
    normal and the component parallel to it. The caller is responsible for
    detecting total internal reflection beforehand.

    Args:
        unit_incident: The incoming direction (must be normalized).
        normal: The surface normal facing against the incident ray.
        eta_ratio: Ratio of refractive indices (n_incident / n_transmitted).

    Returns:
        The refracted direction vector.
    """
    cos_theta = ti.min(-tm.dot(unit_incident, normal), 1.0)
    r_out_perp = eta_ratio * (unit_incident + cos_theta * normal)
    r_out_parallel = -ti.sqrt(ti.abs(1.0 - length_squared(r_out_perp))) * normal
    return r_out_perp + r_out_parallel


@ti.func
def reflectance(cosine: ti.f32, eta_ratio: ti.f32) -> ti.f32:
    """Compute Fresnel reflectance using Schlick's approximation.

    Args:
        cosine: Cosine of the angle between incident direction and normal.
        eta_ratio: Ratio of refractive indices.

    Returns:
        The approximate reflection probability in [0, 1].
    """
    r0 = (1.0 - eta_ratio) / (1.0 + eta_ratio)
    r0 = r0 * r0
    return r0 + (1.0 - r0) * ((1.0 - cosine) ** 5)


@ti.func
def near_zero(v: vec3) -> ti.i32:
    """Check if a vector is near zero in all components.

    Args:
        v: The vector to check.

    Returns:
        1 if every component is below 1e-8 in magnitude, 0 otherwise.
    """
    s = 1e-8
    result = 0
    if ti.abs(v.x) < s and ti.abs(v.y) < s and ti.abs(v.z) < s:
        result = 1
    return result


# =============================================================================
# Random Sampling Utilities for Monte Carlo
# =============================================================================


@ti.func
def random_in_unit_sphere() -> vec3:
    """Generate a random point inside the unit sphere.

    Uses rejection sampling. Points extremely close to the origin are
    rejected as well so that the result can always be normalized.

    Returns:
        A random point with 1e-12 < length^2 < 1.
    """
    p = vec3(0.5, 0.0, 0.0)
    found = False
    for _ in range(100):  # Max iterations to avoid infinite loops
        if not found:
            candidate = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
            )
            lensq = length_squared(candidate)
            if 1e-12 < lensq and lensq < 1.0:
                p = candidate
                found = True
    return p


@ti.func
def random_unit_vector() -> vec3:
    """Random unit vector uniformly distributed on the sphere."""
    return normalize(random_in_unit_sphere())


@ti.func
def random_in_unit_disk() -> vec3:
    """Generate a random point inside the unit disk in the xy-plane.

    Used to jitter ray origins across the lens for depth of field.

    Returns:
        A random point (x, y, 0) with x^2 + y^2 < 1.
    """
    p = vec3(0.0, 0.0, 0.0)
    found = False
    # Rejection sampling loop
    for _ in range(100):  # Max iterations to avoid infinite loops
        if not found:
            p = vec3(
                ti.random(ti.f32) * 2.0 - 1.0,
                ti.random(ti.f32) * 2.0 - 1.0,
                0.0,
            )
            if p.x * p.x + p.y * p.y < 1.0:
                found = True
    return p
