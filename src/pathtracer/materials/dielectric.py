"""Dielectric (glass/water) material implementation.

This module implements transparent materials like glass and water that
either reflect or refract each incoming ray.

Key physics:
    - Snell's law for refraction: n1 * sin(theta1) = n2 * sin(theta2)
    - Schlick's approximation for Fresnel reflectance
    - Total internal reflection when ratio * sin(theta) > 1

The material randomly chooses between reflection and refraction based on
the Fresnel reflectance probability, which increases at grazing angles.
Dielectrics absorb nothing, so the attenuation is always white.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.materials.dielectric import scatter_dielectric
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_dielectric(
    >>> #     ior, incident_dir, normal, front_face
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import reflect, reflectance, refract

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def refraction_ratio(ior: ti.f32, front_face: ti.i32) -> ti.f32:
    """Ratio of refractive indices across the surface.

    Entering the material from outside gives 1 / ior, leaving it gives ior.
    """
    ratio = 1.0 / ior
    if front_face == 0:
        ratio = ior
    return ratio


@ti.func
def scatter_dielectric_with_sample(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
    sample: ti.f32,
):
    """Scatter off a dielectric using the given uniform sample.

    Args:
        ior: Index of refraction of the material.
        incident_direction: The incoming ray direction (need not be normalized).
        normal: The surface normal, facing against the incident ray.
        front_face: 1 if ray is hitting the outside of the surface,
            0 if ray is inside the material hitting from within.
        sample: Uniform random number in [0, 1). The ray reflects when
            the Schlick reflectance exceeds it.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        attenuation is white and did_scatter is always 1.
    """
    ratio = refraction_ratio(ior, front_face)
    unit_direction = tm.normalize(incident_direction)

    cos_theta = tm.min(-tm.dot(unit_direction, normal), 1.0)
    sin_theta = tm.sqrt(ti.max(0.0, 1.0 - cos_theta * cos_theta))

    cannot_refract = ratio * sin_theta > 1.0

    scattered_direction = vec3(0.0, 0.0, 0.0)
    if cannot_refract or reflectance(cos_theta, ratio) > sample:
        scattered_direction = reflect(unit_direction, normal)
    else:
        scattered_direction = refract(unit_direction, normal, ratio)

    # Dielectrics absorb nothing
    attenuation = vec3(1.0, 1.0, 1.0)
    did_scatter = 1
    return scattered_direction, attenuation, did_scatter


@ti.func
def scatter_dielectric(
    ior: ti.f32,
    incident_direction: vec3,
    normal: vec3,
    front_face: ti.i32,
):
    """Scatter off a dielectric, drawing the reflect/refract choice at random."""
    return scatter_dielectric_with_sample(
        ior, incident_direction, normal, front_face, ti.random(ti.f32)
    )


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of dielectric materials in the scene
MAX_DIELECTRIC_MATERIALS = 1024

# Storage for dielectric material properties
dielectric_iors = ti.field(dtype=ti.f32, shape=MAX_DIELECTRIC_MATERIALS)
num_dielectric_materials = ti.field(dtype=ti.i32, shape=())


def clear_dielectric_materials() -> None:
    """Clear all dielectric materials."""
    num_dielectric_materials[None] = 0


def add_dielectric_material(ior: float = 1.5) -> int:
    """Add a dielectric material to the material registry.

    Args:
        ior: Index of refraction. Default is 1.5 (typical glass).
            Values below 1 model a less dense medium inside a denser one,
            such as an air bubble in water.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If IOR is not positive.
    """
    if ior <= 0.0:
        raise ValueError(f"IOR = {ior} must be positive.")

    idx = num_dielectric_materials[None]
    if idx >= MAX_DIELECTRIC_MATERIALS:
        raise RuntimeError(
            f"Maximum number of dielectric materials ({MAX_DIELECTRIC_MATERIALS}) exceeded"
        )

    dielectric_iors[idx] = ior
    num_dielectric_materials[None] = idx + 1
    return idx


def get_dielectric_material_count() -> int:
    """Get the number of dielectric materials in the registry."""
    return int(num_dielectric_materials[None])


@ti.func
def get_dielectric_ior(material_idx: ti.i32) -> ti.f32:
    return dielectric_iors[material_idx]
