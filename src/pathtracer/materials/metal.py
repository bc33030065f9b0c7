"""Metal (specular reflective) material implementation.

This module implements specular reflection with optional fuzz. A perfect
metal (fuzz = 0) is a mirror; larger fuzz perturbs the mirror direction by
a random unit vector scaled by the fuzz factor.

The reflection formula is:
    R = I - 2(I . N)N

where I is the unit incident direction and N is the surface normal. The
perturbed ray is always returned, even when the fuzz pushes it below the
surface; such rays hit the same surface from inside on the next bounce.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.materials.metal import scatter_metal
    >>> # Use within a Taichi kernel:
    >>> # direction, attenuation, did_scatter = scatter_metal(
    >>> #     albedo, fuzz, incident_dir, normal
    >>> # )
"""

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import random_unit_vector, reflect
from pathtracer.materials.texture import validate_texture_id

# Type alias for 3D vectors
vec3 = tm.vec3


@ti.func
def scatter_metal(
    albedo: vec3,
    fuzz: ti.f32,
    incident_direction: vec3,
    normal: vec3,
):
    """Compute scattered ray direction for metal material.

    Args:
        albedo: The reflective color sampled from the material's texture.
        fuzz: Perturbation radius in [0, 1]. 0 = perfect mirror.
        incident_direction: The incoming ray direction (need not be normalized).
        normal: The surface normal (should be normalized).

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is always 1.
    """
    reflected = reflect(tm.normalize(incident_direction), normal)
    scattered_direction = reflected + fuzz * random_unit_vector()
    did_scatter = 1
    return scattered_direction, albedo, did_scatter


# =============================================================================
# Material Field Storage (for scene-level material management)
# =============================================================================

# Maximum number of metal materials in the scene
MAX_METAL_MATERIALS = 1024

# Storage for metal material properties
metal_texture_ids = ti.field(dtype=ti.i32, shape=MAX_METAL_MATERIALS)
metal_fuzzes = ti.field(dtype=ti.f32, shape=MAX_METAL_MATERIALS)
num_metal_materials = ti.field(dtype=ti.i32, shape=())


def clear_metal_materials() -> None:
    """Clear all metal materials."""
    num_metal_materials[None] = 0


def add_metal_material(texture_id: int, fuzz: float = 0.0) -> int:
    """Add a metal material to the material registry.

    Args:
        texture_id: ID of the texture providing the reflective color.
        fuzz: Perturbation radius in [0, 1]. Default is 0 (perfect mirror).

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If texture_id is invalid.
        ValueError: If fuzz is outside [0, 1].
    """
    validate_texture_id(texture_id)

    if fuzz < 0.0 or fuzz > 1.0:
        raise ValueError(
            f"Fuzz = {fuzz} is outside [0, 1]. "
            "Fuzz must be between 0 (perfect mirror) and 1 (maximum fuzz)."
        )

    idx = num_metal_materials[None]
    if idx >= MAX_METAL_MATERIALS:
        raise RuntimeError(
            f"Maximum number of metal materials ({MAX_METAL_MATERIALS}) exceeded"
        )

    metal_texture_ids[idx] = texture_id
    metal_fuzzes[idx] = fuzz
    num_metal_materials[None] = idx + 1
    return idx


def get_metal_material_count() -> int:
    """Get the number of metal materials in the registry."""
    return int(num_metal_materials[None])


@ti.func
def get_metal_texture(material_idx: ti.i32) -> ti.i32:
    return metal_texture_ids[material_idx]


@ti.func
def get_metal_fuzz(material_idx: ti.i32) -> ti.f32:
    return metal_fuzzes[material_idx]
