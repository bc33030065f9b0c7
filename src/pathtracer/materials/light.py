"""Emissive (light) material implementation.

A light never scatters: a path that reaches it ends there, after adding the
light's emission. The emission is the material's texture sampled at the
hit point, multiplied by a luminosity factor. The factor lets plain [0, 1]
texture colors act as bright sources.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.materials.texture import add_solid_texture
    >>> from pathtracer.materials.light import add_light_material
    >>> lamp = add_light_material(add_solid_texture((1.0, 0.9, 0.8)), luminosity=16.0)
"""

import taichi as ti
import taichi.math as tm

from pathtracer.materials.texture import validate_texture_id

vec3 = tm.vec3

# Emission multiplier used when none is given
LIGHT_LUMINOSITY = 64.0

# Maximum number of light materials in the scene
MAX_LIGHT_MATERIALS = 256

light_texture_ids = ti.field(dtype=ti.i32, shape=MAX_LIGHT_MATERIALS)
light_luminosities = ti.field(dtype=ti.f32, shape=MAX_LIGHT_MATERIALS)
num_light_materials = ti.field(dtype=ti.i32, shape=())


def clear_light_materials() -> None:
    """Clear all light materials."""
    num_light_materials[None] = 0


def add_light_material(texture_id: int, luminosity: float = LIGHT_LUMINOSITY) -> int:
    """Add an emissive material to the registry.

    Args:
        texture_id: ID of the texture giving the emitted color.
        luminosity: Non-negative multiplier applied to the texture color.

    Returns:
        The index of the added material.

    Raises:
        RuntimeError: If the maximum number of materials is exceeded.
        ValueError: If texture_id is invalid or luminosity is negative.
    """
    validate_texture_id(texture_id)
    if luminosity < 0.0:
        raise ValueError(f"Luminosity = {luminosity} must be non-negative.")

    idx = num_light_materials[None]
    if idx >= MAX_LIGHT_MATERIALS:
        raise RuntimeError(
            f"Maximum number of light materials ({MAX_LIGHT_MATERIALS}) exceeded"
        )

    light_texture_ids[idx] = texture_id
    light_luminosities[idx] = luminosity
    num_light_materials[None] = idx + 1
    return idx


def get_light_material_count() -> int:
    return int(num_light_materials[None])


@ti.func
def get_light_texture(material_idx: ti.i32) -> ti.i32:
    return light_texture_ids[material_idx]


@ti.func
def emit_light(color: vec3, luminosity: ti.f32) -> vec3:
    """Emitted radiance for a sampled texture color."""
    return color * luminosity


@ti.func
def get_light_luminosity(material_idx: ti.i32) -> ti.f32:
    return light_luminosities[material_idx]
