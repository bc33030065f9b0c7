"""Materials module for textures and scattering models.

Components:
    texture: Solid, checker and image textures sampled at a hit point
    lambertian: Ideal diffuse reflection
    metal: Mirror reflection with optional fuzz
    dielectric: Glass-like refraction with Schlick reflectance
    light: Emissive surfaces that end a path

Each scattering model returns (scattered_direction, attenuation, did_scatter)
and keeps its parameters in its own registry of Taichi fields.
"""

from .dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
    get_dielectric_ior,
    get_dielectric_material_count,
    refraction_ratio,
    scatter_dielectric,
    scatter_dielectric_with_sample,
)
from .lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
    get_lambertian_material_count,
    get_lambertian_texture,
    scatter_lambertian,
)
from .light import (
    LIGHT_LUMINOSITY,
    add_light_material,
    clear_light_materials,
    emit_light,
    get_light_luminosity,
    get_light_material_count,
    get_light_texture,
)
from .metal import (
    add_metal_material,
    clear_metal_materials,
    get_metal_fuzz,
    get_metal_material_count,
    get_metal_texture,
    scatter_metal,
)
from .texture import (
    TextureType,
    add_checker_texture,
    add_image_texture,
    add_solid_texture,
    checker_value,
    clear_textures,
    get_texture_count,
    image_value,
    load_image_texture,
    sample_texture,
)

__all__ = [
    # Textures
    "TextureType",
    "add_solid_texture",
    "add_checker_texture",
    "add_image_texture",
    "load_image_texture",
    "clear_textures",
    "get_texture_count",
    "checker_value",
    "image_value",
    "sample_texture",
    # Lambertian
    "scatter_lambertian",
    "add_lambertian_material",
    "clear_lambertian_materials",
    "get_lambertian_material_count",
    "get_lambertian_texture",
    # Metal
    "scatter_metal",
    "add_metal_material",
    "clear_metal_materials",
    "get_metal_material_count",
    "get_metal_texture",
    "get_metal_fuzz",
    # Dielectric
    "refraction_ratio",
    "scatter_dielectric",
    "scatter_dielectric_with_sample",
    "add_dielectric_material",
    "clear_dielectric_materials",
    "get_dielectric_material_count",
    "get_dielectric_ior",
    # Light
    "LIGHT_LUMINOSITY",
    "emit_light",
    "add_light_material",
    "clear_light_materials",
    "get_light_material_count",
    "get_light_texture",
    "get_light_luminosity",
]
