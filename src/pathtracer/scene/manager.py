"""Unified scene manager for coordinating primitives, materials and textures.

Scenes are assembled on the host through SceneManager, which writes spheres,
quads, textures and materials into their Taichi registries. Materials of every
kind share one id space; the integrator resolves an id to its kind and its slot
in that kind's registry through two lookup fields.

The SceneManager keeps:
- One material id per registered material, whatever its kind
- The (kind, slot) pair behind each material id
- The texture each colored material samples
- The lights list and the BVH, both built by finalize()
- Scene serialization/configuration support

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.scene.manager import SceneManager
    >>> scene = SceneManager()
    >>> mat_id = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
    >>> scene.add_sphere(center=(0, 0, -1), radius=0.5, material_id=mat_id)
    >>> scene.finalize()
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import IntEnum
from os import PathLike
from typing import Any

import taichi as ti

from pathtracer.materials.dielectric import (
    add_dielectric_material,
    clear_dielectric_materials,
)
from pathtracer.materials.lambertian import (
    add_lambertian_material,
    clear_lambertian_materials,
)
from pathtracer.materials.light import (
    LIGHT_LUMINOSITY,
    add_light_material,
    clear_light_materials,
)
from pathtracer.materials.metal import (
    add_metal_material,
    clear_metal_materials,
)
from pathtracer.materials.texture import (
    add_checker_texture,
    add_solid_texture,
    clear_textures,
    load_image_texture,
)
from pathtracer.scene.bvh import BVHStats, build_scene_bvh, clear_bvh
from pathtracer.scene.intersection import (
    MAX_QUADS,
    MAX_SPHERES,
    add_quad,
    add_sphere,
    clear_scene,
    get_light_count,
    get_primitive_material_id,
    get_primitive_refs,
    get_quad_count,
    get_sphere_count,
    set_lights,
)
from pathtracer.scene.world import set_use_bvh

logger = logging.getLogger(__name__)

Color = tuple[float, float, float]
Point = tuple[float, float, float]


class MaterialType(IntEnum):
    """Kinds of material; the integrator branches on these to scatter or emit."""

    LAMBERTIAN = 0
    METAL = 1
    DIELECTRIC = 2
    LIGHT = 3


# Shared capacity of the unified material id space
MAX_MATERIALS = 4096

# Device-side id -> (kind, slot) tables
material_types = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
# Slot within the kind's own registry, e.g. the third metal has slot 2
material_type_indices = ti.field(dtype=ti.i32, shape=MAX_MATERIALS)
num_materials = ti.field(dtype=ti.i32, shape=())


def _clear_material_tracking() -> None:
    """Clear the material tracking fields."""
    num_materials[None] = 0


@ti.func
def get_material_type(material_id: ti.i32) -> ti.i32:
    """Get the material type for a given material ID.

    Args:
        material_id: The unified material ID.

    Returns:
        The material type as an integer (see MaterialType enum).
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_types[material_id]
    return result


@ti.func
def get_material_type_index(material_id: ti.i32) -> ti.i32:
    """Get the type-local index for a given material ID.

    Args:
        material_id: The unified material ID.

    Returns:
        The index into the type-specific material array.
        Returns -1 for invalid material IDs.
    """
    result = -1
    if 0 <= material_id < num_materials[None]:
        result = material_type_indices[material_id]
    return result


def _triple(values: Sequence[float]) -> tuple[float, float, float]:
    return (float(values[0]), float(values[1]), float(values[2]))


@dataclass
class TextureInfo:
    """Information about a registered texture.

    Attributes:
        texture_id: The texture ID.
        params: The texture parameters, including its "type".
    """

    texture_id: int
    params: dict[str, Any]


@dataclass
class MaterialInfo:
    """Information about a registered material.

    Attributes:
        material_id: The unified material ID.
        material_type: The type of material.
        type_index: The index within the type-specific material array.
        params: The material parameters as provided during creation.
    """

    material_id: int
    material_type: MaterialType
    type_index: int
    params: dict[str, Any]


@dataclass
class SphereInfo:
    """Information about a sphere in the scene.

    Attributes:
        sphere_index: The index in the sphere storage arrays.
        center: The center of the sphere at time 0.
        radius: The radius of the sphere.
        material_id: The material ID assigned to the sphere.
        motion: Displacement of the center between time 0 and time 1.
    """

    sphere_index: int
    center: Point
    radius: float
    material_id: int
    motion: Point = (0.0, 0.0, 0.0)


@dataclass
class QuadInfo:
    """Information about a quad in the scene.

    Attributes:
        quad_index: The index in the quad storage arrays.
        corner: The corner point (Q) of the quad.
        edge_u: The first edge vector.
        edge_v: The second edge vector.
        material_id: The material ID assigned to the quad.
    """

    quad_index: int
    corner: Point
    edge_u: Point
    edge_v: Point
    material_id: int


@dataclass
class SceneConfig:
    """Configuration for scene serialization.

    Attributes:
        textures: List of texture configurations.
        materials: List of material configurations.
        spheres: List of sphere configurations.
        quads: List of quad configurations.
    """

    textures: list[dict[str, Any]] = field(default_factory=list)
    materials: list[dict[str, Any]] = field(default_factory=list)
    spheres: list[dict[str, Any]] = field(default_factory=list)
    quads: list[dict[str, Any]] = field(default_factory=list)


class SceneManager:
    """Unified scene manager coordinating primitives, materials and textures.

    The scene is built in two phases. First textures, materials and
    primitives are added; then finalize() builds the lights list and,
    optionally, the BVH. A finalized scene rejects new primitives with
    RuntimeError until clear() is called, since the BVH and lights list
    would no longer cover them. finalize() itself may be called again.

    Attributes:
        textures: List of TextureInfo for all registered textures.
        materials: List of MaterialInfo for all registered materials.
        spheres: List of SphereInfo for all spheres in the scene.
        quads: List of QuadInfo for all quads in the scene.
        bvh_stats: Statistics of the last BVH built by finalize(), if any.

    Example:
        >>> scene = SceneManager()
        >>> checker = scene.add_checker_texture(0.32, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
        >>> ground = scene.add_lambertian_material(texture_id=checker)
        >>> glass = scene.add_dielectric_material(ior=1.5)
        >>> scene.add_sphere((0, -1000, 0), 1000, ground)
        >>> scene.add_sphere((0, 1, 0), 1.0, glass)
        >>> scene.finalize(accelerate=True, seed=0)
    """

    def __init__(self) -> None:
        """Initialize an empty scene."""
        self.textures: list[TextureInfo] = []
        self.materials: list[MaterialInfo] = []
        self.spheres: list[SphereInfo] = []
        self.quads: list[QuadInfo] = []
        self.bvh_stats: BVHStats | None = None
        self._finalized = False
        self._clear_all()

    def _clear_all(self) -> None:
        """Clear all scene data including Taichi fields."""
        # Clear primitive storage and acceleration
        clear_scene()
        clear_bvh()
        set_use_bvh(False)
        # Clear material and texture registries
        clear_textures()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        clear_light_materials()
        _clear_material_tracking()
        # Clear local tracking
        self.textures.clear()
        self.materials.clear()
        self.spheres.clear()
        self.quads.clear()
        self.bvh_stats = None
        self._finalized = False

    def clear(self) -> None:
        """Clear the entire scene (primitives, materials and textures)."""
        self._clear_all()

    # =========================================================================
    # Texture Management
    # =========================================================================

    def add_solid_texture(self, color: Color) -> int:
        """Add a constant-color texture.

        Args:
            color: The (R, G, B) color, each component in [0, 1].

        Returns:
            The texture ID.
        """
        texture_id = add_solid_texture(color)
        self.textures.append(
            TextureInfo(texture_id, {"type": "solid", "color": list(_triple(color))})
        )
        return texture_id

    def add_checker_texture(self, scale: float, even: Color, odd: Color) -> int:
        """Add a 3D checkerboard texture.

        Args:
            scale: Edge length of one checker cell.
            even: Color of the even cells.
            odd: Color of the odd cells.

        Returns:
            The texture ID.
        """
        texture_id = add_checker_texture(scale, even, odd)
        self.textures.append(
            TextureInfo(
                texture_id,
                {
                    "type": "checker",
                    "scale": float(scale),
                    "even": list(_triple(even)),
                    "odd": list(_triple(odd)),
                },
            )
        )
        return texture_id

    def add_image_texture(self, path: str | PathLike) -> int:
        """Add a texture decoded from an image file.

        Args:
            path: Path of any image format Pillow can read.

        Returns:
            The texture ID.

        Raises:
            OSError: If the image cannot be read.
        """
        texture_id = load_image_texture(path)
        self.textures.append(TextureInfo(texture_id, {"type": "image", "path": str(path)}))
        logger.debug("Loaded image texture %d from %s", texture_id, path)
        return texture_id

    def _resolve_texture(self, color: Color | None, texture_id: int | None, default: Color) -> int:
        if texture_id is not None:
            return texture_id
        return self.add_solid_texture(color if color is not None else default)

    # =========================================================================
    # Material Management
    # =========================================================================

    def _register_material(
        self,
        material_type: MaterialType,
        type_index: int,
        params: dict[str, Any],
    ) -> int:
        material_id = num_materials[None]
        if material_id >= MAX_MATERIALS:
            raise RuntimeError(f"Maximum number of materials ({MAX_MATERIALS}) exceeded")

        material_types[material_id] = int(material_type)
        material_type_indices[material_id] = type_index
        num_materials[None] = material_id + 1

        self.materials.append(
            MaterialInfo(
                material_id=material_id,
                material_type=material_type,
                type_index=type_index,
                params=params,
            )
        )
        return material_id

    def add_lambertian_material(
        self,
        albedo: Color | None = None,
        texture_id: int | None = None,
    ) -> int:
        """Add a Lambertian (diffuse) material to the scene.

        Args:
            albedo: Diffuse color, used to create a solid texture when no
                texture_id is given. Each component must be in [0, 1].
            texture_id: Existing texture providing the albedo.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the albedo or texture_id is invalid.
        """
        tex = self._resolve_texture(albedo, texture_id, (0.5, 0.5, 0.5))
        type_index = add_lambertian_material(tex)
        return self._register_material(MaterialType.LAMBERTIAN, type_index, {"texture_id": tex})

    def add_metal_material(
        self,
        albedo: Color | None = None,
        fuzz: float = 0.0,
        texture_id: int | None = None,
    ) -> int:
        """Add a metal (specular reflective) material to the scene.

        Args:
            albedo: Reflective color, used to create a solid texture when no
                texture_id is given.
            fuzz: Perturbation radius in [0, 1]. Default is 0 (perfect mirror).
            texture_id: Existing texture providing the reflective color.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the albedo, texture_id or fuzz is invalid.
        """
        if fuzz < 0.0 or fuzz > 1.0:
            raise ValueError(f"Fuzz = {fuzz} is outside [0, 1].")
        tex = self._resolve_texture(albedo, texture_id, (0.8, 0.8, 0.8))
        type_index = add_metal_material(tex, fuzz)
        return self._register_material(
            MaterialType.METAL, type_index, {"texture_id": tex, "fuzz": float(fuzz)}
        )

    def add_dielectric_material(self, ior: float = 1.5) -> int:
        """Add a clear refracting material such as glass or water.

        Args:
            ior: Refractive index relative to the surrounding air.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If IOR is not positive.
        """
        type_index = add_dielectric_material(ior)
        return self._register_material(MaterialType.DIELECTRIC, type_index, {"ior": float(ior)})

    def add_light_material(
        self,
        color: Color | None = None,
        luminosity: float = LIGHT_LUMINOSITY,
        texture_id: int | None = None,
    ) -> int:
        """Add an emissive material to the scene.

        Args:
            color: Emitted color, used to create a solid texture when no
                texture_id is given.
            luminosity: Non-negative multiplier applied to the color.
            texture_id: Existing texture providing the emitted color.

        Returns:
            The unified material ID for this material.

        Raises:
            RuntimeError: If the maximum number of materials is exceeded.
            ValueError: If the color, texture_id or luminosity is invalid.
        """
        if luminosity < 0.0:
            raise ValueError(f"Luminosity = {luminosity} must be non-negative.")
        tex = self._resolve_texture(color, texture_id, (1.0, 1.0, 1.0))
        type_index = add_light_material(tex, luminosity)
        return self._register_material(
            MaterialType.LIGHT,
            type_index,
            {"texture_id": tex, "luminosity": float(luminosity)},
        )

    def get_material_count(self) -> int:
        """Get the total number of materials in the scene."""
        return int(num_materials[None])

    def get_material_info(self, material_id: int) -> MaterialInfo | None:
        """Get information about a material by ID, or None if not found."""
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id]
        return None

    def get_material_type_python(self, material_id: int) -> MaterialType | None:
        """Get the material type for a given material ID (Python side).

        For GPU-side lookup, use the get_material_type() Taichi function.
        """
        if 0 <= material_id < len(self.materials):
            return self.materials[material_id].material_type
        return None

    # =========================================================================
    # Primitive Management
    # =========================================================================

    def _check_not_finalized(self) -> None:
        if self._finalized:
            raise RuntimeError(
                "Scene is finalized; call clear() before adding primitives"
            )

    def _check_material_id(self, material_id: int) -> None:
        if material_id < 0 or material_id >= num_materials[None]:
            raise ValueError(f"Invalid material_id: {material_id}")

    def add_sphere(self, center: Point, radius: float, material_id: int) -> int:
        """Add a stationary sphere to the scene.

        Args:
            center: The center point of the sphere as (x, y, z).
            radius: The radius of the sphere. Negative values are clamped to 0.
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded or the
                scene is already finalized.
            ValueError: If material_id is invalid.
        """
        return self.add_moving_sphere(center, center, radius, material_id)

    def add_moving_sphere(
        self,
        center_start: Point,
        center_end: Point,
        radius: float,
        material_id: int,
    ) -> int:
        """Add a sphere that moves linearly during the shutter interval.

        Args:
            center_start: Center at time 0.
            center_end: Center at time 1.
            radius: The radius of the sphere. Negative values are clamped to 0.
            material_id: The unified material ID to assign to the sphere.

        Returns:
            The index of the added sphere.

        Raises:
            RuntimeError: If the maximum number of spheres is exceeded or the
                scene is already finalized.
            ValueError: If material_id is invalid.
        """
        self._check_not_finalized()
        self._check_material_id(material_id)

        start = _triple(center_start)
        motion = tuple(e - s for s, e in zip(start, _triple(center_end)))
        sphere_index = add_sphere(start, radius, material_id, motion)

        self.spheres.append(
            SphereInfo(
                sphere_index=sphere_index,
                center=start,
                radius=max(0.0, float(radius)),
                material_id=material_id,
                motion=motion,
            )
        )
        return sphere_index

    def add_quad(
        self,
        corner: Point,
        edge_u: Point,
        edge_v: Point,
        material_id: int,
    ) -> int:
        """Add a parallelogram spanned by two edges from a corner.

        Args:
            corner: The corner point (Q) of the quad as (x, y, z).
            edge_u: The first edge vector as (x, y, z).
            edge_v: The second edge vector as (x, y, z).
            material_id: The unified material ID to assign to the quad.

        Returns:
            The index of the added quad.

        Raises:
            RuntimeError: If the maximum number of quads is exceeded or the
                scene is already finalized.
            ValueError: If material_id is invalid or the edges span no area.
        """
        self._check_not_finalized()
        self._check_material_id(material_id)

        quad_index = add_quad(corner, edge_u, edge_v, material_id)

        self.quads.append(
            QuadInfo(
                quad_index=quad_index,
                corner=_triple(corner),
                edge_u=_triple(edge_u),
                edge_v=_triple(edge_v),
                material_id=material_id,
            )
        )
        return quad_index

    # =========================================================================
    # Finalization
    # =========================================================================

    def finalize(self, accelerate: bool = True, seed: int | None = None) -> BVHStats | None:
        """Freeze the scene for rendering.

        Collects every primitive with a light material into the lights list
        and, when accelerate is set, builds the BVH and routes world queries
        through it. Empty scenes always use the flat list.

        Args:
            accelerate: Build and use a BVH.
            seed: Seed for the BVH's random axis choice.

        Returns:
            The BVH statistics, or None when no BVH was built.
        """
        refs = get_primitive_refs()
        lights = [
            ref
            for ref in refs
            if self.get_material_type_python(get_primitive_material_id(ref)) == MaterialType.LIGHT
        ]
        set_lights(lights)

        self.bvh_stats = None
        if accelerate and refs:
            self.bvh_stats = build_scene_bvh(seed)
            set_use_bvh(True)
        else:
            if accelerate:
                logger.warning("Scene is empty; skipping BVH construction")
            clear_bvh()
            set_use_bvh(False)

        self._finalized = True
        logger.info(
            "Finalized scene: %d spheres, %d quads, %d materials, %d lights, bvh=%s",
            self.get_sphere_count(),
            self.get_quad_count(),
            self.get_material_count(),
            len(lights),
            "on" if self.bvh_stats is not None else "off",
        )
        return self.bvh_stats

    # =========================================================================
    # Scene Queries
    # =========================================================================

    def get_sphere_count(self) -> int:
        """Get the number of spheres in the scene."""
        return get_sphere_count()

    def get_quad_count(self) -> int:
        """Get the number of quads in the scene."""
        return get_quad_count()

    def get_primitive_count(self) -> int:
        """Get the total number of primitives in the scene."""
        return self.get_sphere_count() + self.get_quad_count()

    def get_light_count(self) -> int:
        """Number of emissive primitives found by the last finalize()."""
        return get_light_count()

    def get_scene_info(self) -> dict[str, Any]:
        """Summary counts of the scene, suitable for logging."""
        info: dict[str, Any] = {
            "spheres": self.get_sphere_count(),
            "quads": self.get_quad_count(),
            "textures": len(self.textures),
            "materials": self.get_material_count(),
            "lights": self.get_light_count(),
            "bvh_nodes": 0,
            "bvh_depth": 0,
        }
        if self.bvh_stats is not None:
            info["bvh_nodes"] = self.bvh_stats.node_count
            info["bvh_depth"] = self.bvh_stats.depth
        return info

    # =========================================================================
    # Scene Serialization
    # =========================================================================

    def to_config(self) -> SceneConfig:
        """Export the scene to a configuration object.

        Returns:
            A SceneConfig containing all textures, materials and primitives.
        """
        config = SceneConfig()

        for tex in self.textures:
            config.textures.append(dict(tex.params))

        for mat in self.materials:
            mat_config: dict[str, Any] = {
                "type": mat.material_type.name.lower(),
                **mat.params,
            }
            config.materials.append(mat_config)

        for sphere in self.spheres:
            config.spheres.append(
                {
                    "center": list(sphere.center),
                    "motion": list(sphere.motion),
                    "radius": sphere.radius,
                    "material_id": sphere.material_id,
                }
            )

        for quad in self.quads:
            config.quads.append(
                {
                    "corner": list(quad.corner),
                    "edge_u": list(quad.edge_u),
                    "edge_v": list(quad.edge_v),
                    "material_id": quad.material_id,
                }
            )

        return config

    def from_config(self, config: SceneConfig) -> None:
        """Load a scene from a configuration object.

        Clears the current scene and loads the configuration. The loaded
        scene still has to be finalized.

        Args:
            config: The scene configuration to load.

        Raises:
            ValueError: If the configuration contains invalid data.
        """
        self.clear()

        # Textures first, materials refer to them by ID
        for tex_config in config.textures:
            tex_type = tex_config.get("type", "").lower()
            if tex_type == "solid":
                self.add_solid_texture(_triple(tex_config.get("color", [0.5, 0.5, 0.5])))
            elif tex_type == "checker":
                self.add_checker_texture(
                    tex_config.get("scale", 1.0),
                    _triple(tex_config.get("even", [0.0, 0.0, 0.0])),
                    _triple(tex_config.get("odd", [1.0, 1.0, 1.0])),
                )
            elif tex_type == "image":
                if "path" not in tex_config:
                    raise ValueError("Image texture requires a path")
                self.add_image_texture(tex_config["path"])
            else:
                raise ValueError(f"Unknown texture type: {tex_type}")

        for mat_config in config.materials:
            mat_type = mat_config.get("type", "").lower()
            texture_id = mat_config.get("texture_id")
            if mat_type == "lambertian":
                albedo = mat_config.get("albedo")
                self.add_lambertian_material(
                    albedo=_triple(albedo) if albedo is not None else None,
                    texture_id=texture_id,
                )
            elif mat_type == "metal":
                albedo = mat_config.get("albedo")
                self.add_metal_material(
                    albedo=_triple(albedo) if albedo is not None else None,
                    fuzz=mat_config.get("fuzz", 0.0),
                    texture_id=texture_id,
                )
            elif mat_type == "dielectric":
                self.add_dielectric_material(mat_config.get("ior", 1.5))
            elif mat_type == "light":
                color = mat_config.get("color")
                self.add_light_material(
                    color=_triple(color) if color is not None else None,
                    luminosity=mat_config.get("luminosity", LIGHT_LUMINOSITY),
                    texture_id=texture_id,
                )
            else:
                raise ValueError(f"Unknown material type: {mat_type}")

        for sphere_config in config.spheres:
            center = _triple(sphere_config.get("center", [0, 0, 0]))
            motion = _triple(sphere_config.get("motion", [0, 0, 0]))
            end = (center[0] + motion[0], center[1] + motion[1], center[2] + motion[2])
            self.add_moving_sphere(
                center,
                end,
                sphere_config.get("radius", 1.0),
                sphere_config.get("material_id", 0),
            )

        for quad_config in config.quads:
            self.add_quad(
                _triple(quad_config.get("corner", [0, 0, 0])),
                _triple(quad_config.get("edge_u", [1, 0, 0])),
                _triple(quad_config.get("edge_v", [0, 1, 0])),
                quad_config.get("material_id", 0),
            )

    def to_dict(self) -> dict[str, Any]:
        """Export the scene to a dictionary (for JSON serialization)."""
        config = self.to_config()
        return {
            "textures": config.textures,
            "materials": config.materials,
            "spheres": config.spheres,
            "quads": config.quads,
        }

    def from_dict(self, data: dict[str, Any]) -> None:
        """Load a scene from a dictionary.

        Args:
            data: Dictionary with 'textures', 'materials', 'spheres' and
                'quads' keys.
        """
        config = SceneConfig(
            textures=data.get("textures", []),
            materials=data.get("materials", []),
            spheres=data.get("spheres", []),
            quads=data.get("quads", []),
        )
        self.from_config(config)

    # =========================================================================
    # Capacity Information
    # =========================================================================

    @staticmethod
    def get_max_spheres() -> int:
        """Get the maximum number of spheres supported."""
        return MAX_SPHERES

    @staticmethod
    def get_max_quads() -> int:
        """Get the maximum number of quads supported."""
        return MAX_QUADS

    @staticmethod
    def get_max_materials() -> int:
        """Get the maximum number of materials supported."""
        return MAX_MATERIALS
