"""Scene module for primitive storage and scene queries.

Components:
    intersection: Sphere and quad storage, the primitive list and flat queries
    bvh: Bounding volume hierarchy built on the host, traversed on the device
    world: Chooses BVH or flat traversal for the integrator
    manager: SceneManager coordinating textures, materials and primitives

Scene data is kept in Structure-of-Arrays Taichi fields; primitives are
referenced everywhere as (kind, index) pairs.
"""

from .bvh import (
    BVHLeaf,
    BVHNode,
    BVHStats,
    MAX_BVH_NODES,
    build_bvh,
    build_scene_bvh,
    clear_bvh,
    intersect_bvh,
)
from .intersection import (
    MAX_PRIMITIVES,
    MAX_QUADS,
    MAX_SPHERES,
    PrimitiveKind,
    PrimitiveRef,
    SceneHitRecord,
    add_quad,
    add_sphere,
    clear_scene,
    get_primitive_count,
    get_quad_count,
    get_sphere_count,
    intersect_scene,
    intersect_scene_any,
)
from .manager import (
    MAX_MATERIALS,
    MaterialInfo,
    MaterialType,
    QuadInfo,
    SceneConfig,
    SceneManager,
    SphereInfo,
    TextureInfo,
    get_material_type,
    get_material_type_index,
)
from .world import intersect_world, is_using_bvh, set_use_bvh

__all__ = [
    # Intersection module
    "PrimitiveKind",
    "PrimitiveRef",
    "SceneHitRecord",
    "add_sphere",
    "add_quad",
    "clear_scene",
    "get_sphere_count",
    "get_quad_count",
    "get_primitive_count",
    "intersect_scene",
    "intersect_scene_any",
    "MAX_SPHERES",
    "MAX_QUADS",
    "MAX_PRIMITIVES",
    # BVH
    "BVHLeaf",
    "BVHNode",
    "BVHStats",
    "MAX_BVH_NODES",
    "build_bvh",
    "build_scene_bvh",
    "clear_bvh",
    "intersect_bvh",
    # World
    "intersect_world",
    "set_use_bvh",
    "is_using_bvh",
    # Manager module
    "SceneManager",
    "MaterialType",
    "TextureInfo",
    "MaterialInfo",
    "SphereInfo",
    "QuadInfo",
    "SceneConfig",
    "MAX_MATERIALS",
    "get_material_type",
    "get_material_type_index",
]
