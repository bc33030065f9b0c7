"""Top-level scene query used by the integrator.

The world is either the flat master list or the BVH built over it. Which
one answers queries is decided when the scene is finalized; both return the
same nearest hit.
"""

import taichi as ti

from pathtracer.core.ray import Ray
from pathtracer.scene.bvh import intersect_bvh, num_bvh_nodes
from pathtracer.scene.intersection import SceneHitRecord, intersect_scene, make_miss_record

# 1 when queries go through the BVH, 0 for the flat list
use_bvh = ti.field(dtype=ti.i32, shape=())


def set_use_bvh(enabled: bool) -> None:
    """Route world queries through the BVH (True) or the flat list (False).

    Raises:
        RuntimeError: If enabling the BVH before one has been built.
    """
    if enabled and num_bvh_nodes[None] == 0:
        raise RuntimeError("No BVH has been built. Call build_scene_bvh() first.")
    use_bvh[None] = 1 if enabled else 0


def is_using_bvh() -> bool:
    return bool(use_bvh[None])


@ti.func
def intersect_world(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Nearest hit in the scene within [t_min, t_max)."""
    result = make_miss_record()
    if use_bvh[None] == 1:
        result = intersect_bvh(ray, t_min, t_max)
    else:
        result = intersect_scene(ray, t_min, t_max)
    return result
