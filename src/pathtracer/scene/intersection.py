"""Scene primitive arena and flat intersection testing.

All primitives live in a single arena of Taichi fields, one Structure of
Arrays block per primitive kind. Everything else refers to primitives by
(kind, index) pairs into that arena:

- the master list, in insertion order, which intersect_scene() scans
- the BVH leaves (see pathtracer.scene.bvh)
- the lights list, built when the scene is finalized

A host-side mirror of the master list keeps each primitive's bounding box so
that the BVH can be built without reading back from the device.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.scene.intersection import add_sphere, add_quad, clear_scene
    >>> clear_scene()
    >>> add_sphere((0, 0, -1), 0.5, material_id=0)
    >>> add_quad((-1, -0.5, -2), (2, 0, 0), (0, 1, 0), material_id=1)
    >>> # Use intersect_scene within a Taichi kernel
"""

from collections.abc import Sequence
from enum import IntEnum
from typing import NamedTuple

import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray
from pathtracer.geometry.aabb import AABB
from pathtracer.geometry.quad import Quad, hit_quad, quad_bounding_box, quad_frame
from pathtracer.geometry.sphere import (
    HitRecord,
    Sphere,
    clamp_radius,
    hit_sphere,
    sphere_bounding_box,
)

# Type alias for 3D vectors using Taichi's math module
vec3 = tm.vec3


class PrimitiveKind(IntEnum):
    """Kinds of primitive stored in the arena."""

    SPHERE = 0
    QUAD = 1


# Plain ints for comparisons inside kernels
_KIND_SPHERE = int(PrimitiveKind.SPHERE)
_KIND_QUAD = int(PrimitiveKind.QUAD)


class PrimitiveRef(NamedTuple):
    """Host-side reference to one primitive in the arena.

    Attributes:
        kind: Which arena block the primitive lives in.
        index: Index within that block.
        box: Bounding box of the primitive.
    """

    kind: PrimitiveKind
    index: int
    box: AABB


@ti.dataclass
class SceneHitRecord:
    """Record of a ray-scene intersection with material information.

    Extends the basic HitRecord with material_id for scene-level queries.

    Attributes:
        hit: Whether the ray intersected any primitive (1 if hit, 0 if miss).
        t: The parameter value along the ray where intersection occurred.
        point: The 3D point where the ray intersected the surface.
        normal: The unit surface normal, facing against the ray.
        front_face: Whether the ray hit the front face (1) or back face (0).
        u: Surface texture coordinate.
        v: Surface texture coordinate.
        material_id: The material ID of the hit primitive.
            -1 indicates no material assigned.

    All fields other than hit are only valid if hit == 1.
    """

    hit: ti.i32
    t: ti.f32
    point: vec3
    normal: vec3
    front_face: ti.i32
    u: ti.f32
    v: ti.f32
    material_id: ti.i32


# Maximum number of primitives supported in the scene
MAX_SPHERES = 1024
MAX_QUADS = 1024
MAX_PRIMITIVES = MAX_SPHERES + MAX_QUADS

# Sphere storage: Structure of Arrays layout for GPU efficiency
sphere_centers = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_motions = ti.Vector.field(3, dtype=ti.f32, shape=MAX_SPHERES)
sphere_radii = ti.field(dtype=ti.f32, shape=MAX_SPHERES)
sphere_material_ids = ti.field(dtype=ti.i32, shape=MAX_SPHERES)
num_spheres = ti.field(dtype=ti.i32, shape=())

# Quad storage, including the precomputed plane frame
quad_corners = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_u = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_edge_v = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_normals = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_plane_d = ti.field(dtype=ti.f32, shape=MAX_QUADS)
quad_w = ti.Vector.field(3, dtype=ti.f32, shape=MAX_QUADS)
quad_material_ids = ti.field(dtype=ti.i32, shape=MAX_QUADS)
num_quads = ti.field(dtype=ti.i32, shape=())

# Master list of primitives in insertion order
primitive_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
primitive_indices = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_primitives = ti.field(dtype=ti.i32, shape=())

# Lights list: emissive primitives, referenced the same way
light_kinds = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
light_indices = ti.field(dtype=ti.i32, shape=MAX_PRIMITIVES)
num_lights = ti.field(dtype=ti.i32, shape=())

# Host mirror of the master list
_primitive_refs: list[PrimitiveRef] = []


def _as_tuple(v: Sequence[float]) -> tuple[float, float, float]:
    return (float(v[0]), float(v[1]), float(v[2]))


def clear_scene() -> None:
    """Clear all primitives and lights from the scene.

    Resets the primitive counts to zero. The actual field data is not
    cleared but will be overwritten when new primitives are added.
    """
    num_spheres[None] = 0
    num_quads[None] = 0
    num_primitives[None] = 0
    num_lights[None] = 0
    _primitive_refs.clear()


def _append_primitive(kind: PrimitiveKind, index: int, box: AABB) -> None:
    slot = num_primitives[None]
    primitive_kinds[slot] = int(kind)
    primitive_indices[slot] = index
    num_primitives[None] = slot + 1
    _primitive_refs.append(PrimitiveRef(kind, index, box))


def add_sphere(
    center: Sequence[float],
    radius: float,
    material_id: int = 0,
    motion: Sequence[float] = (0.0, 0.0, 0.0),
) -> int:
    """Add a sphere to the scene.

    Args:
        center: The center point of the sphere at time 0.
        radius: The radius of the sphere. Negative values are clamped to 0.
        material_id: The material ID to associate with this sphere.
        motion: Displacement of the center between time 0 and time 1.

    Returns:
        The index of the added sphere.

    Raises:
        RuntimeError: If the maximum number of spheres is exceeded.
    """
    idx = num_spheres[None]
    if idx >= MAX_SPHERES:
        raise RuntimeError(f"Maximum number of spheres ({MAX_SPHERES}) exceeded")

    center_t = _as_tuple(center)
    motion_t = _as_tuple(motion)
    r = clamp_radius(radius)

    sphere_centers[idx] = vec3(*center_t)
    sphere_motions[idx] = vec3(*motion_t)
    sphere_radii[idx] = r
    sphere_material_ids[idx] = material_id
    num_spheres[None] = idx + 1

    _append_primitive(PrimitiveKind.SPHERE, idx, sphere_bounding_box(center_t, r, motion_t))
    return idx


def add_quad(
    q: Sequence[float],
    u: Sequence[float],
    v: Sequence[float],
    material_id: int = 0,
) -> int:
    """Add a quad to the scene.

    The quad represents a parallelogram with vertices at Q, Q+u, Q+v, Q+u+v.

    Args:
        q: The corner point of the quad.
        u: Edge vector from q to adjacent corner.
        v: Edge vector from q to other adjacent corner.
        material_id: The material ID to associate with this quad.

    Returns:
        The index of the added quad.

    Raises:
        RuntimeError: If the maximum number of quads is exceeded.
        ValueError: If u and v span no area.
    """
    idx = num_quads[None]
    if idx >= MAX_QUADS:
        raise RuntimeError(f"Maximum number of quads ({MAX_QUADS}) exceeded")

    q_t, u_t, v_t = _as_tuple(q), _as_tuple(u), _as_tuple(v)
    normal, d, w = quad_frame(q_t, u_t, v_t)

    quad_corners[idx] = vec3(*q_t)
    quad_edge_u[idx] = vec3(*u_t)
    quad_edge_v[idx] = vec3(*v_t)
    quad_normals[idx] = vec3(*_as_tuple(normal))
    quad_plane_d[idx] = d
    quad_w[idx] = vec3(*_as_tuple(w))
    quad_material_ids[idx] = material_id
    num_quads[None] = idx + 1

    _append_primitive(PrimitiveKind.QUAD, idx, quad_bounding_box(q_t, u_t, v_t))
    return idx


def get_sphere_count() -> int:
    """Get the number of spheres in the scene."""
    return int(num_spheres[None])


def get_quad_count() -> int:
    """Get the number of quads in the scene."""
    return int(num_quads[None])


def get_primitive_count() -> int:
    return int(num_primitives[None])


def get_primitive_refs() -> list[PrimitiveRef]:
    """Host copy of the master list, in insertion order."""
    return list(_primitive_refs)


def get_primitive_material_id(ref: PrimitiveRef) -> int:
    if ref.kind == PrimitiveKind.SPHERE:
        return int(sphere_material_ids[ref.index])
    return int(quad_material_ids[ref.index])


def set_lights(refs: Sequence[PrimitiveRef]) -> None:
    """Replace the lights list with the given primitive references.

    Raises:
        RuntimeError: If more lights are given than the arena can hold.
    """
    if len(refs) > MAX_PRIMITIVES:
        raise RuntimeError(f"Maximum number of lights ({MAX_PRIMITIVES}) exceeded")
    for slot, ref in enumerate(refs):
        light_kinds[slot] = int(ref.kind)
        light_indices[slot] = ref.index
    num_lights[None] = len(refs)


def get_light_count() -> int:
    return int(num_lights[None])


@ti.func
def _hit_record_to_scene_hit_record(rec: HitRecord, material_id: ti.i32) -> SceneHitRecord:
    """Convert a HitRecord to a SceneHitRecord with material ID."""
    return SceneHitRecord(
        hit=rec.hit,
        t=rec.t,
        point=rec.point,
        normal=rec.normal,
        front_face=rec.front_face,
        u=rec.u,
        v=rec.v,
        material_id=material_id,
    )


@ti.func
def make_miss_record() -> SceneHitRecord:
    """Create a SceneHitRecord indicating no intersection."""
    return SceneHitRecord(
        hit=0,
        t=0.0,
        point=vec3(0.0, 0.0, 0.0),
        normal=vec3(0.0, 0.0, 0.0),
        front_face=0,
        u=0.0,
        v=0.0,
        material_id=-1,
    )


@ti.func
def get_sphere(index: ti.i32) -> Sphere:
    return Sphere(
        center=sphere_centers[index],
        motion=sphere_motions[index],
        radius=sphere_radii[index],
    )


@ti.func
def get_quad(index: ti.i32) -> Quad:
    return Quad(
        Q=quad_corners[index],
        u=quad_edge_u[index],
        v=quad_edge_v[index],
        normal=quad_normals[index],
        d=quad_plane_d[index],
        w=quad_w[index],
    )


@ti.func
def hit_primitive(
    kind: ti.i32,
    index: ti.i32,
    ray: Ray,
    t_min: ti.f32,
    t_max: ti.f32,
) -> SceneHitRecord:
    """Intersect a ray with one primitive of the arena.

    Args:
        kind: A PrimitiveKind value.
        index: Index of the primitive within its kind's block.
        ray: The ray to test.
        t_min: Start of the hit window (inclusive).
        t_max: End of the hit window (exclusive).

    Returns:
        A SceneHitRecord for the primitive, or a miss record.
    """
    result = make_miss_record()
    if kind == _KIND_SPHERE:
        rec = hit_sphere(ray, get_sphere(index), t_min, t_max)
        if rec.hit == 1:
            result = _hit_record_to_scene_hit_record(rec, sphere_material_ids[index])
    elif kind == _KIND_QUAD:
        rec = hit_quad(ray, get_quad(index), t_min, t_max)
        if rec.hit == 1:
            result = _hit_record_to_scene_hit_record(rec, quad_material_ids[index])
    return result


@ti.func
def intersect_scene(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Test ray against every primitive in the master list.

    The window's upper end shrinks to each accepted hit, so later primitives
    must be strictly nearer to replace an earlier one.

    Args:
        ray: The ray to test.
        t_min: Start of the hit window (inclusive).
        t_max: End of the hit window (exclusive).

    Returns:
        A SceneHitRecord containing the closest intersection, or a miss
        record if no intersection was found.
    """
    closest_t = t_max
    result = make_miss_record()

    for i in range(num_primitives[None]):
        rec = hit_primitive(primitive_kinds[i], primitive_indices[i], ray, t_min, closest_t)
        if rec.hit == 1:
            closest_t = rec.t
            result = rec

    return result


@ti.func
def intersect_scene_any(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> ti.i32:
    """Test if ray hits any primitive in the scene.

    Returns:
        1 if any primitive was hit, 0 otherwise.
    """
    hit_any = 0
    for i in range(num_primitives[None]):
        if hit_any == 0:
            rec = hit_primitive(primitive_kinds[i], primitive_indices[i], ray, t_min, t_max)
            if rec.hit == 1:
                hit_any = 1
    return hit_any
