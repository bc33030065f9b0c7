"""Bounding volume hierarchy over the primitive arena.

The hierarchy is built on the host from the primitive references held by
pathtracer.scene.intersection, then flattened depth-first into Taichi
fields. Kernels walk it with an explicit stack since Taichi functions
cannot recurse.

Construction follows a median split on a randomly chosen axis:

1. Pick an axis uniformly at random from x, y and z.
2. One primitive: the node's two children are the same leaf.
3. Two primitives: order them by the lower bound of their boxes on the axis.
4. More: sort the range by that lower bound and split it at the midpoint.

The node's box is the union of its children's boxes.

Traversal visits the whole left subtree before the right one and narrows
the hit window to the closest hit found so far, so it returns the same
nearest hit as a linear scan over the master list.

Example:
    >>> from pathtracer.scene.bvh import build_scene_bvh
    >>> from pathtracer.scene.intersection import add_sphere
    >>> add_sphere((0, 0, -1), 0.5)
    >>> add_sphere((1, 0, -1), 0.5)
    >>> stats = build_scene_bvh(seed=7)
    >>> stats.node_count
    3
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.core.ray import Ray
from pathtracer.geometry.aabb import AABB, hit_aabb
from pathtracer.scene.intersection import (
    MAX_PRIMITIVES,
    PrimitiveRef,
    SceneHitRecord,
    get_primitive_refs,
    hit_primitive,
    make_miss_record,
)

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# n leaves, n - 1 splitting nodes and at most n / 3 single-leaf nodes
MAX_BVH_NODES = 3 * MAX_PRIMITIVES

# Per-ray traversal stack depth
BVH_STACK_SIZE = 32

# Flattened nodes: leaves have left = right = -1 and prim_kind >= 0,
# interior nodes have prim_kind = prim_index = -1.
bvh_box_min = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_box_max = ti.Vector.field(3, dtype=ti.f32, shape=MAX_BVH_NODES)
bvh_left = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_right = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_kind = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
bvh_prim_index = ti.field(dtype=ti.i32, shape=MAX_BVH_NODES)
num_bvh_nodes = ti.field(dtype=ti.i32, shape=())


@dataclass
class BVHLeaf:
    """A leaf holding one primitive reference."""

    ref: PrimitiveRef

    @property
    def box(self) -> AABB:
        return self.ref.box


@dataclass
class BVHNode:
    """An interior node. Both children may be the same leaf.

    Attributes:
        left: Child visited first during traversal.
        right: Child visited second.
        box: Union of the children's boxes.
    """

    left: "BVHNode | BVHLeaf"
    right: "BVHNode | BVHLeaf"
    box: AABB


@dataclass
class BVHStats:
    """Summary of a built hierarchy.

    Attributes:
        primitive_count: Number of primitives in the hierarchy.
        node_count: Number of flattened nodes (interior and leaf).
        leaf_count: Number of flattened leaves.
        depth: Length of the longest root-to-leaf path, in nodes.
        area_ratio: Summed surface area of the interior nodes over the
            root's area. Lower means fewer box tests per ray.
    """

    primitive_count: int
    node_count: int
    leaf_count: int
    depth: int
    area_ratio: float = 0.0


def _box_compare_key(axis: int):
    def key(leaf: BVHLeaf) -> float:
        return leaf.box.axis(axis).start

    return key


def _build_range(leaves: list[BVHLeaf], start: int, end: int, rng: np.random.Generator) -> BVHNode:
    axis = int(rng.integers(0, 3))
    span = end - start

    if span == 1:
        left = right = leaves[start]
    elif span == 2:
        first, second = leaves[start], leaves[start + 1]
        if _box_compare_key(axis)(second) < _box_compare_key(axis)(first):
            first, second = second, first
        left, right = first, second
    else:
        leaves[start:end] = sorted(leaves[start:end], key=_box_compare_key(axis))
        mid = start + span // 2
        left = _build_range(leaves, start, mid, rng)
        right = _build_range(leaves, mid, end, rng)

    return BVHNode(left=left, right=right, box=AABB.from_boxes(left.box, right.box))


def build_bvh(refs: Sequence[PrimitiveRef], rng: np.random.Generator | None = None) -> BVHNode:
    """Build a hierarchy over the given primitive references.

    Args:
        refs: Primitive references with their bounding boxes.
        rng: Source of randomness for axis selection. A fresh unseeded
            generator is used if omitted.

    Returns:
        The root node.

    Raises:
        ValueError: If refs is empty.
    """
    if len(refs) == 0:
        raise ValueError("Cannot build a BVH over an empty primitive list")
    if rng is None:
        rng = np.random.default_rng()
    leaves = [BVHLeaf(ref) for ref in refs]
    return _build_range(leaves, 0, len(leaves), rng)


def flatten_bvh(root: BVHNode) -> dict[str, np.ndarray]:
    """Flatten a hierarchy into depth-first node arrays.

    A leaf shared by both children of a node is emitted once and referenced
    twice.

    Returns:
        Dict of arrays keyed box_min, box_max, left, right, prim_kind and
        prim_index, each with one row per node. Node 0 is the root.
    """
    box_min: list[tuple[float, float, float]] = []
    box_max: list[tuple[float, float, float]] = []
    left: list[int] = []
    right: list[int] = []
    prim_kind: list[int] = []
    prim_index: list[int] = []
    emitted: dict[int, int] = {}

    def emit(node: BVHNode | BVHLeaf) -> int:
        if id(node) in emitted:
            return emitted[id(node)]

        current = len(left)
        emitted[id(node)] = current
        box_min.append(node.box.min_corner)
        box_max.append(node.box.max_corner)
        left.append(-1)
        right.append(-1)

        if isinstance(node, BVHLeaf):
            prim_kind.append(int(node.ref.kind))
            prim_index.append(node.ref.index)
            return current

        prim_kind.append(-1)
        prim_index.append(-1)
        left_idx = emit(node.left)
        right_idx = emit(node.right)
        left[current] = left_idx
        right[current] = right_idx
        return current

    emit(root)
    return {
        "box_min": np.asarray(box_min, dtype=np.float32),
        "box_max": np.asarray(box_max, dtype=np.float32),
        "left": np.asarray(left, dtype=np.int32),
        "right": np.asarray(right, dtype=np.int32),
        "prim_kind": np.asarray(prim_kind, dtype=np.int32),
        "prim_index": np.asarray(prim_index, dtype=np.int32),
    }


def _tree_depth(node: BVHNode | BVHLeaf) -> int:
    if isinstance(node, BVHLeaf):
        return 1
    return 1 + max(_tree_depth(node.left), _tree_depth(node.right))


def interior_area_ratio(root: BVHNode) -> float:
    """Surface area of every interior node relative to the root box.

    This is the interior term of the surface area heuristic: a ray that
    hits the root box tests each interior node with probability
    proportional to the node's area.

    Returns:
        The ratio, or 0.0 when the root box has no area.
    """
    root_area = root.box.surface_area()
    if root_area <= 0.0:
        return 0.0
    total = 0.0
    stack: list[BVHNode | BVHLeaf] = [root]
    while stack:
        node = stack.pop()
        if isinstance(node, BVHNode):
            total += node.box.surface_area()
            stack.extend((node.left, node.right))
    return total / root_area


def upload_bvh(root: BVHNode) -> BVHStats:
    """Flatten a hierarchy and copy it into the BVH fields.

    Raises:
        ValueError: If the hierarchy has more than MAX_BVH_NODES nodes.
    """
    arrays = flatten_bvh(root)
    count = len(arrays["left"])
    if count > MAX_BVH_NODES:
        raise ValueError(f"BVH has {count} nodes, but MAX_BVH_NODES is {MAX_BVH_NODES}")

    def padded(name: str, width: int | None = None) -> np.ndarray:
        src = arrays[name]
        shape = (MAX_BVH_NODES,) if width is None else (MAX_BVH_NODES, width)
        out = np.full(shape, -1 if src.dtype == np.int32 else 0, dtype=src.dtype)
        out[:count] = src
        return out

    bvh_box_min.from_numpy(padded("box_min", 3))
    bvh_box_max.from_numpy(padded("box_max", 3))
    bvh_left.from_numpy(padded("left"))
    bvh_right.from_numpy(padded("right"))
    bvh_prim_kind.from_numpy(padded("prim_kind"))
    bvh_prim_index.from_numpy(padded("prim_index"))
    num_bvh_nodes[None] = count

    leaf_count = int(np.count_nonzero(arrays["prim_kind"] >= 0))
    return BVHStats(
        primitive_count=leaf_count,
        node_count=count,
        leaf_count=leaf_count,
        depth=_tree_depth(root),
        area_ratio=interior_area_ratio(root),
    )


def build_scene_bvh(seed: int | None = None) -> BVHStats:
    """Build and upload a hierarchy over every primitive in the scene.

    Args:
        seed: Seed for axis selection, so builds are reproducible.

    Returns:
        Statistics of the uploaded hierarchy.

    Raises:
        ValueError: If the scene has no primitives, or the hierarchy is
            deeper than the traversal stack.
    """
    refs = get_primitive_refs()
    root = build_bvh(refs, np.random.default_rng(seed))
    depth = _tree_depth(root)
    if depth > BVH_STACK_SIZE:
        raise ValueError(
            f"BVH depth {depth} exceeds traversal stack size {BVH_STACK_SIZE}"
        )
    stats = upload_bvh(root)
    logger.debug(
        "Built BVH over %d primitives: %d nodes, depth %d, area ratio %.2f",
        len(refs),
        stats.node_count,
        stats.depth,
        stats.area_ratio,
    )
    return stats


def clear_bvh() -> None:
    """Drop the uploaded hierarchy."""
    num_bvh_nodes[None] = 0


def get_bvh_node_count() -> int:
    return int(num_bvh_nodes[None])


@ti.func
def intersect_bvh(ray: Ray, t_min: ti.f32, t_max: ti.f32) -> SceneHitRecord:
    """Find the nearest hit by walking the flattened hierarchy.

    Children are pushed right first so the left subtree is fully explored
    before the right one, and each hit narrows the window for everything
    visited afterwards.

    Args:
        ray: The ray to test.
        t_min: Start of the hit window (inclusive).
        t_max: End of the hit window (exclusive).

    Returns:
        A SceneHitRecord for the closest hit, or a miss record.
    """
    result = make_miss_record()
    closest_t = t_max

    stack = ti.Vector.zero(ti.i32, BVH_STACK_SIZE)
    stack_ptr = 0
    if num_bvh_nodes[None] > 0:
        stack[0] = 0
        stack_ptr = 1

    while stack_ptr > 0:
        stack_ptr -= 1
        node = stack[stack_ptr]

        if hit_aabb(bvh_box_min[node], bvh_box_max[node], ray, t_min, closest_t) == 1:
            kind = bvh_prim_kind[node]
            if kind >= 0:
                rec = hit_primitive(kind, bvh_prim_index[node], ray, t_min, closest_t)
                if rec.hit == 1:
                    closest_t = rec.t
                    result = rec
            elif stack_ptr + 2 <= BVH_STACK_SIZE:
                stack[stack_ptr] = bvh_right[node]
                stack[stack_ptr + 1] = bvh_left[node]
                stack_ptr += 2

    return result
