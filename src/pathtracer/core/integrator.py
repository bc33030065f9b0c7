"""Path tracing integrator for Monte Carlo light transport.

This module implements the main rendering kernel: a depth-bounded path
tracer with material-based scattering, emissive lights and progressive
sample accumulation.

Each path is evaluated as

    L(ray, depth) = 0                                   if depth == 0
                  = background(ray)                     if the ray escapes
                  = emit + attenuation * L(next, depth - 1)   if it scatters
                  = emit                                otherwise

written as a loop with a running throughput, since Taichi functions cannot
recurse. A path that runs out of bounces contributes nothing further.

Key features:
    - Material dispatch (Lambertian, Metal, Dielectric, Light)
    - Sky gradient or flat skybox background
    - BVH or flat-list scene queries, chosen when the scene is finalized
    - Progressive sample accumulation for convergence

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.core.integrator import render_image, setup_render_target
    >>> from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera
    >>>
    >>> setup_camera(ThinLensCamera(lookfrom=(0, 0, 5), lookat=(0, 0, 0)))
    >>> setup_render_target(400, 225)
    >>> render_image(num_samples=100)
    >>> pixels = get_image_uint8()
"""

import logging
import math

import numpy as np
import taichi as ti
import taichi.math as tm

from pathtracer.camera.thin_lens import get_ray_jittered
from pathtracer.core.ray import Ray, make_ray
from pathtracer.materials.dielectric import get_dielectric_ior, scatter_dielectric
from pathtracer.materials.lambertian import get_lambertian_texture, scatter_lambertian
from pathtracer.materials.light import emit_light, get_light_luminosity, get_light_texture
from pathtracer.materials.metal import get_metal_fuzz, get_metal_texture, scatter_metal
from pathtracer.materials.texture import sample_texture
from pathtracer.scene.intersection import SceneHitRecord
from pathtracer.scene.manager import (
    MaterialType,
    get_material_type,
    get_material_type_index,
)
from pathtracer.scene.world import intersect_world

logger = logging.getLogger(__name__)

# Type alias for 3D vectors
vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Default maximum ray bounces (path length)
MAX_DEPTH = 50

# Hit window for every scene query; the lower bound avoids self-intersection
T_MIN = 0.001
T_MAX = math.inf

# Display gamma applied when converting to 8-bit
GAMMA = 2.0

# Sky gradient endpoints
SKY_WHITE = (1.0, 1.0, 1.0)
SKY_BLUE = (0.5, 0.7, 1.0)

_MAT_LAMBERTIAN = int(MaterialType.LAMBERTIAN)
_MAT_METAL = int(MaterialType.METAL)
_MAT_DIELECTRIC = int(MaterialType.DIELECTRIC)
_MAT_LIGHT = int(MaterialType.LIGHT)

# =============================================================================
# Render Settings
# =============================================================================

BACKGROUND_GRADIENT = "gradient"
BACKGROUND_SOLID = "solid"

# 0 = sky gradient, 1 = flat skybox color
_background_mode = ti.field(dtype=ti.i32, shape=())
_skybox_color = ti.Vector.field(3, dtype=ti.f32, shape=())
_max_depth = ti.field(dtype=ti.i32, shape=())
_max_depth[None] = MAX_DEPTH


def set_background(mode: str = BACKGROUND_GRADIENT, color: tuple[float, float, float] = (0.0, 0.0, 0.0)) -> None:
    """Choose what escaping rays see.

    Args:
        mode: "gradient" for the white-to-blue sky, "solid" for a flat color.
        color: The skybox color used in "solid" mode.

    Raises:
        ValueError: If mode is unknown or a color component is negative.
    """
    if mode not in (BACKGROUND_GRADIENT, BACKGROUND_SOLID):
        raise ValueError(f"Unknown background mode: {mode!r}")
    if any(c < 0.0 for c in color):
        raise ValueError(f"Skybox color {color} must be non-negative.")
    _background_mode[None] = 0 if mode == BACKGROUND_GRADIENT else 1
    _skybox_color[None] = [color[0], color[1], color[2]]


def set_max_depth(depth: int) -> None:
    """Set the number of bounces each camera path may take.

    Raises:
        ValueError: If depth is negative.
    """
    if depth < 0:
        raise ValueError(f"max_depth = {depth} must be non-negative.")
    _max_depth[None] = depth


def get_max_depth() -> int:
    return int(_max_depth[None])


# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

# Maximum supported image dimensions (preallocated to avoid kernel recompilation)
MAX_IMAGE_WIDTH = 2048
MAX_IMAGE_HEIGHT = 2048

# Image dimensions (actual active size)
_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Color accumulation buffer, indexed (x, y) with y = 0 at the bottom
_color_buffer = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Sample count per pixel (preallocated to max size)
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Flag to track if render target is initialized
_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int) -> None:
    """Initialize the render target buffers.

    Sets the active image dimensions and clears the buffers.

    Args:
        width: Image width in pixels (max MAX_IMAGE_WIDTH).
        height: Image height in pixels (max MAX_IMAGE_HEIGHT).

    Raises:
        ValueError: If dimensions are not positive or exceed the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions ({width}x{height}) must be positive")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()


def clear_render_target() -> None:
    """Clear the render target buffers to zero."""
    _color_buffer.fill(0.0)
    _sample_count.fill(0)


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    """Check if render target is initialized and raise if not."""
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


# =============================================================================
# Material Dispatch
# =============================================================================


@ti.func
def _scatter_material(direction: vec3, rec: SceneHitRecord):
    """Dispatch to the scattering function of the hit material.

    Args:
        direction: The incoming ray direction.
        rec: The hit record.

    Returns:
        A tuple of (scattered_direction, attenuation, did_scatter) where
        did_scatter is 0 for lights and unknown materials.
    """
    mat_type = get_material_type(rec.material_id)
    type_index = get_material_type_index(rec.material_id)

    scattered_direction = vec3(0.0, 0.0, 0.0)
    attenuation = vec3(0.0, 0.0, 0.0)
    did_scatter = 0

    if mat_type == _MAT_LAMBERTIAN:
        albedo = sample_texture(get_lambertian_texture(type_index), rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_lambertian(albedo, rec.normal)

    elif mat_type == _MAT_METAL:
        albedo = sample_texture(get_metal_texture(type_index), rec.u, rec.v, rec.point)
        scattered_direction, attenuation, did_scatter = scatter_metal(
            albedo, get_metal_fuzz(type_index), direction, rec.normal
        )

    elif mat_type == _MAT_DIELECTRIC:
        scattered_direction, attenuation, did_scatter = scatter_dielectric(
            get_dielectric_ior(type_index), direction, rec.normal, rec.front_face
        )

    return scattered_direction, attenuation, did_scatter


@ti.func
def _emitted(rec: SceneHitRecord) -> vec3:
    """Radiance emitted at the hit point; black for non-lights."""
    emission = vec3(0.0, 0.0, 0.0)
    if get_material_type(rec.material_id) == _MAT_LIGHT:
        type_index = get_material_type_index(rec.material_id)
        color = sample_texture(get_light_texture(type_index), rec.u, rec.v, rec.point)
        emission = emit_light(color, get_light_luminosity(type_index))
    return emission


# =============================================================================
# Path Tracing Core
# =============================================================================


@ti.func
def background_color(direction: vec3) -> vec3:
    """Color seen by a ray that escapes the scene.

    In gradient mode this blends white and sky blue by the vertical
    component of the unit direction: straight down is white, straight up is
    sky blue.
    """
    result = _skybox_color[None]
    if _background_mode[None] == 0:
        unit_direction = tm.normalize(direction)
        a = 0.5 * (unit_direction.y + 1.0)
        result = (1.0 - a) * vec3(SKY_WHITE[0], SKY_WHITE[1], SKY_WHITE[2]) + a * vec3(
            SKY_BLUE[0], SKY_BLUE[1], SKY_BLUE[2]
        )
    return result


@ti.func
def ray_color(ray: Ray, max_depth: ti.i32) -> vec3:
    """Estimate the radiance carried back along a ray.

    Args:
        ray: The ray to trace.
        max_depth: Maximum number of scene intersections along the path.

    Returns:
        The estimated radiance (RGB).
    """
    origin = ray.origin
    direction = ray.direction
    time = ray.time

    radiance = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)

    # Active flag for path continuation
    active = 1

    for _ in range(max_depth):
        if active == 1:
            rec = intersect_world(make_ray(origin, direction, time), T_MIN, T_MAX)

            if rec.hit == 0:
                radiance += throughput * background_color(direction)
                active = 0
            else:
                radiance += throughput * _emitted(rec)

                scattered_direction, attenuation, did_scatter = _scatter_material(direction, rec)

                if did_scatter == 0:
                    active = 0
                else:
                    throughput *= attenuation
                    origin = rec.point
                    direction = scattered_direction

    return radiance


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Zero out negative and non-finite channels."""
    result = tm.max(color, vec3(0.0, 0.0, 0.0))
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]):
            result[c] = 0.0
    return result


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_one_spp(width: ti.i32, height: ti.i32):
    """Render one sample per pixel and accumulate.

    Args:
        width: Image width in pixels.
        height: Image height in pixels.
    """
    for i, j in ti.ndrange(width, height):
        ray = get_ray_jittered(i, j, width, height)
        color = _sanitize(ray_color(ray, _max_depth[None]))

        # Running average: avg_n = avg_{n-1} + (x_n - avg_{n-1}) / n
        _sample_count[i, j] += 1
        n = _sample_count[i, j]
        _color_buffer[i, j] += (color - _color_buffer[i, j]) / ti.cast(n, ti.f32)


# Result slot for single-ray kernels
_single_color = ti.Vector.field(3, dtype=ti.f32, shape=())


@ti.kernel
def _render_single_pixel(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32):
    """Render a single sample for a specific pixel into _single_color."""
    # One-iteration outer loop keeps the bounce loop serial
    for _ in range(1):
        ray = get_ray_jittered(pixel_i, pixel_j, width, height)
        _single_color[None] = ray_color(ray, _max_depth[None])


@ti.kernel
def _trace_ray_kernel(
    ox: ti.f32,
    oy: ti.f32,
    oz: ti.f32,
    dx: ti.f32,
    dy: ti.f32,
    dz: ti.f32,
    time: ti.f32,
    max_depth: ti.i32,
):
    for _ in range(1):
        ray = make_ray(vec3(ox, oy, oz), vec3(dx, dy, dz), time)
        _single_color[None] = ray_color(ray, max_depth)


def _read_single_color() -> tuple[float, float, float]:
    color = _single_color[None]
    return (float(color[0]), float(color[1]), float(color[2]))


# =============================================================================
# Public Rendering API
# =============================================================================


def trace_ray(
    origin: tuple[float, float, float],
    direction: tuple[float, float, float],
    time: float = 0.0,
    max_depth: int | None = None,
) -> tuple[float, float, float]:
    """Estimate the radiance along one ray from Python.

    Intended for tests and debugging; it does not need a render target.

    Args:
        origin: Ray origin.
        direction: Ray direction.
        time: Ray time, used by moving spheres.
        max_depth: Bounce budget. Defaults to the configured max depth.

    Returns:
        Tuple of (R, G, B) radiance.
    """
    depth = get_max_depth() if max_depth is None else max_depth
    if depth < 0:
        raise ValueError(f"max_depth = {depth} must be non-negative.")
    _trace_ray_kernel(
        origin[0], origin[1], origin[2],
        direction[0], direction[1], direction[2],
        time,
        depth,
    )
    return _read_single_color()


def render_sample(pixel_i: int, pixel_j: int) -> tuple[float, float, float]:
    """Render a single sample for a specific pixel.

    This is a Python-callable function for testing. For production rendering,
    use render_image() which processes all pixels in parallel.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).

    Returns:
        Tuple of (R, G, B) color values.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    _render_single_pixel(pixel_i, pixel_j, width, height)
    return _read_single_color()


def render_image(num_samples: int = 1) -> None:
    """Render the image with the specified number of samples per pixel.

    Progressively accumulates samples into the color buffer. Can be called
    multiple times to add more samples for convergence.

    Args:
        num_samples: Number of samples to render per pixel.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()
    logger.debug("Rendering %d samples at %dx%d", num_samples, width, height)

    for _ in range(num_samples):
        _render_one_spp(width, height)
    ti.sync()


def get_total_samples() -> int:
    """Get the number of samples per pixel rendered so far.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    return int(_sample_count[0, 0])


def get_normalized_image_numpy() -> np.ndarray:
    """Get the rendered linear image as a NumPy array.

    Returns:
        Array of shape (height, width, 3), dtype float32, clamped to [0, 1].
        Row 0 is the top of the image.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()

    image = _color_buffer.to_numpy()[:width, :height, :]

    # Transpose from (width, height, 3) to (height, width, 3) for standard image format
    image = np.transpose(image, (1, 0, 2))

    # Flip vertically (buffer uses bottom-left origin, images use top-left)
    image = np.flipud(image)

    return np.clip(image, 0.0, 1.0).astype(np.float32)


def to_uint8(image: np.ndarray, gamma: float = GAMMA) -> np.ndarray:
    """Gamma-correct a linear image and convert it to 8-bit.

    Each channel becomes floor(255 * clamp(c ** (1 / gamma), 0, 1)).

    Args:
        image: Linear color values.
        gamma: Display gamma. The default of 2 is a square root.

    Returns:
        uint8 array of the same shape.
    """
    linear = np.maximum(np.asarray(image, dtype=np.float64), 0.0)
    corrected = np.clip(np.power(linear, 1.0 / gamma), 0.0, 1.0)
    return (corrected * 255.0).astype(np.uint8)


def get_image_uint8(gamma: float = GAMMA) -> np.ndarray:
    """Get the rendered image as an 8-bit RGB buffer.

    Returns:
        Array of shape (height, width, 3), dtype uint8, top row first.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    return to_uint8(get_normalized_image_numpy(), gamma)


def save_image(filepath: str, gamma: float = GAMMA) -> None:
    """Save the rendered image to a file.

    Args:
        filepath: Path to save the image (e.g., "output.png").
        gamma: Display gamma.

    Raises:
        RuntimeError: If render target has not been set up.
    """
    from pathtracer.preview.export import save_png

    save_png(get_image_uint8(gamma), filepath)
