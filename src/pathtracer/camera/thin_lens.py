"""Thin-lens camera model for primary ray generation.

This module implements a perspective camera with optional depth of field and
motion blur. The camera supports:
- Look-at positioning (lookfrom, lookat, vup)
- Vertical field of view specification
- Arbitrary aspect ratios
- A defocus disk: ray origins are jittered across a lens whose radius is set
  by defocus_angle, so only the plane at focus_distance is sharp
- Jittered sampling for anti-aliasing
- Random ray times in [0, 1) when motion blur is enabled

The camera builds an orthonormal basis (u, v, w) from the view parameters:
- w: points from lookat toward lookfrom (opposite view direction)
- u: points right in the image plane
- v: points up in the image plane

The viewport lies on the focus plane, focus_distance in front of the camera.
With defocus_angle = 0 every ray starts at lookfrom and the camera behaves
as a pinhole.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera, get_ray
    >>>
    >>> camera = ThinLensCamera(
    ...     lookfrom=(13.0, 2.0, 3.0),
    ...     lookat=(0.0, 0.0, 0.0),
    ...     vfov=20.0,
    ...     aspect_ratio=16.0 / 9.0,
    ...     focus_distance=10.0,
    ...     defocus_angle=0.6,
    ... )
    >>> setup_camera(camera)
    >>>
    >>> @ti.kernel
    ... def render():
    ...     ray = get_ray(0.5, 0.5)  # Ray through image center
"""

import math
from dataclasses import dataclass

import numpy as np
import taichi as ti

from pathtracer.core.ray import Ray, make_ray, random_in_unit_disk, vec3

# =============================================================================
# Camera Data Structures
# =============================================================================


@dataclass
class ThinLensCamera:
    """Configuration for a thin-lens (perspective) camera.

    Attributes:
        lookfrom: Camera position in world space (x, y, z).
        lookat: Point the camera is looking at in world space (x, y, z).
        vup: Up direction vector for camera orientation.
        vfov: Vertical field of view in degrees.
        aspect_ratio: Width divided by height of the output image.
        focus_distance: Distance from lookfrom to the plane of perfect focus.
        defocus_angle: Cone angle in degrees, apex at the focus plane, that
            spans the lens. 0 disables depth of field.
        motion_blur: Give each ray a random time in [0, 1).
    """

    lookfrom: tuple[float, float, float] = (0.0, 0.0, 0.0)
    lookat: tuple[float, float, float] = (0.0, 0.0, -1.0)
    vup: tuple[float, float, float] = (0.0, 1.0, 0.0)
    vfov: float = 90.0
    aspect_ratio: float = 16.0 / 9.0
    focus_distance: float = 10.0
    defocus_angle: float = 0.0
    motion_blur: bool = False

    def validate(self) -> None:
        """Check the configuration.

        Raises:
            ValueError: If a parameter is out of range or the view is
                degenerate.
        """
        if not 0.0 < self.vfov < 180.0:
            raise ValueError(f"vfov = {self.vfov} must be in (0, 180) degrees.")
        if self.aspect_ratio <= 0.0:
            raise ValueError(f"aspect_ratio = {self.aspect_ratio} must be positive.")
        if self.focus_distance <= 0.0:
            raise ValueError(f"focus_distance = {self.focus_distance} must be positive.")
        if self.defocus_angle < 0.0:
            raise ValueError(f"defocus_angle = {self.defocus_angle} must be non-negative.")
        view = np.subtract(self.lookfrom, self.lookat)
        if np.linalg.norm(view) == 0.0:
            raise ValueError("lookfrom and lookat must be different points.")
        if np.linalg.norm(np.cross(self.vup, view)) == 0.0:
            raise ValueError("vup must not be parallel to the view direction.")


# =============================================================================
# Taichi Fields for Camera State (GPU-accessible)
# =============================================================================

# Camera origin (lens center)
_camera_origin = ti.Vector.field(3, dtype=ti.f32, shape=())

# Orthonormal basis vectors
_camera_u = ti.Vector.field(3, dtype=ti.f32, shape=())  # Right
_camera_v = ti.Vector.field(3, dtype=ti.f32, shape=())  # Up
_camera_w = ti.Vector.field(3, dtype=ti.f32, shape=())  # Backward (opposite view)

# Viewport on the focus plane
_viewport_horizontal = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full width
_viewport_vertical = ti.Vector.field(3, dtype=ti.f32, shape=())  # Full height
_lower_left_corner = ti.Vector.field(3, dtype=ti.f32, shape=())  # Lower-left of viewport

# Lens disk half-axes; zero length when depth of field is off
_defocus_disk_u = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_disk_v = ti.Vector.field(3, dtype=ti.f32, shape=())
_defocus_enabled = ti.field(dtype=ti.i32, shape=())
_motion_blur_enabled = ti.field(dtype=ti.i32, shape=())


# =============================================================================
# Camera Setup (Python-side, called once per camera configuration)
# =============================================================================


def setup_camera(camera: ThinLensCamera) -> None:
    """Initialize camera state from configuration.

    Computes the camera's orthonormal basis (u, v, w), the viewport on the
    focus plane and the lens disk. This must be called before rendering.

    Args:
        camera: Camera configuration.

    Raises:
        ValueError: If the configuration is invalid.
    """
    camera.validate()

    theta = math.radians(camera.vfov)
    h = math.tan(theta / 2.0)

    # Viewport dimensions on the focus plane
    viewport_height = 2.0 * h * camera.focus_distance
    viewport_width = camera.aspect_ratio * viewport_height

    lookfrom = np.array(camera.lookfrom, dtype=np.float64)
    lookat = np.array(camera.lookat, dtype=np.float64)
    vup = np.array(camera.vup, dtype=np.float64)

    # w points from lookat toward lookfrom (backward)
    w = lookfrom - lookat
    w = w / np.linalg.norm(w)

    # u points right (perpendicular to w and vup)
    u = np.cross(vup, w)
    u = u / np.linalg.norm(u)

    # v points up in the camera's frame
    v = np.cross(w, u)

    horizontal = viewport_width * u
    vertical = viewport_height * v
    lower_left = lookfrom - camera.focus_distance * w - horizontal / 2.0 - vertical / 2.0

    defocus_radius = camera.focus_distance * math.tan(math.radians(camera.defocus_angle / 2.0))

    _camera_origin[None] = lookfrom.tolist()
    _camera_u[None] = u.tolist()
    _camera_v[None] = v.tolist()
    _camera_w[None] = w.tolist()
    _viewport_horizontal[None] = horizontal.tolist()
    _viewport_vertical[None] = vertical.tolist()
    _lower_left_corner[None] = lower_left.tolist()
    _defocus_disk_u[None] = (defocus_radius * u).tolist()
    _defocus_disk_v[None] = (defocus_radius * v).tolist()
    _defocus_enabled[None] = 1 if camera.defocus_angle > 0.0 else 0
    _motion_blur_enabled[None] = 1 if camera.motion_blur else 0


# =============================================================================
# Ray Generation (Taichi-compatible, GPU-callable)
# =============================================================================


@ti.func
def _sample_lens_origin() -> vec3:
    origin = _camera_origin[None]
    if _defocus_enabled[None] == 1:
        p = random_in_unit_disk()
        origin = origin + p.x * _defocus_disk_u[None] + p.y * _defocus_disk_v[None]
    return origin


@ti.func
def get_ray(s: ti.f32, t: ti.f32) -> Ray:
    """Generate a ray through normalized image coordinates (s, t).

    The coordinates are normalized:
    - s = 0: left edge of image, s = 1: right edge
    - t = 0: bottom edge of image, t = 1: top edge

    The ray starts at a random point on the lens (or at the camera position
    when depth of field is off) and passes through the matching point on the
    focus plane. Its direction is not normalized.

    Args:
        s: Horizontal coordinate in [0, 1] (left to right).
        t: Vertical coordinate in [0, 1] (bottom to top).

    Returns:
        The primary ray, with a random time when motion blur is enabled
        and time 0 otherwise.
    """
    point_on_viewport = (
        _lower_left_corner[None] + s * _viewport_horizontal[None] + t * _viewport_vertical[None]
    )
    origin = _sample_lens_origin()

    time = 0.0
    if _motion_blur_enabled[None] == 1:
        time = ti.random(ti.f32)

    return make_ray(origin, point_on_viewport - origin, time)


@ti.func
def get_ray_jittered(pixel_i: ti.i32, pixel_j: ti.i32, width: ti.i32, height: ti.i32) -> Ray:
    """Generate a ray through a random point of a pixel's footprint.

    When accumulated over multiple samples, this produces smooth edges.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        width: Image width in pixels.
        height: Image height in pixels.

    Returns:
        A Ray with random sub-pixel offset for anti-aliasing.
    """
    s = (ti.cast(pixel_i, ti.f32) + ti.random(ti.f32)) / ti.cast(width, ti.f32)
    t = (ti.cast(pixel_j, ti.f32) + ti.random(ti.f32)) / ti.cast(height, ti.f32)
    return get_ray(s, t)


# =============================================================================
# Utility Functions
# =============================================================================


def get_camera_info() -> dict[str, tuple[float, float, float]]:
    """Get current camera state for debugging.

    Returns:
        Dictionary with origin, u, v, w, horizontal, vertical, lower_left,
        defocus_disk_u and defocus_disk_v.
    """
    fields = {
        "origin": _camera_origin,
        "u": _camera_u,
        "v": _camera_v,
        "w": _camera_w,
        "horizontal": _viewport_horizontal,
        "vertical": _viewport_vertical,
        "lower_left": _lower_left_corner,
        "defocus_disk_u": _defocus_disk_u,
        "defocus_disk_v": _defocus_disk_v,
    }
    info = {}
    for name, f in fields.items():
        vec = f[None]
        info[name] = (float(vec[0]), float(vec[1]), float(vec[2]))
    return info
