"""Texture registry and evaluation.

Materials do not store colors directly. They hold a texture ID and sample it
at every hit with the surface coordinates (u, v) and the hit point.

Three texture types are supported:

- Solid: a constant color.
- Checker: a 3D checkerboard that alternates between an even and an odd
  color. The cell containing point p is floor(p / scale); the parity of the
  sum of its integer coordinates selects the color.
- Image: an RGB picture decoded on the host with Pillow and looked up by
  (u, v), nearest texel. Row 0 of the picture is v = 1.

Example:
    >>> import taichi as ti
    >>> ti.init(arch=ti.gpu)
    >>> from pathtracer.materials.texture import add_checker_texture
    >>> tex = add_checker_texture(0.32, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
    >>> # Use sample_texture(tex, u, v, point) within a Taichi kernel
"""

from collections.abc import Sequence
from enum import IntEnum
from os import PathLike

import numpy as np
import taichi as ti
import taichi.math as tm
from PIL import Image as PILImage

vec3 = tm.vec3


class TextureType(IntEnum):
    """Kinds of texture in the registry."""

    SOLID = 0
    CHECKER = 1
    IMAGE = 2


_TEXTURE_CHECKER = int(TextureType.CHECKER)
_TEXTURE_IMAGE = int(TextureType.IMAGE)

# Maximum number of textures in the scene
MAX_TEXTURES = 1024

texture_types = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
# Solid textures keep their color in texture_even
texture_even = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_odd = ti.Vector.field(3, dtype=ti.f32, shape=MAX_TEXTURES)
texture_inv_scales = ti.field(dtype=ti.f32, shape=MAX_TEXTURES)
num_textures = ti.field(dtype=ti.i32, shape=())

# Texels of every image texture, packed row-major one image after another
MAX_IMAGE_TEXELS = 2048 * 1024

image_texels = ti.field(dtype=ti.u8, shape=(MAX_IMAGE_TEXELS, 3))
num_image_texels = ti.field(dtype=ti.i32, shape=())
texture_image_offsets = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_image_widths = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)
texture_image_heights = ti.field(dtype=ti.i32, shape=MAX_TEXTURES)


def _validate_color(color: Sequence[float], name: str) -> None:
    if len(color) != 3:
        raise ValueError(f"{name} must have 3 components, got {len(color)}")
    for i, component in enumerate(color):
        if component < 0.0 or component > 1.0:
            raise ValueError(f"{name} component {i} = {component} is outside [0, 1].")


def clear_textures() -> None:
    """Clear all textures from the registry."""
    num_textures[None] = 0
    num_image_texels[None] = 0


def _next_texture_slot() -> int:
    idx = num_textures[None]
    if idx >= MAX_TEXTURES:
        raise RuntimeError(f"Maximum number of textures ({MAX_TEXTURES}) exceeded")
    return idx


def add_solid_texture(color: Sequence[float]) -> int:
    """Add a constant-color texture.

    Args:
        color: The (R, G, B) color, each component in [0, 1].

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures is exceeded.
        ValueError: If any color component is outside [0, 1].
    """
    _validate_color(color, "Color")
    idx = _next_texture_slot()
    texture_types[idx] = int(TextureType.SOLID)
    texture_even[idx] = vec3(color[0], color[1], color[2])
    texture_odd[idx] = vec3(color[0], color[1], color[2])
    texture_inv_scales[idx] = 1.0
    num_textures[None] = idx + 1
    return idx


def add_checker_texture(
    scale: float,
    even: Sequence[float],
    odd: Sequence[float],
) -> int:
    """Add a 3D checkerboard texture.

    Args:
        scale: Edge length of one checker cell. Must be positive.
        even: Color of cells whose integer coordinates sum to an even number.
        odd: Color of the other cells.

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures is exceeded.
        ValueError: If scale is not positive or a color is outside [0, 1].
    """
    if scale <= 0.0:
        raise ValueError(f"Checker scale = {scale} must be positive.")
    _validate_color(even, "Even color")
    _validate_color(odd, "Odd color")

    idx = _next_texture_slot()
    texture_types[idx] = int(TextureType.CHECKER)
    texture_even[idx] = vec3(even[0], even[1], even[2])
    texture_odd[idx] = vec3(odd[0], odd[1], odd[2])
    texture_inv_scales[idx] = 1.0 / scale
    num_textures[None] = idx + 1
    return idx


@ti.kernel
def _upload_texels(pixels: ti.types.ndarray(dtype=ti.u8, ndim=3), offset: ti.i32):
    width = pixels.shape[1]
    for j, i, c in ti.ndrange(pixels.shape[0], pixels.shape[1], 3):
        image_texels[offset + j * width + i, c] = pixels[j, i, c]


def add_image_texture(pixels: np.ndarray) -> int:
    """Add an image texture from decoded RGB pixels.

    Args:
        pixels: uint8 array of shape (height, width, 3). Row 0 is the top
            of the picture.

    Returns:
        The texture ID.

    Raises:
        RuntimeError: If the maximum number of textures or texels is exceeded.
        ValueError: If the array is not a non-empty (height, width, 3) uint8 image.
    """
    pixels = np.asarray(pixels)
    if pixels.dtype != np.uint8:
        raise ValueError(f"Image pixels must be uint8, got {pixels.dtype}")
    if pixels.ndim != 3 or pixels.shape[2] != 3:
        raise ValueError(f"Image pixels must have shape (height, width, 3), got {pixels.shape}")
    height, width = pixels.shape[0], pixels.shape[1]
    if height == 0 or width == 0:
        raise ValueError("Image has no pixels")

    idx = _next_texture_slot()
    offset = num_image_texels[None]
    if offset + height * width > MAX_IMAGE_TEXELS:
        raise RuntimeError(
            f"Image of {width}x{height} does not fit in the remaining "
            f"{MAX_IMAGE_TEXELS - offset} texels"
        )

    _upload_texels(np.ascontiguousarray(pixels), offset)
    num_image_texels[None] = offset + height * width

    texture_types[idx] = int(TextureType.IMAGE)
    texture_even[idx] = vec3(0.0, 0.0, 0.0)
    texture_odd[idx] = vec3(0.0, 0.0, 0.0)
    texture_inv_scales[idx] = 1.0
    texture_image_offsets[idx] = offset
    texture_image_widths[idx] = width
    texture_image_heights[idx] = height
    num_textures[None] = idx + 1
    return idx


def load_image_texture(path: str | PathLike) -> int:
    """Decode an image file and add it as a texture.

    Raises:
        OSError: If the file cannot be opened or decoded.
    """
    with PILImage.open(path) as img:
        pixels = np.asarray(img.convert("RGB"), dtype=np.uint8)
    return add_image_texture(pixels)


def validate_texture_id(texture_id: int) -> None:
    """Raise ValueError unless texture_id names a registered texture."""
    if texture_id < 0 or texture_id >= num_textures[None]:
        raise ValueError(f"Invalid texture_id: {texture_id}")


def get_texture_count() -> int:
    return int(num_textures[None])


@ti.func
def checker_value(inv_scale: ti.f32, even: vec3, odd: vec3, point: vec3) -> vec3:
    """Color of the checker cell containing point."""
    cell = ti.floor(inv_scale * point)
    parity = ti.cast(cell.x, ti.i32) + ti.cast(cell.y, ti.i32) + ti.cast(cell.z, ti.i32)
    result = odd
    if parity % 2 == 0:
        result = even
    return result


@ti.func
def image_value(texture_id: ti.i32, u: ti.f32, v: ti.f32) -> vec3:
    """Nearest texel of an image texture, scaled to [0, 1]."""
    width = texture_image_widths[texture_id]
    height = texture_image_heights[texture_id]
    s = tm.clamp(u, 0.0, 1.0)
    t = 1.0 - tm.clamp(v, 0.0, 1.0)
    i = ti.cast(s * (width - 1), ti.i32)
    j = ti.cast(t * (height - 1), ti.i32)
    texel = texture_image_offsets[texture_id] + j * width + i
    return vec3(
        ti.cast(image_texels[texel, 0], ti.f32),
        ti.cast(image_texels[texel, 1], ti.f32),
        ti.cast(image_texels[texel, 2], ti.f32),
    ) / 255.0


@ti.func
def sample_texture(texture_id: ti.i32, u: ti.f32, v: ti.f32, point: vec3) -> vec3:
    """Evaluate a texture at a surface point.

    Args:
        texture_id: ID returned by one of the add_*_texture functions.
        u: Surface coordinate.
        v: Surface coordinate.
        point: Hit point in world space.

    Returns:
        The texture color.
    """
    result = texture_even[texture_id]
    texture_type = texture_types[texture_id]
    if texture_type == _TEXTURE_CHECKER:
        result = checker_value(
            texture_inv_scales[texture_id],
            texture_even[texture_id],
            texture_odd[texture_id],
            point,
        )
    elif texture_type == _TEXTURE_IMAGE:
        result = image_value(texture_id, u, v)
    return result
