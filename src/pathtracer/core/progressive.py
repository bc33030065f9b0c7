"""Progressive renderer for iterative sample accumulation.

ProgressiveRenderer owns the image size and wraps the integrator's global
buffers. Samples are added in batches, progress can be reported through a
callback or a generator, and the result is read back as linear floats or as
gamma-corrected 8-bit pixels.

Example:
    >>> from pathtracer.config import RenderConfig, init_taichi
    >>> init_taichi(RenderConfig(width=400, height=225))
    >>> renderer = ProgressiveRenderer(400, 225, max_depth=50)
    >>> renderer.render(100, batch_size=10)
    >>> renderer.save_image("out.png")
"""

import logging
from collections.abc import Callable, Generator

import numpy as np
import numpy.typing as npt

from pathtracer.core.integrator import (
    GAMMA,
    clear_render_target,
    get_normalized_image_numpy,
    get_total_samples,
    render_image,
    set_max_depth,
    setup_render_target,
    to_uint8,
)

logger = logging.getLogger(__name__)

# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """A progressive renderer that accumulates samples over time.

    The renderer keeps width and height and delegates storage to the
    integrator's Taichi fields, so only one renderer is active at a time.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
    """

    def __init__(self, width: int, height: int, max_depth: int | None = None) -> None:
        """Initialize the progressive renderer.

        Args:
            width: Image width in pixels (max 2048).
            height: Image height in pixels (max 2048).
            max_depth: Bounce budget per path. Leaves the current setting
                alone when None.

        Raises:
            ValueError: If dimensions are invalid or max_depth is negative.
        """
        setup_render_target(width, height)
        if max_depth is not None:
            set_max_depth(max_depth)
        self._width = width
        self._height = height

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def sample_count(self) -> int:
        """Current number of accumulated samples per pixel."""
        return get_total_samples()

    def reset(self) -> None:
        """Clear the accumulator without changing the image size."""
        clear_render_target()

    def resize(self, width: int, height: int) -> None:
        """Resize the render target and reset the accumulator.

        Raises:
            ValueError: If dimensions are invalid.
        """
        setup_render_target(width, height)
        self._width = width
        self._height = height

    def _batches(self, num_samples: int, batch_size: int) -> Generator[tuple[int, int], None, None]:
        if batch_size <= 0:
            raise ValueError(f"batch_size = {batch_size} must be positive.")

        target_samples = self.sample_count + num_samples
        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            render_image(batch)
            remaining -= batch
            logger.debug("Accumulated %d/%d samples", self.sample_count, target_samples)
            yield (self.sample_count, target_samples)

    def render(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add samples to the image, optionally reporting progress.

        Args:
            num_samples: Total number of samples to add. Non-positive values
                do nothing.
            batch_size: Number of samples to render before each callback.
            callback: Called after each batch with
                (current_total_samples, target_total_samples).

        Raises:
            ValueError: If batch_size is not positive.
        """
        for current, target in self._batches(num_samples, batch_size):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_samples: int = 1,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Generator form of render(), yielding progress after each batch.

        Example:
            >>> for current, target in renderer.render_progressive(100, batch_size=10):
            ...     print(f"{current}/{target}")
        """
        yield from self._batches(num_samples, batch_size)

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Linear image of shape (height, width, 3), clamped to [0, 1]."""
        return get_normalized_image_numpy()

    def get_image_uint8(self, gamma: float = GAMMA) -> npt.NDArray[np.uint8]:
        """Gamma-corrected 8-bit image of shape (height, width, 3)."""
        return to_uint8(self.get_image_numpy(), gamma)

    def save_image(self, filepath: str, gamma: float = GAMMA) -> None:
        """Save the rendered image to a file.

        Args:
            filepath: Path to save the image (e.g., "output.png").
            gamma: Display gamma.
        """
        from pathtracer.preview.export import save_png

        save_png(self.get_image_uint8(gamma), filepath)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )
