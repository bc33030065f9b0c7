"""Image export utilities for rendered images.

Rendering produces an in-memory 8-bit RGB buffer; this module writes it to
disk through Pillow. The file format follows the path's extension.

Example:
    >>> from pathtracer.core.integrator import get_image_uint8
    >>> from pathtracer.preview.export import save_png
    >>> save_png(get_image_uint8(), "output.png")
"""

import logging

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

logger = logging.getLogger(__name__)


def save_png(image: npt.NDArray[np.uint8], filepath: str) -> None:
    """Save an 8-bit RGB buffer as an image file.

    Args:
        image: Array of shape (height, width, 3) with dtype uint8, top row
            first.
        filepath: Output file path (should end in .png).

    Raises:
        ValueError: If the buffer does not have the expected shape or dtype.
        OSError: If Pillow cannot write the file.
    """
    if image.ndim != 3 or image.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) buffer, got shape {image.shape}")
    if image.dtype != np.uint8:
        raise ValueError(f"Expected dtype uint8, got {image.dtype}")

    pil_image = PILImage.fromarray(np.ascontiguousarray(image))
    pil_image.save(filepath)
    logger.info("Saved %dx%d image to %s", image.shape[1], image.shape[0], filepath)
