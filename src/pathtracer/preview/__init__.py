"""Preview module for rendered output.

Components:
    export: Write 8-bit RGB buffers to image files with Pillow

Example:
    >>> from pathtracer.preview import save_png
    >>> save_png(renderer.get_image_uint8(), "output.png")
"""

from pathtracer.preview.export import save_png

__all__ = ["save_png"]
