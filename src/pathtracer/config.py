"""Render configuration and Taichi runtime setup.

Taichi fields live at module level in the rendering modules, so the runtime
must be initialized before any of them is imported. Scripts therefore call
init_taichi() first and import the rest of the package afterwards.

Example:
    >>> from pathtracer.config import RenderConfig, init_taichi, apply_render_settings
    >>> config = RenderConfig(width=400, height=225, samples_per_pixel=50, seed=7)
    >>> init_taichi(config)
    >>> apply_render_settings(config)
"""

import logging
from dataclasses import dataclass

import taichi as ti

logger = logging.getLogger(__name__)

_ARCHS = {
    "cpu": ti.cpu,
    "gpu": ti.gpu,
}


@dataclass
class RenderConfig:
    """Settings for one render.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Samples averaged into each pixel.
        max_depth: Scene intersections allowed per camera path.
        background: "gradient" for the sky gradient, "solid" for skybox_color.
        skybox_color: Flat background color used in "solid" mode.
        seed: Seed for the device RNG; None lets Taichi pick its default.
        arch: Taichi backend, "cpu" or "gpu".
    """

    width: int = 400
    height: int = 225
    samples_per_pixel: int = 100
    max_depth: int = 50
    background: str = "gradient"
    skybox_color: tuple[float, float, float] = (0.0, 0.0, 0.0)
    seed: int | None = None
    arch: str = "gpu"

    @property
    def aspect_ratio(self) -> float:
        return self.width / self.height

    def validate(self) -> None:
        """Check the configuration.

        Raises:
            ValueError: If any setting is out of range.
        """
        if self.width <= 0 or self.height <= 0:
            raise ValueError(f"Image dimensions ({self.width}x{self.height}) must be positive")
        if self.samples_per_pixel <= 0:
            raise ValueError(f"samples_per_pixel = {self.samples_per_pixel} must be positive.")
        if self.max_depth < 0:
            raise ValueError(f"max_depth = {self.max_depth} must be non-negative.")
        if self.background not in ("gradient", "solid"):
            raise ValueError(f"Unknown background mode: {self.background!r}")
        if self.arch not in _ARCHS:
            raise ValueError(f"Unknown arch {self.arch!r}; expected one of {sorted(_ARCHS)}")


def init_taichi(config: RenderConfig) -> None:
    """Initialize the Taichi runtime for the configured backend and seed.

    Raises:
        ValueError: If the configuration is invalid.
    """
    config.validate()
    kwargs = {"arch": _ARCHS[config.arch]}
    if config.seed is not None:
        kwargs["random_seed"] = config.seed
    ti.init(**kwargs)
    logger.info("Taichi initialized (arch=%s, seed=%s)", config.arch, config.seed)


def apply_render_settings(config: RenderConfig) -> None:
    """Push depth and background settings into the integrator.

    Must be called after init_taichi().
    """
    from pathtracer.core.integrator import set_background, set_max_depth

    config.validate()
    set_max_depth(config.max_depth)
    set_background(config.background, config.skybox_color)
