"""Ready-made scenes.

Each factory fills a SceneManager and returns it together with a matching
ThinLensCamera. The scene is not finalized, so callers may still add
primitives or choose between BVH and flat traversal.

Available scenes:
- random_spheres: a checkered ground plane covered in small random spheres
  around three large ones (glass, diffuse and a small light)
- quads: five colored quads facing the camera, lit by an emissive quad
  against a dark skybox
- earth: a single globe wrapped in an equirectangular image texture

Example:
    >>> from pathtracer.scene.presets import create_scene
    >>> scene, camera = create_scene("random_spheres", seed=7)
    >>> scene.finalize()
"""

import logging
import math
from collections.abc import Callable
from os import PathLike
from typing import Any

import numpy as np

from pathtracer.camera.thin_lens import ThinLensCamera
from pathtracer.scene.manager import SceneManager

logger = logging.getLogger(__name__)

# =============================================================================
# Random Spheres Parameters
# =============================================================================

GROUND_RADIUS = 1000.0
GROUND_CHECKER_SCALE = 0.32
GROUND_EVEN = (0.2, 0.3, 0.1)
GROUND_ODD = (0.9, 0.9, 0.9)

# Small spheres sit on a 22 x 22 grid with up to 0.9 of jitter per cell
GRID_EXTENT = 11
SMALL_RADIUS = 0.2

# Probability thresholds for diffuse / metal; the rest is glass
DIFFUSE_CHANCE = 0.8
METAL_CHANCE = 0.95
MAX_SMALL_FUZZ = 0.5

GLASS_IOR = 1.5
BIG_DIFFUSE_ALBEDO = (0.4, 0.2, 0.1)
BIG_LIGHT_COLOR = (0.7, 0.6, 0.5)

# Small spheres too close to this point would overlap the big light sphere
CLEAR_POINT = (4.0, 0.2, 0.0)
CLEAR_DISTANCE = 0.9


def create_random_spheres_scene(
    scene: SceneManager | None = None,
    seed: int | None = None,
    aspect_ratio: float = 16.0 / 9.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create the random spheres scene.

    Args:
        scene: Manager to fill. A new one is created when None; a given one
            is cleared first.
        seed: Seed for sphere placement and material choice.
        aspect_ratio: Aspect ratio of the returned camera.

    Returns:
        A tuple of (scene, camera).
    """
    if scene is None:
        scene = SceneManager()
    else:
        scene.clear()
    rng = np.random.default_rng(seed)

    checker = scene.add_checker_texture(GROUND_CHECKER_SCALE, GROUND_EVEN, GROUND_ODD)
    ground = scene.add_lambertian_material(texture_id=checker)
    scene.add_sphere((0.0, -GROUND_RADIUS, 0.0), GROUND_RADIUS, ground)

    glass = scene.add_dielectric_material(GLASS_IOR)
    clear_point = np.array(CLEAR_POINT)

    for a in range(-GRID_EXTENT, GRID_EXTENT):
        for b in range(-GRID_EXTENT, GRID_EXTENT):
            choice = rng.random()
            center = np.array([a + 0.9 * rng.random(), SMALL_RADIUS, b + 0.9 * rng.random()])

            if np.linalg.norm(center - clear_point) <= CLEAR_DISTANCE:
                continue

            if choice < DIFFUSE_CHANCE:
                albedo = tuple(rng.random(3).tolist())
                material = scene.add_lambertian_material(albedo=albedo)
            elif choice < METAL_CHANCE:
                albedo = tuple(rng.random(3).tolist())
                fuzz = float(rng.uniform(0.0, MAX_SMALL_FUZZ))
                material = scene.add_metal_material(albedo=albedo, fuzz=fuzz)
            else:
                material = glass

            scene.add_sphere(tuple(center.tolist()), SMALL_RADIUS, material)

    scene.add_sphere((0.0, 1.0, 0.0), 1.0, glass)
    scene.add_sphere((-4.0, 1.0, 0.0), 1.0, scene.add_lambertian_material(albedo=BIG_DIFFUSE_ALBEDO))
    scene.add_sphere((4.0, 1.0, 0.0), 0.1, scene.add_light_material(color=BIG_LIGHT_COLOR))

    camera = ThinLensCamera(
        lookfrom=(13.0, 2.0, 3.0),
        lookat=(0.0, 0.0, 0.0),
        vfov=20.0,
        aspect_ratio=aspect_ratio,
        focus_distance=10.0,
        defocus_angle=0.6,
    )
    logger.debug("Built random spheres scene with %d spheres", scene.get_sphere_count())
    return scene, camera


def create_quads_scene(
    scene: SceneManager | None = None,
    seed: int | None = None,
    aspect_ratio: float = 1.0,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create five colored quads lit by an overhead area light.

    The quads form an open box facing the camera. The scene is meant to be
    rendered against a dark skybox so that all light comes from the lamp.

    Args:
        scene: Manager to fill. A new one is created when None; a given one
            is cleared first.
        seed: Unused; accepted so all factories share a signature.
        aspect_ratio: Aspect ratio of the returned camera.

    Returns:
        A tuple of (scene, camera).
    """
    if scene is None:
        scene = SceneManager()
    else:
        scene.clear()

    left_red = scene.add_lambertian_material(albedo=(1.0, 0.2, 0.2))
    back_green = scene.add_lambertian_material(albedo=(0.2, 1.0, 0.2))
    right_blue = scene.add_lambertian_material(albedo=(0.2, 0.2, 1.0))
    upper_orange = scene.add_lambertian_material(albedo=(1.0, 0.5, 0.0))
    lower_teal = scene.add_lambertian_material(albedo=(0.2, 0.8, 0.8))
    lamp = scene.add_light_material(color=(1.0, 1.0, 1.0), luminosity=4.0)

    scene.add_quad((-3.0, -2.0, 5.0), (0.0, 0.0, -4.0), (0.0, 4.0, 0.0), left_red)
    scene.add_quad((-2.0, -2.0, 0.0), (4.0, 0.0, 0.0), (0.0, 4.0, 0.0), back_green)
    scene.add_quad((3.0, -2.0, 1.0), (0.0, 0.0, 4.0), (0.0, 4.0, 0.0), right_blue)
    scene.add_quad((-2.0, 3.0, 1.0), (4.0, 0.0, 0.0), (0.0, 0.0, 4.0), upper_orange)
    scene.add_quad((-2.0, -3.0, 5.0), (4.0, 0.0, 0.0), (0.0, 0.0, -4.0), lower_teal)
    scene.add_quad((-1.0, 2.9, 2.0), (2.0, 0.0, 0.0), (0.0, 0.0, 2.0), lamp)

    camera = ThinLensCamera(
        lookfrom=(0.0, 0.0, 9.0),
        lookat=(0.0, 0.0, 0.0),
        vfov=80.0,
        aspect_ratio=aspect_ratio,
        focus_distance=9.0,
    )
    return scene, camera


EARTH_IMAGE = "earthmap.jpg"


def create_earth_scene(
    scene: SceneManager | None = None,
    seed: int | None = None,
    aspect_ratio: float = 16.0 / 9.0,
    image_path: str | PathLike = EARTH_IMAGE,
) -> tuple[SceneManager, ThinLensCamera]:
    """Create a unit globe textured with an equirectangular map.

    Args:
        scene: Manager to fill. A new one is created when None; a given one
            is cleared first.
        seed: Unused; accepted so all factories share a signature.
        aspect_ratio: Aspect ratio of the returned camera.
        image_path: Map wrapped around the globe, longitude along the width.

    Returns:
        A tuple of (scene, camera).

    Raises:
        OSError: If the image cannot be read.
    """
    if scene is None:
        scene = SceneManager()
    else:
        scene.clear()

    earth = scene.add_image_texture(image_path)
    surface = scene.add_lambertian_material(texture_id=earth)
    scene.add_sphere((0.0, 1.0, 0.0), 1.0, surface)

    lookfrom = (3.0, 2.0, -1.0)
    lookat = (0.0, 1.0, 0.0)
    camera = ThinLensCamera(
        lookfrom=lookfrom,
        lookat=lookat,
        vfov=45.0,
        aspect_ratio=aspect_ratio,
        focus_distance=math.dist(lookfrom, lookat),
    )
    return scene, camera


SceneFactory = Callable[..., tuple[SceneManager, ThinLensCamera]]

SCENES: dict[str, SceneFactory] = {
    "random_spheres": create_random_spheres_scene,
    "quads": create_quads_scene,
    "earth": create_earth_scene,
}


def create_scene(
    name: str,
    scene: SceneManager | None = None,
    seed: int | None = None,
    aspect_ratio: float = 16.0 / 9.0,
    **options: Any,
) -> tuple[SceneManager, ThinLensCamera]:
    """Build a named scene.

    Extra keyword options go to the factory, such as image_path for earth.

    Raises:
        ValueError: If name is not one of SCENES.
    """
    try:
        factory = SCENES[name]
    except KeyError:
        raise ValueError(f"Unknown scene {name!r}; expected one of {sorted(SCENES)}") from None
    return factory(scene=scene, seed=seed, aspect_ratio=aspect_ratio, **options)
