#!/usr/bin/env python3
"""Render one of the preset scenes to a PNG file.

Usage:
    python examples/render_scene.py [options]

Options:
    --scene NAME        random_spheres, quads or earth (default: random_spheres)
    --image PATH        Texture map for the earth scene (default: earthmap.jpg)
    --width WIDTH       Image width in pixels (default: 400)
    --height HEIGHT     Image height in pixels (default: 225)
    --samples SAMPLES   Number of samples per pixel (default: 100)
    --max-depth DEPTH   Maximum bounces per path (default: 50)
    --seed SEED         Seed for scene layout, BVH build and sampling
    --arch ARCH         Taichi backend, cpu or gpu (default: gpu)
    --no-bvh            Traverse the flat primitive list instead of a BVH
    --output OUTPUT     Output file path (default: render.png)
    --batch-size SIZE   Samples per progress update (default: 10)
    --verbose           Log debug output

Example:
    python examples/render_scene.py --scene random_spheres --width 800 --height 450 --samples 500
"""

import argparse
import logging
import sys
import time
from pathlib import Path

from pathtracer.config import RenderConfig, apply_render_settings, init_taichi

logger = logging.getLogger("render_scene")

# Scenes that are lit only by their own lights
DARK_SCENES = {"quads"}


def parse_args() -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        description="Render a preset scene.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument("--scene", default="random_spheres", choices=["random_spheres", "quads", "earth"])
    parser.add_argument("--image", type=str, default="earthmap.jpg", help="Texture map for the earth scene")
    parser.add_argument("--width", type=int, default=400, help="Image width in pixels (default: 400)")
    parser.add_argument("--height", type=int, default=225, help="Image height in pixels (default: 225)")
    parser.add_argument("--samples", type=int, default=100, help="Samples per pixel (default: 100)")
    parser.add_argument("--max-depth", type=int, default=50, help="Maximum bounces (default: 50)")
    parser.add_argument("--seed", type=int, default=None, help="Random seed")
    parser.add_argument("--arch", default="gpu", choices=["cpu", "gpu"])
    parser.add_argument("--no-bvh", action="store_true", help="Disable BVH acceleration")
    parser.add_argument("--output", type=str, default="render.png", help="Output file path")
    parser.add_argument("--batch-size", type=int, default=10, help="Samples per progress update")
    parser.add_argument("--verbose", action="store_true", help="Log debug output")
    return parser.parse_args()


def render_scene(
    config: RenderConfig,
    scene_name: str,
    output_path: str,
    accelerate: bool = True,
    batch_size: int = 10,
    scene_options: dict | None = None,
) -> Path:
    """Render a preset scene and save it to a file.

    Args:
        config: Image size, sampling and background settings.
        scene_name: Key into pathtracer.scene.presets.SCENES.
        output_path: Output file path (PNG).
        accelerate: Build a BVH for the scene.
        batch_size: Number of samples to render between progress updates.
        scene_options: Extra keyword options for the scene factory.

    Returns:
        Path to the saved image file.
    """
    # Lazy imports so Taichi is initialized before any field is declared
    from pathtracer.camera.thin_lens import setup_camera
    from pathtracer.core.progressive import ProgressiveRenderer
    from pathtracer.scene.presets import create_scene

    apply_render_settings(config)

    scene, camera = create_scene(
        scene_name, seed=config.seed, aspect_ratio=config.aspect_ratio, **(scene_options or {})
    )
    scene.finalize(accelerate=accelerate, seed=config.seed)
    logger.info("Scene: %s", scene.get_scene_info())

    setup_camera(camera)
    renderer = ProgressiveRenderer(config.width, config.height)

    start_time = time.time()

    def progress_callback(current: int, target: int) -> None:
        elapsed = time.time() - start_time
        rate = current / elapsed if elapsed > 0 else 0.0
        logger.info("Progress: %d/%d samples (%.1f spp/s)", current, target, rate)

    renderer.render(config.samples_per_pixel, batch_size=batch_size, callback=progress_callback)

    output_file = Path(output_path)
    renderer.save_image(str(output_file))
    logger.info("Saved to %s in %.2fs", output_file.absolute(), time.time() - start_time)
    return output_file


def main() -> int:
    """Main entry point."""
    args = parse_args()
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = RenderConfig(
        width=args.width,
        height=args.height,
        samples_per_pixel=args.samples,
        max_depth=args.max_depth,
        background="solid" if args.scene in DARK_SCENES else "gradient",
        skybox_color=(0.0, 0.0, 0.0),
        seed=args.seed,
        arch=args.arch,
    )

    try:
        init_taichi(config)
        render_scene(
            config,
            args.scene,
            args.output,
            accelerate=not args.no_bvh,
            batch_size=args.batch_size,
            scene_options={"image_path": args.image} if args.scene == "earth" else None,
        )
        return 0
    except (ValueError, RuntimeError, OSError) as e:
        logger.error("Render failed: %s", e)
        return 1


if __name__ == "__main__":
    sys.exit(main())
