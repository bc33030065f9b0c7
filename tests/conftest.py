"""Pytest configuration for path tracer tests.

This module provides shared fixtures for all test modules, including
Taichi initialization which must happen once per session.

Modules that declare Taichi fields are imported inside tests and fixtures,
after the session fixture has called ti.init().
"""

import pytest
import taichi as ti


@pytest.fixture(scope="session", autouse=True)
def init_taichi_session():
    """Initialize Taichi once for the entire test session.

    Using session scope prevents multiple ti.init() calls which can cause
    segmentation faults due to Taichi runtime conflicts.
    """
    ti.init(arch=ti.cpu, random_seed=42)
    yield


@pytest.fixture(autouse=True)
def clear_all_scene_data():
    """Reset every registry and render setting around each test."""
    from pathtracer.core.integrator import (
        MAX_DEPTH,
        clear_render_target,
        set_background,
        set_max_depth,
    )
    from pathtracer.materials.dielectric import clear_dielectric_materials
    from pathtracer.materials.lambertian import clear_lambertian_materials
    from pathtracer.materials.light import clear_light_materials
    from pathtracer.materials.metal import clear_metal_materials
    from pathtracer.materials.texture import clear_textures
    from pathtracer.scene.bvh import clear_bvh
    from pathtracer.scene.intersection import clear_scene
    from pathtracer.scene.manager import _clear_material_tracking
    from pathtracer.scene.world import set_use_bvh

    def _clear_all():
        clear_scene()
        clear_bvh()
        set_use_bvh(False)
        clear_textures()
        clear_lambertian_materials()
        clear_metal_materials()
        clear_dielectric_materials()
        clear_light_materials()
        _clear_material_tracking()
        clear_render_target()
        set_max_depth(MAX_DEPTH)
        set_background()

    _clear_all()
    yield
    _clear_all()


@pytest.fixture
def scene():
    """A fresh SceneManager."""
    from pathtracer.scene.manager import SceneManager

    return SceneManager()
