"""Unit tests for the SceneManager.

Tests cover:
- Texture and material registration (Lambertian, Metal, Dielectric, Light)
- Image textures loaded from files
- Material type tracking and lookup
- Primitive addition with materials, including moving spheres
- Finalization: lights list and BVH routing
- Scene serialization (to_config, from_config, to_dict, from_dict)
- Scene clearing
- GPU-side material type dispatch
"""

import numpy as np
import pytest
import taichi as ti


class TestMaterialRegistration:
    """Tests for material registration."""

    def test_ids_are_unified_across_types(self, scene):
        from pathtracer.scene.manager import MaterialType

        ids = [
            scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3)),
            scene.add_metal_material(albedo=(0.8, 0.6, 0.2), fuzz=0.3),
            scene.add_dielectric_material(ior=1.5),
            scene.add_light_material(color=(1.0, 1.0, 1.0), luminosity=5.0),
            scene.add_lambertian_material(albedo=(0.1, 0.8, 0.1)),
        ]
        assert ids == [0, 1, 2, 3, 4]
        assert scene.get_material_count() == 5
        assert [scene.get_material_type_python(i) for i in ids] == [
            MaterialType.LAMBERTIAN,
            MaterialType.METAL,
            MaterialType.DIELECTRIC,
            MaterialType.LIGHT,
            MaterialType.LAMBERTIAN,
        ]

    def test_type_local_indices(self, scene):
        scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        scene.add_metal_material(albedo=(0.5, 0.5, 0.5))
        second_lambertian = scene.add_lambertian_material(albedo=(0.2, 0.2, 0.2))

        assert scene.get_material_info(second_lambertian).type_index == 1
        assert scene.get_material_info(1).type_index == 0

    def test_color_creates_solid_texture(self, scene):
        mat_id = scene.add_lambertian_material(albedo=(0.8, 0.3, 0.3))
        info = scene.get_material_info(mat_id)

        assert len(scene.textures) == 1
        assert info.params["texture_id"] == scene.textures[0].texture_id
        assert scene.textures[0].params == {"type": "solid", "color": [0.8, 0.3, 0.3]}

    def test_shared_texture(self, scene):
        checker = scene.add_checker_texture(0.32, (0.2, 0.3, 0.1), (0.9, 0.9, 0.9))
        a = scene.add_lambertian_material(texture_id=checker)
        b = scene.add_metal_material(texture_id=checker, fuzz=0.1)

        assert len(scene.textures) == 1
        assert scene.get_material_info(a).params["texture_id"] == checker
        assert scene.get_material_info(b).params["texture_id"] == checker

    def test_unknown_material_lookup(self, scene):
        assert scene.get_material_info(0) is None
        assert scene.get_material_type_python(-1) is None

    @pytest.mark.parametrize(
        "add",
        [
            lambda s: s.add_lambertian_material(albedo=(1.5, 0.0, 0.0)),
            lambda s: s.add_metal_material(albedo=(0.5, 0.5, 0.5), fuzz=2.0),
            lambda s: s.add_dielectric_material(ior=0.0),
            lambda s: s.add_light_material(color=(1.0, 1.0, 1.0), luminosity=-1.0),
            lambda s: s.add_lambertian_material(texture_id=7),
        ],
    )
    def test_invalid_parameters_raise(self, scene, add):
        with pytest.raises(ValueError):
            add(scene)
        assert scene.get_material_count() == 0

    def test_gpu_material_dispatch(self, scene):
        from pathtracer.scene.manager import (
            MaterialType,
            get_material_type,
            get_material_type_index,
        )

        scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        scene.add_dielectric_material(1.5)
        scene.add_dielectric_material(1.33)

        types = ti.field(dtype=ti.i32, shape=4)
        indices = ti.field(dtype=ti.i32, shape=4)

        @ti.kernel
        def test_kernel():
            for i in range(4):
                types[i] = get_material_type(i)
                indices[i] = get_material_type_index(i)

        test_kernel()
        assert types.to_numpy().tolist() == [
            int(MaterialType.LAMBERTIAN),
            int(MaterialType.DIELECTRIC),
            int(MaterialType.DIELECTRIC),
            -1,
        ]
        assert indices.to_numpy().tolist() == [0, 0, 1, -1]


class TestPrimitives:
    """Tests for adding primitives."""

    def test_add_sphere_and_quad(self, scene):
        mat = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        assert scene.add_sphere((0.0, 0.0, -1.0), 0.5, mat) == 0
        assert scene.add_quad((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), mat) == 0
        assert scene.get_sphere_count() == 1
        assert scene.get_quad_count() == 1
        assert scene.get_primitive_count() == 2

    def test_invalid_material_raises(self, scene):
        with pytest.raises(ValueError, match="material_id"):
            scene.add_sphere((0.0, 0.0, 0.0), 1.0, 0)
        with pytest.raises(ValueError, match="material_id"):
            scene.add_quad((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), 3)

    def test_degenerate_quad_raises(self, scene):
        mat = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        with pytest.raises(ValueError, match="Degenerate"):
            scene.add_quad((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (2.0, 0.0, 0.0), mat)
        assert scene.get_quad_count() == 0

    def test_moving_sphere_records_motion(self, scene):
        from pathtracer.scene.intersection import sphere_motions

        mat = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        idx = scene.add_moving_sphere((0.0, 0.0, 0.0), (0.0, 0.5, 0.0), 0.2, mat)

        assert scene.spheres[0].motion == (0.0, 0.5, 0.0)
        assert sphere_motions[idx][1] == pytest.approx(0.5)

    def test_negative_radius_recorded_as_zero(self, scene):
        mat = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, 0.0), -1.0, mat)
        assert scene.spheres[0].radius == 0.0


class TestFinalize:
    """Tests for finalize()."""

    def test_collects_lights(self, scene):
        diffuse = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        lamp = scene.add_light_material(color=(1.0, 1.0, 1.0))
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, diffuse)
        scene.add_sphere((0.0, 3.0, 0.0), 0.5, lamp)
        scene.add_quad((-1.0, 4.0, -1.0), (2.0, 0.0, 0.0), (0.0, 0.0, 2.0), lamp)
        scene.finalize()

        assert scene.get_light_count() == 2

    def test_builds_bvh(self, scene):
        from pathtracer.scene.world import is_using_bvh

        mat = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        for x in range(5):
            scene.add_sphere((float(x), 0.0, 0.0), 0.4, mat)
        stats = scene.finalize(accelerate=True, seed=1)

        assert stats is not None
        assert stats.leaf_count == 5
        assert is_using_bvh()
        info = scene.get_scene_info()
        assert info["bvh_nodes"] == stats.node_count
        assert info["spheres"] == 5

    def test_flat_when_not_accelerated(self, scene):
        from pathtracer.scene.world import is_using_bvh

        mat = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, mat)
        assert scene.finalize(accelerate=False) is None
        assert not is_using_bvh()
        assert scene.get_scene_info()["bvh_nodes"] == 0

    def test_empty_scene_stays_flat(self, scene):
        from pathtracer.scene.world import is_using_bvh

        assert scene.finalize() is None
        assert not is_using_bvh()

    @pytest.mark.parametrize("accelerate", [True, False])
    def test_adding_after_finalize_raises(self, scene, accelerate):
        mat = scene.add_light_material(color=(1.0, 1.0, 1.0))
        scene.add_sphere((10.0, 0.0, 0.0), 1.0, mat)
        scene.finalize(accelerate=accelerate, seed=0)

        with pytest.raises(RuntimeError, match="finalized"):
            scene.add_sphere((0.0, 0.0, 0.0), 1.0, mat)
        with pytest.raises(RuntimeError, match="finalized"):
            scene.add_moving_sphere((0.0, 0.0, 0.0), (0.0, 1.0, 0.0), 1.0, mat)
        with pytest.raises(RuntimeError, match="finalized"):
            scene.add_quad((0.0, 0.0, 0.0), (1.0, 0.0, 0.0), (0.0, 1.0, 0.0), mat)
        assert scene.get_primitive_count() == 1
        assert scene.get_light_count() == 1

    def test_refinalize_is_allowed(self, scene):
        mat = scene.add_lambertian_material(albedo=(0.5, 0.5, 0.5))
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, mat)
        scene.add_sphere((3.0, 0.0, 0.0), 1.0, mat)
        scene.finalize(accelerate=False)
        stats = scene.finalize(seed=0)
        assert stats.leaf_count == 2

    def test_clear_reopens_scene(self, scene):
        from pathtracer.core.integrator import trace_ray

        lamp = scene.add_light_material(color=(1.0, 1.0, 1.0), luminosity=1.0)
        scene.add_sphere((10.0, 0.0, 0.0), 1.0, lamp)
        scene.finalize(seed=0)
        scene.clear()

        lamp = scene.add_light_material(color=(1.0, 1.0, 1.0), luminosity=1.0)
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, lamp)
        scene.finalize(seed=0)
        assert trace_ray((0.0, 0.0, 5.0), (0.0, 0.0, -1.0), max_depth=1) == pytest.approx(
            (1.0, 1.0, 1.0)
        )


class TestImageTextures:
    """Tests for textures loaded from image files."""

    @pytest.fixture
    def map_path(self, tmp_path):
        from PIL import Image

        # Top two rows red, bottom two rows blue
        pixels = np.zeros((4, 2, 3), dtype=np.uint8)
        pixels[:2, :, 0] = 255
        pixels[2:, :, 2] = 255
        path = tmp_path / "map.png"
        Image.fromarray(pixels).save(path)
        return path

    def test_image_texture_recorded(self, scene, map_path):
        tex = scene.add_image_texture(map_path)

        assert scene.textures[0].texture_id == tex
        assert scene.textures[0].params == {"type": "image", "path": str(map_path)}

    def test_missing_image_raises(self, scene, tmp_path):
        with pytest.raises(OSError):
            scene.add_image_texture(tmp_path / "missing.png")
        assert scene.textures == []

    def test_textured_lamp_shows_map_by_latitude(self, scene, map_path):
        from pathtracer.core.integrator import trace_ray

        tex = scene.add_image_texture(map_path)
        lamp = scene.add_light_material(texture_id=tex, luminosity=1.0)
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, lamp)
        scene.finalize(seed=0)

        top = trace_ray((0.0, 5.0, 0.0), (0.0, -1.0, 0.0), max_depth=1)
        bottom = trace_ray((0.0, -5.0, 0.0), (0.0, 1.0, 0.0), max_depth=1)
        assert top == pytest.approx((1.0, 0.0, 0.0))
        assert bottom == pytest.approx((0.0, 0.0, 1.0))

    def test_round_trip_through_config(self, scene, map_path):
        from pathtracer.scene.manager import SceneManager

        tex = scene.add_image_texture(map_path)
        mat = scene.add_lambertian_material(texture_id=tex)
        scene.add_sphere((0.0, 1.0, 0.0), 1.0, mat)
        data = scene.to_dict()

        restored = SceneManager()
        restored.from_dict(data)
        assert restored.to_dict() == data

    def test_from_config_image_without_path_raises(self, scene):
        from pathtracer.scene.manager import SceneConfig

        with pytest.raises(ValueError, match="path"):
            scene.from_config(SceneConfig(textures=[{"type": "image"}]))


class TestClear:
    """Tests for clear()."""

    def test_clear_resets_everything(self, scene):
        from pathtracer.materials.texture import get_texture_count
        from pathtracer.scene.world import is_using_bvh

        mat = scene.add_light_material(color=(1.0, 1.0, 1.0))
        scene.add_sphere((0.0, 0.0, 0.0), 1.0, mat)
        scene.finalize()
        scene.clear()

        assert scene.get_material_count() == 0
        assert scene.get_primitive_count() == 0
        assert scene.get_light_count() == 0
        assert get_texture_count() == 0
        assert scene.textures == [] and scene.materials == []
        assert scene.bvh_stats is None
        assert not is_using_bvh()


class TestSerialization:
    """Tests for scene configuration round trips."""

    def _populate(self, scene):
        checker = scene.add_checker_texture(0.5, (0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        ground = scene.add_lambertian_material(texture_id=checker)
        metal = scene.add_metal_material(albedo=(0.8, 0.8, 0.8), fuzz=0.2)
        glass = scene.add_dielectric_material(1.5)
        lamp = scene.add_light_material(color=(1.0, 0.9, 0.8), luminosity=8.0)
        scene.add_sphere((0.0, -100.0, 0.0), 100.0, ground)
        scene.add_moving_sphere((1.0, 0.5, 0.0), (1.0, 1.0, 0.0), 0.5, metal)
        scene.add_sphere((-1.0, 0.5, 0.0), 0.5, glass)
        scene.add_quad((-1.0, 3.0, -1.0), (2.0, 0.0, 0.0), (0.0, 0.0, 2.0), lamp)

    def test_to_config(self, scene):
        self._populate(scene)
        config = scene.to_config()

        assert [t["type"] for t in config.textures] == ["checker", "solid", "solid"]
        assert [m["type"] for m in config.materials] == ["lambertian", "metal", "dielectric", "light"]
        assert config.materials[1]["fuzz"] == pytest.approx(0.2)
        assert config.materials[3]["luminosity"] == pytest.approx(8.0)
        assert config.spheres[1]["motion"] == [0.0, 0.5, 0.0]
        assert len(config.quads) == 1

    def test_round_trip_through_dict(self, scene):
        from pathtracer.scene.manager import SceneManager

        self._populate(scene)
        data = scene.to_dict()

        restored = SceneManager()
        restored.from_dict(data)

        assert restored.to_dict() == data
        assert restored.get_sphere_count() == 3
        assert restored.get_quad_count() == 1
        assert restored.get_material_count() == 4

    def test_from_config_unknown_material_raises(self, scene):
        from pathtracer.scene.manager import SceneConfig

        with pytest.raises(ValueError, match="Unknown material type"):
            scene.from_config(SceneConfig(materials=[{"type": "velvet"}]))

    def test_from_config_unknown_texture_raises(self, scene):
        from pathtracer.scene.manager import SceneConfig

        with pytest.raises(ValueError, match="Unknown texture type"):
            scene.from_config(SceneConfig(textures=[{"type": "marble"}]))

    def test_from_config_with_plain_colors(self, scene):
        from pathtracer.scene.manager import MaterialType, SceneConfig

        scene.from_config(
            SceneConfig(
                materials=[
                    {"type": "lambertian", "albedo": [0.5, 0.5, 0.5]},
                    {"type": "light", "color": [1.0, 1.0, 1.0], "luminosity": 3.0},
                ],
                spheres=[{"center": [0, 0, 0], "radius": 1.0, "material_id": 1}],
            )
        )
        assert scene.get_material_type_python(1) == MaterialType.LIGHT
        assert len(scene.textures) == 2
        assert scene.get_sphere_count() == 1


class TestCapacity:
    def test_capacity_constants(self):
        from pathtracer.scene.intersection import MAX_QUADS, MAX_SPHERES
        from pathtracer.scene.manager import MAX_MATERIALS, SceneManager

        assert SceneManager.get_max_spheres() == MAX_SPHERES
        assert SceneManager.get_max_quads() == MAX_QUADS
        assert SceneManager.get_max_materials() == MAX_MATERIALS
