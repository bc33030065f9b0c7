"""Unit tests for the thin-lens camera module.

Tests cover:
- Camera setup and orthonormal basis computation
- Viewport placement on the focus plane
- Ray generation for center and corner coordinates
- Defocus disk sampling
- Motion blur ray times
- Jittered sampling within a pixel
- Configuration validation
"""

import math

import numpy as np
import pytest
import taichi as ti


def _rays(s, t, n=1):
    """Generate n rays through (s, t); returns (origins, directions, times)."""
    from pathtracer.camera.thin_lens import get_ray

    origins = ti.Vector.field(3, dtype=ti.f32, shape=n)
    directions = ti.Vector.field(3, dtype=ti.f32, shape=n)
    times = ti.field(dtype=ti.f32, shape=n)

    @ti.kernel
    def test_kernel(ss: ti.f32, tt: ti.f32):
        for i in range(n):
            ray = get_ray(ss, tt)
            origins[i] = ray.origin
            directions[i] = ray.direction
            times[i] = ray.time

    test_kernel(s, t)
    return origins.to_numpy(), directions.to_numpy(), times.to_numpy()


class TestCameraSetup:
    """Tests for camera setup and basis computation."""

    def test_orthonormal_basis(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, get_camera_info, setup_camera

        setup_camera(
            ThinLensCamera(
                lookfrom=(13.0, 2.0, 3.0),
                lookat=(0.0, 0.0, 0.0),
                vfov=20.0,
                focus_distance=10.0,
            )
        )
        info = get_camera_info()
        u, v, w = (np.array(info[k]) for k in ("u", "v", "w"))

        for a, b in [(u, v), (u, w), (v, w)]:
            assert abs(np.dot(a, b)) < 1e-6
        for a in (u, v, w):
            assert np.linalg.norm(a) == pytest.approx(1.0, abs=1e-6)

    def test_basis_looking_down_negative_z(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, get_camera_info, setup_camera

        setup_camera(ThinLensCamera(lookfrom=(0.0, 0.0, 0.0), lookat=(0.0, 0.0, -1.0)))
        info = get_camera_info()

        np.testing.assert_allclose(info["w"], (0.0, 0.0, 1.0), atol=1e-6)
        np.testing.assert_allclose(info["u"], (1.0, 0.0, 0.0), atol=1e-6)
        np.testing.assert_allclose(info["v"], (0.0, 1.0, 0.0), atol=1e-6)

    def test_viewport_on_focus_plane(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, get_camera_info, setup_camera

        setup_camera(
            ThinLensCamera(
                lookfrom=(0.0, 0.0, 0.0),
                lookat=(0.0, 0.0, -1.0),
                vfov=90.0,
                aspect_ratio=2.0,
                focus_distance=4.0,
            )
        )
        info = get_camera_info()

        # tan(45) = 1, so the viewport is 8 high and 16 wide at distance 4
        np.testing.assert_allclose(info["vertical"], (0.0, 8.0, 0.0), atol=1e-5)
        np.testing.assert_allclose(info["horizontal"], (16.0, 0.0, 0.0), atol=1e-5)
        np.testing.assert_allclose(info["lower_left"], (-8.0, -4.0, -4.0), atol=1e-5)

    def test_pinhole_has_zero_disk(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, get_camera_info, setup_camera

        setup_camera(ThinLensCamera(defocus_angle=0.0))
        info = get_camera_info()
        np.testing.assert_allclose(info["defocus_disk_u"], (0.0, 0.0, 0.0))
        np.testing.assert_allclose(info["defocus_disk_v"], (0.0, 0.0, 0.0))


class TestRayGeneration:
    """Tests for get_ray."""

    def test_center_ray_points_at_lookat(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera

        setup_camera(
            ThinLensCamera(
                lookfrom=(0.0, 0.0, 5.0),
                lookat=(0.0, 0.0, 0.0),
                vfov=90.0,
                aspect_ratio=1.0,
                focus_distance=5.0,
            )
        )
        origins, directions, times = _rays(0.5, 0.5)

        np.testing.assert_allclose(origins[0], (0.0, 0.0, 5.0), atol=1e-6)
        unit = directions[0] / np.linalg.norm(directions[0])
        np.testing.assert_allclose(unit, (0.0, 0.0, -1.0), atol=1e-6)
        assert times[0] == 0.0

    def test_corner_rays(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera

        setup_camera(
            ThinLensCamera(
                lookfrom=(0.0, 0.0, 0.0),
                lookat=(0.0, 0.0, -1.0),
                vfov=90.0,
                aspect_ratio=1.0,
                focus_distance=1.0,
            )
        )
        _, lower_left, _ = _rays(0.0, 0.0)
        _, upper_right, _ = _rays(1.0, 1.0)

        np.testing.assert_allclose(lower_left[0], (-1.0, -1.0, -1.0), atol=1e-5)
        np.testing.assert_allclose(upper_right[0], (1.0, 1.0, -1.0), atol=1e-5)

    def test_defocus_origins_lie_on_lens_disk(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera

        focus_distance = 10.0
        defocus_angle = 10.0
        setup_camera(
            ThinLensCamera(
                lookfrom=(0.0, 0.0, 0.0),
                lookat=(0.0, 0.0, -1.0),
                focus_distance=focus_distance,
                defocus_angle=defocus_angle,
            )
        )
        origins, directions, _ = _rays(0.3, 0.7, n=256)

        radius = focus_distance * math.tan(math.radians(defocus_angle / 2.0))
        assert (np.abs(origins[:, 2]) < 1e-6).all()
        assert (np.linalg.norm(origins[:, :2], axis=1) <= radius + 1e-5).all()
        assert np.ptp(origins[:, 0]) > 0.0

        # Every ray passes through the same point on the focus plane
        targets = origins + directions
        np.testing.assert_allclose(targets, np.tile(targets[0], (256, 1)), atol=1e-4)
        assert targets[0, 2] == pytest.approx(-focus_distance, abs=1e-4)

    def test_motion_blur_times(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera

        setup_camera(ThinLensCamera(motion_blur=True))
        _, _, times = _rays(0.5, 0.5, n=512)

        assert (times >= 0.0).all() and (times < 1.0).all()
        assert times.std() > 0.2

    def test_jittered_ray_stays_inside_pixel(self):
        from pathtracer.camera.thin_lens import ThinLensCamera, get_ray_jittered, setup_camera

        setup_camera(
            ThinLensCamera(
                lookfrom=(0.0, 0.0, 0.0),
                lookat=(0.0, 0.0, -1.0),
                vfov=90.0,
                aspect_ratio=1.0,
                focus_distance=1.0,
            )
        )
        n = 256
        directions = ti.Vector.field(3, dtype=ti.f32, shape=n)

        @ti.kernel
        def test_kernel():
            for i in range(n):
                directions[i] = get_ray_jittered(2, 5, 10, 10).direction

        test_kernel()
        d = directions.to_numpy()
        # Viewport spans [-1, 1]; pixel (2, 5) covers x in [-0.6, -0.4], y in [0, 0.2]
        assert (d[:, 0] >= -0.6 - 1e-5).all() and (d[:, 0] <= -0.4 + 1e-5).all()
        assert (d[:, 1] >= -1e-5).all() and (d[:, 1] <= 0.2 + 1e-5).all()
        assert np.ptp(d[:, 0]) > 0.0


class TestCameraValidation:
    """Invalid configurations are rejected by setup_camera."""

    @pytest.mark.parametrize(
        "kwargs",
        [
            {"vfov": 0.0},
            {"vfov": 180.0},
            {"aspect_ratio": 0.0},
            {"focus_distance": 0.0},
            {"defocus_angle": -1.0},
            {"lookfrom": (0.0, 0.0, 0.0), "lookat": (0.0, 0.0, 0.0)},
            {"lookfrom": (0.0, 0.0, 0.0), "lookat": (0.0, 1.0, 0.0)},
        ],
    )
    def test_invalid_configuration_raises(self, kwargs):
        from pathtracer.camera.thin_lens import ThinLensCamera, setup_camera

        with pytest.raises(ValueError):
            setup_camera(ThinLensCamera(**kwargs))
