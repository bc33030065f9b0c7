"""Unit tests for the texture registry.

Tests cover:
- Solid and checker registration and validation
- Checker parity across cells and negative coordinates
- sample_texture dispatch inside kernels
- Image textures: decoding, texel packing and nearest-texel lookup
"""

import numpy as np
import pytest
import taichi as ti

# 2 x 3 picture; row 0 is the top edge
PIXELS = np.array(
    [
        [[255, 0, 0], [0, 255, 0], [0, 0, 255]],
        [[255, 255, 255], [0, 0, 0], [51, 102, 204]],
    ],
    dtype=np.uint8,
)


def _sample(texture_id, point, u=0.0, v=0.0):
    from pathtracer.core.ray import vec3
    from pathtracer.materials.texture import sample_texture

    result = ti.Vector.field(3, dtype=ti.f32, shape=())

    @ti.kernel
    def test_kernel(tex: ti.i32, p: ti.types.vector(3, ti.f32), su: ti.f32, sv: ti.f32):
        result[None] = sample_texture(tex, su, sv, p)

    test_kernel(texture_id, vec3(*point), u, v)
    return result[None]


class TestTextureRegistry:
    """Tests for adding and clearing textures."""

    def test_ids_are_sequential(self):
        from pathtracer.materials.texture import (
            add_checker_texture,
            add_solid_texture,
            get_texture_count,
        )

        assert add_solid_texture((0.1, 0.2, 0.3)) == 0
        assert add_checker_texture(1.0, (0.0, 0.0, 0.0), (1.0, 1.0, 1.0)) == 1
        assert get_texture_count() == 2

    def test_clear(self):
        from pathtracer.materials.texture import (
            add_solid_texture,
            clear_textures,
            get_texture_count,
        )

        add_solid_texture((0.5, 0.5, 0.5))
        clear_textures()
        assert get_texture_count() == 0
        assert add_solid_texture((0.5, 0.5, 0.5)) == 0

    @pytest.mark.parametrize("color", [(1.1, 0.0, 0.0), (0.0, -0.1, 0.0), (0.5, 0.5)])
    def test_invalid_solid_color_raises(self, color):
        from pathtracer.materials.texture import add_solid_texture

        with pytest.raises(ValueError):
            add_solid_texture(color)

    @pytest.mark.parametrize("scale", [0.0, -1.0])
    def test_non_positive_checker_scale_raises(self, scale):
        from pathtracer.materials.texture import add_checker_texture

        with pytest.raises(ValueError, match="scale"):
            add_checker_texture(scale, (0.0, 0.0, 0.0), (1.0, 1.0, 1.0))

    def test_validate_texture_id(self):
        from pathtracer.materials.texture import add_solid_texture, validate_texture_id

        tex = add_solid_texture((0.5, 0.5, 0.5))
        validate_texture_id(tex)
        with pytest.raises(ValueError):
            validate_texture_id(tex + 1)
        with pytest.raises(ValueError):
            validate_texture_id(-1)


class TestSampleTexture:
    """Tests for evaluating textures in kernels."""

    def test_solid_ignores_position(self):
        from pathtracer.materials.texture import add_solid_texture

        tex = add_solid_texture((0.2, 0.4, 0.6))
        for point in [(0.0, 0.0, 0.0), (12.5, -3.0, 7.0)]:
            c = _sample(tex, point, u=0.3, v=0.9)
            assert c[0] == pytest.approx(0.2)
            assert c[1] == pytest.approx(0.4)
            assert c[2] == pytest.approx(0.6)

    def test_checker_alternates_between_cells(self):
        from pathtracer.materials.texture import add_checker_texture

        even = (0.2, 0.3, 0.1)
        odd = (0.9, 0.9, 0.9)
        tex = add_checker_texture(1.0, even, odd)

        assert _sample(tex, (0.5, 0.5, 0.5))[0] == pytest.approx(even[0])
        assert _sample(tex, (1.5, 0.5, 0.5))[0] == pytest.approx(odd[0])
        assert _sample(tex, (1.5, 1.5, 0.5))[0] == pytest.approx(even[0])

    def test_checker_negative_coordinates(self):
        """floor(-0.5) = -1, so the cell just below the origin is odd."""
        from pathtracer.materials.texture import add_checker_texture

        tex = add_checker_texture(1.0, (0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        assert _sample(tex, (-0.5, 0.5, 0.5))[0] == pytest.approx(1.0)
        assert _sample(tex, (-0.5, -0.5, 0.5))[0] == pytest.approx(0.0)

    def test_checker_scale(self):
        from pathtracer.materials.texture import add_checker_texture

        tex = add_checker_texture(0.5, (0.0, 0.0, 0.0), (1.0, 1.0, 1.0))
        assert _sample(tex, (0.25, 0.25, 0.25))[0] == pytest.approx(0.0)
        assert _sample(tex, (0.75, 0.25, 0.25))[0] == pytest.approx(1.0)


class TestImageTexture:
    """Tests for textures backed by decoded pictures."""

    @pytest.mark.parametrize(
        "u,v,expected",
        [
            (0.0, 1.0, (1.0, 0.0, 0.0)),
            (0.5, 1.0, (0.0, 1.0, 0.0)),
            (1.0, 1.0, (0.0, 0.0, 1.0)),
            (0.0, 0.0, (1.0, 1.0, 1.0)),
            (1.0, 0.0, (0.2, 0.4, 0.8)),
            # Coordinates truncate toward the top-left texel
            (0.49, 0.6, (1.0, 0.0, 0.0)),
            (0.999, 0.001, (0.0, 1.0, 0.0)),
            (0.999, 0.0, (0.0, 0.0, 0.0)),
        ],
    )
    def test_nearest_texel(self, u, v, expected):
        from pathtracer.materials.texture import add_image_texture

        tex = add_image_texture(PIXELS)
        c = _sample(tex, (0.0, 0.0, 0.0), u=u, v=v)
        assert c.to_numpy() == pytest.approx(expected, abs=1e-6)

    def test_coordinates_are_clamped(self):
        from pathtracer.materials.texture import add_image_texture

        tex = add_image_texture(PIXELS)
        assert _sample(tex, (0.0, 0.0, 0.0), u=-3.0, v=5.0).to_numpy() == pytest.approx((1.0, 0.0, 0.0))
        assert _sample(tex, (0.0, 0.0, 0.0), u=2.0, v=-1.0).to_numpy() == pytest.approx(
            (0.2, 0.4, 0.8), abs=1e-6
        )

    def test_second_image_reads_its_own_texels(self):
        from pathtracer.materials.texture import add_image_texture, add_solid_texture

        add_image_texture(PIXELS)
        add_solid_texture((0.5, 0.5, 0.5))
        gray = np.full((4, 4, 3), 102, dtype=np.uint8)
        tex = add_image_texture(gray)

        assert tex == 2
        assert _sample(tex, (0.0, 0.0, 0.0), u=0.0, v=1.0).to_numpy() == pytest.approx(
            (0.4, 0.4, 0.4), abs=1e-6
        )

    def test_load_from_file(self, tmp_path):
        from PIL import Image

        from pathtracer.materials.texture import load_image_texture

        path = tmp_path / "map.png"
        Image.fromarray(PIXELS).save(path)
        tex = load_image_texture(path)
        assert _sample(tex, (0.0, 0.0, 0.0), u=1.0, v=0.0).to_numpy() == pytest.approx(
            (0.2, 0.4, 0.8), abs=1e-6
        )

    def test_grayscale_file_is_converted_to_rgb(self, tmp_path):
        from PIL import Image

        from pathtracer.materials.texture import load_image_texture

        path = tmp_path / "gray.png"
        Image.fromarray(np.full((2, 2), 255, dtype=np.uint8)).save(path)
        tex = load_image_texture(path)
        assert _sample(tex, (0.0, 0.0, 0.0), u=0.5, v=0.5).to_numpy() == pytest.approx((1.0, 1.0, 1.0))

    def test_missing_file_raises(self, tmp_path):
        from pathtracer.materials.texture import get_texture_count, load_image_texture

        with pytest.raises(OSError):
            load_image_texture(tmp_path / "missing.jpg")
        assert get_texture_count() == 0

    @pytest.mark.parametrize(
        "pixels",
        [
            np.zeros((2, 2, 3), dtype=np.float32),
            np.zeros((2, 2, 4), dtype=np.uint8),
            np.zeros((2, 2), dtype=np.uint8),
            np.zeros((0, 2, 3), dtype=np.uint8),
        ],
    )
    def test_invalid_pixels_raise(self, pixels):
        from pathtracer.materials.texture import add_image_texture

        with pytest.raises(ValueError):
            add_image_texture(pixels)

    def test_texel_pool_exhausted(self, monkeypatch):
        import pathtracer.materials.texture as texture

        monkeypatch.setattr(texture, "MAX_IMAGE_TEXELS", 8)
        texture.add_image_texture(PIXELS)
        with pytest.raises(RuntimeError, match="texels"):
            texture.add_image_texture(PIXELS)
        assert texture.get_texture_count() == 1

    def test_clear_releases_texels(self):
        from pathtracer.materials.texture import (
            add_image_texture,
            clear_textures,
            num_image_texels,
        )

        add_image_texture(PIXELS)
        assert num_image_texels[None] == 6
        clear_textures()
        assert num_image_texels[None] == 0
