"""Unit tests for Interval and the in-kernel window test."""

import math

import pytest
import taichi as ti


class TestInterval:
    """Tests for the host-side Interval value type."""

    def test_empty_is_inverted(self):
        from pathtracer.core.interval import Interval

        empty = Interval.empty()
        assert empty.start > empty.end

    def test_expand_splits_padding(self):
        from pathtracer.core.interval import Interval

        grown = Interval(1.0, 2.0).expand(0.5)
        assert grown.start == pytest.approx(0.75)
        assert grown.end == pytest.approx(2.25)
        assert grown.size() == pytest.approx(1.5)

    def test_enclosing_with_empty_is_identity(self):
        from pathtracer.core.interval import Interval

        a = Interval(-1.0, 3.0)
        assert Interval.enclosing(a, Interval.empty()) == a
        assert Interval.enclosing(Interval.empty(), a) == a

    def test_enclosing_covers_both(self):
        from pathtracer.core.interval import Interval

        result = Interval.enclosing(Interval(0.0, 1.0), Interval(5.0, 6.0))
        assert result == Interval(0.0, 6.0)

    def test_empty_size_is_negative(self):
        from pathtracer.core.interval import Interval

        assert Interval.empty().size() == -math.inf


class TestIntervalContainsKernel:
    """Tests for interval_contains inside kernels."""

    @pytest.mark.parametrize(
        "x,expected",
        [(0.001, 1), (0.0005, 0), (2.0, 1), (10.0, 0)],
    )
    def test_half_open_window(self, x, expected):
        from pathtracer.core.interval import interval_contains

        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(value: ti.f32):
            result[None] = interval_contains(0.001, 10.0, value)

        test_kernel(x)
        assert result[None] == expected

    def test_infinite_upper_bound(self):
        from pathtracer.core.interval import interval_contains

        result = ti.field(dtype=ti.i32, shape=())

        @ti.kernel
        def test_kernel(upper: ti.f32):
            result[None] = interval_contains(0.001, upper, 1e30)

        test_kernel(math.inf)
        assert result[None] == 1
