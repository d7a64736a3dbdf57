"""Tests for dicomview/windowing.py."""

import math

import numpy as np
import pytest

from dicomview.errors import UnsupportedPhotometricInterpretation
from dicomview.windowing import (
    MIN_AUTO_WIDTH,
    WindowParameters,
    apply_window,
    resolve_window,
    sample_range,
    to_uint8,
)


class TestWindowParameters:
    def test_bounds(self):
        assert WindowParameters(center=40, width=80).bounds == (0.0, 80.0)

    def test_zero_width_is_unresolved(self):
        assert not WindowParameters(center=40, width=0).is_resolved

    def test_unresolved_bounds_raise(self):
        with pytest.raises(ValueError):
            WindowParameters(center=40).bounds

    @pytest.mark.parametrize("value", [math.inf, -math.inf, math.nan])
    def test_non_finite_rejected(self, value):
        with pytest.raises(ValueError, match="finite"):
            WindowParameters(center=value, width=1)
        with pytest.raises(ValueError, match="finite"):
            WindowParameters(center=1, width=value)

    def test_with_center_returns_new_instance(self):
        original = WindowParameters(center=40, width=80)
        changed = original.with_center(100)
        assert original.center == 40
        assert changed == WindowParameters(center=100, width=80)


class TestSampleRange:
    def test_min_max(self):
        assert sample_range(np.array([5, -3, 12, 0], dtype=np.int16)) == (-3.0, 12.0)

    def test_empty(self):
        assert sample_range(np.array([], dtype=np.uint16)) == (0.0, 0.0)

    def test_large_buffer(self):
        samples = np.arange(1_000_000, dtype=np.int64) % 4096
        assert sample_range(samples) == (0.0, 4095.0)


class TestResolveWindow:
    def test_fully_automatic(self):
        window = resolve_window(np.array([100, 300], dtype=np.uint16))
        assert window == WindowParameters(center=200.0, width=200.0)

    def test_explicit_window_untouched(self):
        window = WindowParameters(center=40, width=400)
        assert resolve_window(np.array([0, 4095]), window) is window

    def test_only_center_set(self):
        window = resolve_window(np.array([0, 1000]), WindowParameters(center=40))
        assert window == WindowParameters(center=40, width=1000.0)

    def test_zero_width_treated_as_unset(self):
        window = resolve_window(np.array([0, 1000]), WindowParameters(center=40, width=0))
        assert window.width == 1000.0

    def test_constant_image_forces_minimum_width(self):
        window = resolve_window(np.array([10, 10, 10, 10], dtype=np.uint16))
        assert window.center == 10.0
        assert window.width == MIN_AUTO_WIDTH


class TestApplyWindow:
    def test_window_edges_monochrome2(self):
        out = apply_window(np.array([0, 80], dtype=np.uint16), WindowParameters(center=40, width=80))
        np.testing.assert_array_equal(out, [0.0, 255.0])

    def test_window_edges_monochrome1_inverted(self):
        out = apply_window(
            np.array([0, 80], dtype=np.uint16),
            WindowParameters(center=40, width=80),
            "MONOCHROME1",
        )
        np.testing.assert_array_equal(out, [255.0, 0.0])

    def test_center_maps_to_half(self):
        out = apply_window(np.array([40]), WindowParameters(center=40, width=80))
        assert out[0] == pytest.approx(127.5)

    def test_saturates_outside_window(self):
        samples = np.array([0, 65535], dtype=np.uint16)
        out = apply_window(samples, WindowParameters(center=1000, width=100))
        np.testing.assert_array_equal(out, [0.0, 255.0])

    def test_signed_samples(self):
        samples = np.array([-32768, -1000, 0, 32767], dtype=np.int16)
        out = apply_window(samples, WindowParameters(center=-500, width=1000))
        np.testing.assert_array_equal(out, [0.0, 0.0, 255.0, 255.0])

    def test_output_in_range(self):
        samples = np.linspace(-5000, 5000, 1001)
        out = apply_window(samples, WindowParameters(center=40, width=80))
        assert out.min() >= 0.0
        assert out.max() <= 255.0

    def test_constant_image_is_mid_gray(self):
        out = to_uint8(apply_window(np.array([10, 10, 10, 10], dtype=np.uint16)))
        assert set(out.tolist()) <= {127, 128}

    def test_deterministic(self):
        samples = np.arange(0, 4096, 7, dtype=np.uint16)
        window = WindowParameters(center=1500, width=900)
        np.testing.assert_array_equal(apply_window(samples, window), apply_window(samples, window))

    def test_rgb_rejected(self):
        with pytest.raises(UnsupportedPhotometricInterpretation):
            apply_window(np.array([1, 2]), WindowParameters(center=1, width=1), "RGB")

    def test_unknown_interpretation_rejected(self):
        with pytest.raises(UnsupportedPhotometricInterpretation):
            apply_window(np.array([1, 2]), None, "YBR_FULL")


class TestToUint8:
    def test_rounds_to_nearest(self):
        out = to_uint8(np.array([0.0, 0.4, 0.6, 254.6, 255.0]))
        np.testing.assert_array_equal(out, [0, 0, 1, 255, 255])
        assert out.dtype == np.uint8
