import numpy as np
import pytest
from rawview.domain.models import CurvePoint, ToneCurve
from rawview.features.curves.logic import (
    LUT_BLUE,
    LUT_GREEN,
    LUT_RED,
    LUT_RGB,
    CurveLutCache,
    build_curve_lut,
    build_curve_luts,
    interpolate_curve,
)

IDENTITY = np.arange(256, dtype=np.uint8)


def eased_lut():
    # Two-point default curve still eases between its points: y = 3x^2 - 2x^3
    x = np.arange(256, dtype=np.float64) / 255.0
    return np.floor(x * x * (3.0 - 2.0 * x) * 255.0 + 0.5).astype(np.uint8)


def test_default_curve_builds_eased_lut():
    lut = build_curve_lut([CurvePoint(0, 0), CurvePoint(1, 1)])
    assert lut.dtype == np.uint8
    assert np.array_equal(lut, eased_lut())
    assert lut[0] == 0 and lut[255] == 255
    assert lut[64] < 64 and lut[192] > 192


@pytest.mark.parametrize("points", [[], [CurvePoint(0.3, 0.9)]])
def test_fewer_than_two_points_is_identity(points):
    assert np.array_equal(build_curve_lut(points), IDENTITY)


def test_smoothstep_between_points():
    points = [CurvePoint(0, 0), CurvePoint(1, 1)]
    # t = 0.25 -> 0.25^2 * (3 - 0.5)
    assert interpolate_curve(points, 0.25) == pytest.approx(0.15625)
    assert interpolate_curve(points, 0.5) == pytest.approx(0.5)


def test_outside_control_range_holds_end_values():
    points = [CurvePoint(0.2, 0.3), CurvePoint(0.8, 0.6)]
    assert interpolate_curve(points, 0.0) == 0.3
    assert interpolate_curve(points, 0.1) == 0.3
    assert interpolate_curve(points, 0.95) == 0.6


def test_lut_output_is_clamped():
    lut = build_curve_lut([CurvePoint(0, -0.5), CurvePoint(1, 1.5)])
    assert lut[0] == 0
    assert lut[255] == 255


def test_duplicate_x_does_not_raise():
    points = [CurvePoint(0, 0), CurvePoint(0.5, 0.2), CurvePoint(0.5, 0.8), CurvePoint(1, 1)]
    lut = build_curve_lut(points)
    assert lut.shape == (256,)


def test_inverted_curve():
    lut = build_curve_lut([CurvePoint(0, 1), CurvePoint(1, 0)])
    assert lut[0] == 255
    assert lut[255] == 0
    assert lut[128] < 128


def test_build_curve_luts_row_order():
    curve = ToneCurve(red=[(0, 1), (1, 1)], blue=[(0, 0), (1, 0)])
    luts = build_curve_luts(curve)
    assert luts.shape == (4, 256)
    assert np.all(luts[LUT_RED] == 255)
    assert np.array_equal(luts[LUT_GREEN], eased_lut())
    assert np.all(luts[LUT_BLUE] == 0)
    assert np.array_equal(luts[LUT_RGB], eased_lut())


def test_tone_curve_accepts_point_dicts():
    curve = ToneCurve.from_dict({"rgb": [{"x": 0, "y": 0.1}, {"x": 1, "y": 0.9}]})
    assert curve.rgb == (CurvePoint(0.0, 0.1), CurvePoint(1.0, 0.9))
    assert curve.red == (CurvePoint(0.0, 0.0), CurvePoint(1.0, 1.0))


class TestCurveLutCache:
    def test_reuses_luts_for_equal_curves(self):
        cache = CurveLutCache()
        first = cache.get(ToneCurve())
        second = cache.get(ToneCurve())
        assert first is second

    def test_rebuilds_on_change_without_touching_old_array(self):
        cache = CurveLutCache()
        first = cache.get(ToneCurve())
        snapshot = first.copy()
        second = cache.get(ToneCurve(rgb=[(0, 0.2), (1, 0.8)]))
        assert second is not first
        assert np.array_equal(first, snapshot)
        assert second[LUT_RGB, 0] == 51

    def test_cached_luts_are_read_only(self):
        luts = CurveLutCache().get(ToneCurve())
        with pytest.raises(ValueError):
            luts[0, 0] = 1
