import dataclasses
import math
import numpy as np
import pytest
from rawview.domain.models import AdjustmentParams, RenderBackend, ToneCurve
from rawview.features.adjust import kernels
from rawview.features.adjust.logic import (
    adjust_rgb,
    apply_adjustments,
    identity_grid,
    pack_uniforms,
    run_pipeline,
)
from rawview.features.curves.logic import build_curve_luts


@pytest.fixture
def random_rgba():
    rng = np.random.default_rng(7)
    rgba = rng.integers(0, 256, size=(24, 32, 4), dtype=np.uint8)
    rgba[..., 3] = 255
    return rgba


@pytest.fixture
def busy_params():
    return AdjustmentParams(
        exposure=0.4,
        temperature=25,
        tint=-10,
        contrast=30,
        highlights=-40,
        shadows=35,
        whites=12,
        blacks=-8,
        saturation=20,
        vibrance=15,
    )


def test_pack_uniforms_scaling():
    u = pack_uniforms(AdjustmentParams(exposure=1.0, temperature=50, tint=100, saturation=-100))
    assert u[kernels.U_EXPOSURE_MUL] == pytest.approx(2.0)
    assert u[kernels.U_TEMPERATURE] == pytest.approx(0.15)
    assert u[kernels.U_TINT] == pytest.approx(0.2)
    assert u[kernels.U_SATURATION] == pytest.approx(0.0)


def test_default_params_apply_gamma_and_default_curve():
    # sRGB encode of 128/255 lands on index 188, the eased channel LUT maps
    # that to 211 and the eased composite LUT to 235
    rgba = np.full((2, 2, 4), 128, dtype=np.uint8)
    res = apply_adjustments(rgba, AdjustmentParams())
    r, g, b = adjust_rgb((128 / 255.0,) * 3, AdjustmentParams())
    assert r == pytest.approx(235 / 255.0)
    assert g == pytest.approx(235 / 255.0)
    assert np.all(res[..., :3] == 235)
    assert np.all(res[..., 3] == 255)


def test_black_and_white_survive_defaults():
    assert adjust_rgb((0.0, 0.0, 0.0), AdjustmentParams()) == (0.0, 0.0, 0.0)
    assert adjust_rgb((1.0, 1.0, 1.0), AdjustmentParams()) == pytest.approx((1.0, 1.0, 1.0))


def test_exposure_brightens():
    base = adjust_rgb((0.2, 0.2, 0.2), AdjustmentParams())
    brighter = adjust_rgb((0.2, 0.2, 0.2), AdjustmentParams(exposure=1.0))
    assert brighter[0] > base[0]


def test_temperature_warms():
    r, g, b = adjust_rgb((0.4, 0.4, 0.4), AdjustmentParams(temperature=80))
    assert r > g > b


def test_tint_scales_green():
    r, g, b = adjust_rgb((0.4, 0.4, 0.4), AdjustmentParams(tint=50))
    assert g > r
    assert r == pytest.approx(b)


def test_saturation_minus_100_is_grey():
    r, g, b = adjust_rgb((0.6, 0.3, 0.1), AdjustmentParams(saturation=-100))
    assert r == pytest.approx(g) and g == pytest.approx(b)


def test_small_stage_values_are_skipped():
    rgb = (0.3, 0.5, 0.7)
    assert adjust_rgb(rgb, AdjustmentParams(contrast=0.4, shadows=0.3)) == adjust_rgb(
        rgb, AdjustmentParams()
    )


def test_output_is_clamped():
    hot = adjust_rgb((0.9, 0.9, 0.9), AdjustmentParams(exposure=5, whites=100))
    assert all(0.0 <= c <= 1.0 for c in hot)


def test_tone_curve_applied_after_tonal_stages():
    luts = build_curve_luts(ToneCurve(rgb=[(0, 1), (1, 0)]))
    r, _, _ = adjust_rgb((0.0, 0.0, 0.0), AdjustmentParams(), luts)
    assert r == 1.0


def test_pipeline_is_deterministic(random_rgba, busy_params):
    luts = build_curve_luts(ToneCurve(rgb=[(0, 0), (0.4, 0.5), (1, 1)]))
    a = apply_adjustments(random_rgba, busy_params, luts)
    b = apply_adjustments(random_rgba, busy_params, luts)
    assert np.array_equal(a, b)


def test_parallel_matches_scalar(random_rgba, busy_params):
    luts = build_curve_luts(
        ToneCurve(rgb=[(0, 0.05), (0.5, 0.55), (1, 0.95)], red=[(0, 0), (0.7, 0.6), (1, 1)])
    )
    par = apply_adjustments(random_rgba, busy_params, luts, RenderBackend.PARALLEL)
    seq = apply_adjustments(random_rgba, busy_params, luts, RenderBackend.SCALAR)
    assert par.dtype == np.uint8
    assert np.array_equal(par, seq)


def test_pipeline_does_not_mutate_source(random_rgba, busy_params):
    before = random_rgba.copy()
    apply_adjustments(random_rgba, busy_params)
    assert np.array_equal(random_rgba, before)


def test_outside_samples_render_opaque_black(random_rgba):
    xs, ys = identity_grid(4, 2)
    xs = xs.copy()
    ys = ys.copy()
    xs[0, 0] = -1
    ys[0, 0] = -1
    out = run_pipeline(
        random_rgba, xs, ys, AdjustmentParams(), build_curve_luts(ToneCurve())
    )
    assert out.shape == (2, 4, 4)
    assert out[0, 0].tolist() == [0, 0, 0, 255]


def test_sharpness_has_no_effect(random_rgba, busy_params):
    sharp = dataclasses.replace(busy_params, sharpness=100)
    assert np.array_equal(
        apply_adjustments(random_rgba, busy_params),
        apply_adjustments(random_rgba, sharp),
    )


def test_params_from_ui_dict():
    params = AdjustmentParams.from_dict({"exposure": "1.5", "contrast": None, "clarity": 9})
    assert params.exposure == 1.5
    assert params.contrast == 0.0
    assert set(params.to_dict()) == {f.name for f in dataclasses.fields(AdjustmentParams)}


def _smooth(e0, e1, x):
    t = min(1.0, max(0.0, (x - e0) / (e1 - e0)))
    return t * t * (3.0 - 2.0 * t)


def _reference_pixel(rgb, params, luts):
    """Plain-Python walk through every stage, written out longhand."""
    luma = lambda c: 0.2126 * c[0] + 0.7152 * c[1] + 0.0722 * c[2]
    lut = lambda row, v: luts[row, math.floor(v * 255.0 + 0.5)] / 255.0

    mul = 2.0 ** params.exposure
    temp = params.temperature / 100.0 * 0.3
    tint = params.tint / 100.0 * 0.2
    c = [rgb[0] * mul * (1 + temp), rgb[1] * mul * (1 + tint), rgb[2] * mul * (1 - temp)]
    c = [max(0.0, v) for v in c]
    c = [v * 12.92 if v <= 0.0031308 else 1.055 * v ** (1 / 2.4) - 0.055 for v in c]

    k = params.contrast / 100.0
    c = [0.5 + (v - 0.5) * (1 + k) for v in c]

    lum = luma(c)
    h = params.highlights / 100.0
    mask = _smooth(0.5, 1.0, lum)
    c = [v + (v - v * mask) * (-h * mask) for v in c]
    mask = 1.0 - _smooth(0.0, 0.5, lum)
    c = [v + mask * (params.shadows / 100.0) * 0.3 for v in c]
    mask = _smooth(0.7, 1.0, lum)
    c = [v + mask * (params.whites / 100.0) * 0.2 for v in c]
    mask = 1.0 - _smooth(0.0, 0.3, lum)
    c = [v + mask * (params.blacks / 100.0) * 0.2 for v in c]

    c = [lut(i, min(1.0, max(0.0, v))) for i, v in enumerate(c)]
    c = [lut(3, v) for v in c]

    sat_factor = 1.0 + params.saturation / 100.0
    lum = luma(c)
    c = [lum + (v - lum) * sat_factor for v in c]

    vib = params.vibrance / 100.0
    lum = luma(c)
    sat = math.sqrt(sum((v - lum) ** 2 for v in c))
    boost = max(0.5, 1.0 + vib * (1.0 - 2.0 * sat))
    c = [lum + (v - lum) * boost for v in c]
    return tuple(min(1.0, max(0.0, v)) for v in c)


MUTED = AdjustmentParams(
    exposure=-0.3,
    temperature=-30,
    tint=15,
    contrast=-25,
    highlights=60,
    shadows=-45,
    whites=-70,
    blacks=50,
    saturation=-15,
    vibrance=-80,
)


@pytest.mark.parametrize("rgb", [(0.62, 0.48, 0.35), (0.04, 0.07, 0.11), (0.3, 0.3, 0.3)])
@pytest.mark.parametrize("preset", ["busy", "muted"])
def test_adjust_rgb_matches_longhand_stages(rgb, preset, busy_params):
    params = busy_params if preset == "busy" else MUTED
    luts = build_curve_luts(
        ToneCurve(rgb=[(0, 0.02), (0.45, 0.5), (1, 0.97)], blue=[(0, 0), (0.6, 0.55), (1, 1)])
    )
    expected = _reference_pixel(rgb, params, luts)
    assert adjust_rgb(rgb, params, luts) == pytest.approx(expected, abs=1e-9)


def test_vibrance_boost_never_drops_below_half():
    # Nearly neutral pixel: 1 - 0.8 * (1 - 2 * sat) falls well under 0.5
    r0, g0, b0 = adjust_rgb((0.3, 0.33, 0.3), AdjustmentParams())
    r1, g1, b1 = adjust_rgb((0.3, 0.33, 0.3), AdjustmentParams(vibrance=-80))
    lum = 0.2126 * r0 + 0.7152 * g0 + 0.0722 * b0
    sat = math.sqrt((r0 - lum) ** 2 + (g0 - lum) ** 2 + (b0 - lum) ** 2)
    assert 1.0 - 0.8 * (1.0 - 2.0 * sat) < 0.5
    boost = 0.5
    assert g1 == pytest.approx(lum + (g0 - lum) * boost, abs=1e-9)
    assert r1 == pytest.approx(lum + (r0 - lum) * boost, abs=1e-9)


def test_contrast_pivots_on_mid_grey():
    # Linear 0.214 encodes close to 0.5, which contrast leaves in place
    grey = adjust_rgb((0.214, 0.214, 0.214), AdjustmentParams())
    punchy = adjust_rgb((0.214, 0.214, 0.214), AdjustmentParams(contrast=80))
    assert punchy[0] == pytest.approx(grey[0], abs=2 / 255.0)
    dark = adjust_rgb((0.05, 0.05, 0.05), AdjustmentParams(contrast=80))
    assert dark[0] < adjust_rgb((0.05, 0.05, 0.05), AdjustmentParams())[0]
