from typing import Optional, Tuple
import numpy as np
from rawview.domain.models import AdjustmentParams, RenderBackend, ToneCurve
from rawview.domain.types import CurveLUTs, RGBA8Buffer
from rawview.features.adjust import kernels
from rawview.features.curves.logic import build_curve_luts
from rawview.kernel.system.performance import time_function


def pack_uniforms(params: AdjustmentParams) -> np.ndarray:
    """
    Converts UI-scale parameters into the per-stage factors the kernel reads.
    Values are not re-clamped here.
    """
    u = np.zeros(kernels.UNIFORM_COUNT, dtype=np.float64)
    u[kernels.U_EXPOSURE_MUL] = 2.0 ** params.exposure
    u[kernels.U_TEMPERATURE] = params.temperature / 100.0 * 0.3
    u[kernels.U_TINT] = params.tint / 100.0 * 0.2
    u[kernels.U_CONTRAST] = params.contrast / 100.0
    u[kernels.U_HIGHLIGHTS] = params.highlights / 100.0
    u[kernels.U_SHADOWS] = params.shadows / 100.0
    u[kernels.U_WHITES] = params.whites / 100.0
    u[kernels.U_BLACKS] = params.blacks / 100.0
    u[kernels.U_SATURATION] = 1.0 + params.saturation / 100.0
    u[kernels.U_VIBRANCE] = params.vibrance / 100.0
    return u


def identity_grid(width: int, height: int) -> Tuple[np.ndarray, np.ndarray]:
    """Source index grid that samples every pixel in place."""
    xs, ys = np.meshgrid(
        np.arange(width, dtype=np.int64), np.arange(height, dtype=np.int64)
    )
    return xs, ys


@time_function
def run_pipeline(
    src: RGBA8Buffer,
    xs: np.ndarray,
    ys: np.ndarray,
    params: AdjustmentParams,
    luts: CurveLUTs,
    backend: RenderBackend = RenderBackend.PARALLEL,
) -> RGBA8Buffer:
    """
    Runs the adjustment kernel over a source-index grid and returns a new
    RGBA8 frame shaped like the grid.
    """
    out = np.empty((xs.shape[0], xs.shape[1], 4), dtype=np.uint8)
    u = pack_uniforms(params)
    src = np.ascontiguousarray(src)
    xs = np.ascontiguousarray(xs, dtype=np.int64)
    ys = np.ascontiguousarray(ys, dtype=np.int64)
    luts = np.ascontiguousarray(luts, dtype=np.uint8)

    if backend == RenderBackend.PARALLEL:
        kernels.render_parallel(src, xs, ys, u, luts, out)
    else:
        kernels.render_sequential(src, xs, ys, u, luts, out)
    return out


def apply_adjustments(
    rgba: RGBA8Buffer,
    params: AdjustmentParams,
    luts: Optional[CurveLUTs] = None,
    backend: RenderBackend = RenderBackend.PARALLEL,
) -> RGBA8Buffer:
    """
    Applies the colour pipeline to an RGBA8 image without any geometry.
    """
    if luts is None:
        luts = build_curve_luts(ToneCurve())
    h, w = rgba.shape[:2]
    xs, ys = identity_grid(w, h)
    return run_pipeline(rgba, xs, ys, params, luts, backend)


def adjust_rgb(
    rgb: Tuple[float, float, float],
    params: AdjustmentParams,
    luts: Optional[CurveLUTs] = None,
) -> Tuple[float, float, float]:
    """
    Single-pixel form of the pipeline, RGB in [0, 1] before byte rounding.
    """
    if luts is None:
        luts = build_curve_luts(ToneCurve())
    r, g, b = kernels.adjust_pixel(
        float(rgb[0]),
        float(rgb[1]),
        float(rgb[2]),
        pack_uniforms(params),
        np.ascontiguousarray(luts, dtype=np.uint8),
    )
    return float(r), float(g), float(b)
