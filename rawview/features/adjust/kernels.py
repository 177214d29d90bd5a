import math
import numpy as np
from numba import njit, prange  # type: ignore
from rawview.domain.types import LUMA_B, LUMA_G, LUMA_R

# Layout of the float64 uniform vector read by adjust_pixel
U_EXPOSURE_MUL = 0
U_TEMPERATURE = 1
U_TINT = 2
U_CONTRAST = 3
U_HIGHLIGHTS = 4
U_SHADOWS = 5
U_WHITES = 6
U_BLACKS = 7
U_SATURATION = 8
U_VIBRANCE = 9
UNIFORM_COUNT = 10

# Stages whose magnitude is at or below this are skipped
SKIP_THRESHOLD = 0.005


@njit(cache=True)
def _clamp01(v: float) -> float:
    if v < 0.0:
        return 0.0
    if v > 1.0:
        return 1.0
    return v


@njit(cache=True)
def _smoothstep(edge0: float, edge1: float, x: float) -> float:
    t = _clamp01((x - edge0) / (edge1 - edge0))
    return t * t * (3.0 - 2.0 * t)


@njit(cache=True)
def _linear_to_srgb(c: float) -> float:
    if c <= 0.0031308:
        return c * 12.92
    return 1.055 * c ** (1.0 / 2.4) - 0.055


@njit(cache=True)
def _luma(r: float, g: float, b: float) -> float:
    return LUMA_R * r + LUMA_G * g + LUMA_B * b


@njit(cache=True)
def _lut(luts: np.ndarray, row: int, c: float) -> float:
    return luts[row, int(math.floor(c * 255.0 + 0.5))] / 255.0


@njit(cache=True)
def _to_byte(v: float) -> int:
    i = int(math.floor(v * 255.0 + 0.5))
    if i < 0:
        return 0
    if i > 255:
        return 255
    return i


@njit(cache=True)
def adjust_pixel(r: float, g: float, b: float, u: np.ndarray, luts: np.ndarray):
    """
    Full colour pipeline for one pixel. Input and output are RGB in [0, 1].
    Shared by both executors.
    """
    # Exposure (linear)
    r *= u[U_EXPOSURE_MUL]
    g *= u[U_EXPOSURE_MUL]
    b *= u[U_EXPOSURE_MUL]

    # White balance
    r *= 1.0 + u[U_TEMPERATURE]
    b *= 1.0 - u[U_TEMPERATURE]
    g *= 1.0 + u[U_TINT]

    r = max(0.0, r)
    g = max(0.0, g)
    b = max(0.0, b)

    r = _linear_to_srgb(r)
    g = _linear_to_srgb(g)
    b = _linear_to_srgb(b)

    contrast = u[U_CONTRAST]
    if abs(contrast) > SKIP_THRESHOLD:
        r = 0.5 + (r - 0.5) * (1.0 + contrast)
        g = 0.5 + (g - 0.5) * (1.0 + contrast)
        b = 0.5 + (b - 0.5) * (1.0 + contrast)

    # Tonal regions share one luminance measured after contrast
    lum = _luma(r, g, b)

    highlights = u[U_HIGHLIGHTS]
    if abs(highlights) > SKIP_THRESHOLD:
        mask = _smoothstep(0.5, 1.0, lum)
        adj = -highlights * mask
        r += (r - r * mask) * adj
        g += (g - g * mask) * adj
        b += (b - b * mask) * adj

    shadows = u[U_SHADOWS]
    if abs(shadows) > SKIP_THRESHOLD:
        mask = 1.0 - _smoothstep(0.0, 0.5, lum)
        r += mask * shadows * 0.3
        g += mask * shadows * 0.3
        b += mask * shadows * 0.3

    whites = u[U_WHITES]
    if abs(whites) > SKIP_THRESHOLD:
        mask = _smoothstep(0.7, 1.0, lum)
        r += mask * whites * 0.2
        g += mask * whites * 0.2
        b += mask * whites * 0.2

    blacks = u[U_BLACKS]
    if abs(blacks) > SKIP_THRESHOLD:
        mask = 1.0 - _smoothstep(0.0, 0.3, lum)
        r += mask * blacks * 0.2
        g += mask * blacks * 0.2
        b += mask * blacks * 0.2

    # Tone curve: per-channel first, composite second
    r = _lut(luts, 0, _clamp01(r))
    g = _lut(luts, 1, _clamp01(g))
    b = _lut(luts, 2, _clamp01(b))
    r = _lut(luts, 3, r)
    g = _lut(luts, 3, g)
    b = _lut(luts, 3, b)

    sat_factor = u[U_SATURATION]
    if abs(sat_factor - 1.0) > SKIP_THRESHOLD:
        lum = _luma(r, g, b)
        r = lum + (r - lum) * sat_factor
        g = lum + (g - lum) * sat_factor
        b = lum + (b - lum) * sat_factor

    vibrance = u[U_VIBRANCE]
    if abs(vibrance) > SKIP_THRESHOLD:
        lum = _luma(r, g, b)
        sat = math.sqrt((r - lum) ** 2 + (g - lum) ** 2 + (b - lum) ** 2)
        boost = max(0.5, 1.0 + vibrance * (1.0 - sat * 2.0))
        r = lum + (r - lum) * boost
        g = lum + (g - lum) * boost
        b = lum + (b - lum) * boost

    return _clamp01(r), _clamp01(g), _clamp01(b)


@njit(cache=True)
def _render_pixel(
    src: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    u: np.ndarray,
    luts: np.ndarray,
    out: np.ndarray,
    y: int,
    x: int,
) -> None:
    sx = xs[y, x]
    sy = ys[y, x]
    if sx < 0 or sy < 0:
        out[y, x, 0] = 0
        out[y, x, 1] = 0
        out[y, x, 2] = 0
    else:
        r, g, b = adjust_pixel(
            src[sy, sx, 0] / 255.0,
            src[sy, sx, 1] / 255.0,
            src[sy, sx, 2] / 255.0,
            u,
            luts,
        )
        out[y, x, 0] = _to_byte(r)
        out[y, x, 1] = _to_byte(g)
        out[y, x, 2] = _to_byte(b)
    out[y, x, 3] = 255


@njit(parallel=True, cache=True)
def render_parallel(
    src: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    u: np.ndarray,
    luts: np.ndarray,
    out: np.ndarray,
) -> None:
    """
    Data-parallel executor: rows are distributed over numba worker threads.
    Reads only `src`, writes only `out`.
    """
    h, w = xs.shape
    for y in prange(h):
        for x in range(w):
            _render_pixel(src, xs, ys, u, luts, out, y, x)


@njit(cache=True)
def render_sequential(
    src: np.ndarray,
    xs: np.ndarray,
    ys: np.ndarray,
    u: np.ndarray,
    luts: np.ndarray,
    out: np.ndarray,
) -> None:
    """
    Scalar fallback executor: same per-pixel work in a single thread.
    """
    h, w = xs.shape
    for y in range(h):
        for x in range(w):
            _render_pixel(src, xs, ys, u, luts, out, y, x)
