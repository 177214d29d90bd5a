import dataclasses
import math
import numpy as np
from numba import njit  # type: ignore
from rawview.domain.models import AdjustmentParams, RawPixelBuffer, TransformParams
from rawview.domain.types import LUMA_B, LUMA_G, LUMA_R, RGBA8Buffer
from rawview.features.auto.models import (
    AUTO_ADJUST_CONSTANTS,
    LuminancePercentiles,
    RenderStatistics,
    WhiteBalanceEstimate,
)
from rawview.features.geometry.logic import crop_pixel_bounds
from rawview.features.pixels.logic import to_rgba8
from rawview.kernel.system.logging import get_logger
from rawview.kernel.system.performance import time_function

logger = get_logger(__name__)

# Order of the running sums returned by _accumulate_statistics
_SUM_R, _SUM_G, _SUM_B, _SUM_SAT, _EDGE_R, _EDGE_G, _EDGE_B, _EDGE_W = range(8)


def clamp(v: float, lo: float, hi: float) -> float:
    return lo if v < lo else hi if v > hi else v


def safe_div(a: float, b: float) -> float:
    if abs(b) < 1e-9:
        return 0.0
    return a / b


def sampling_stride(total_pixels: int, target_samples: int) -> int:
    """Stride that visits roughly target_samples pixels of the region."""
    total = max(1, total_pixels)
    return max(1, int(math.floor(math.sqrt(total / target_samples))))


@njit(cache=True)
def _accumulate_statistics(
    rgba: np.ndarray,
    x0: int,
    y0: int,
    x1: int,
    y1: int,
    stride: int,
    edge_threshold: float,
    lum_out: np.ndarray,
    sums: np.ndarray,
) -> int:
    """
    Visits every stride-th pixel of [x0, x1) x [y0, y1), writing luminance
    into lum_out by index and accumulating channel/saturation/edge sums.
    Neighbours are read from the same immutable rgba buffer.
    """
    count = 0
    for y in range(y0, y1, stride):
        for x in range(x0, x1, stride):
            r = rgba[y, x, 0] / 255.0
            g = rgba[y, x, 1] / 255.0
            b = rgba[y, x, 2] / 255.0

            lum = LUMA_R * r + LUMA_G * g + LUMA_B * b
            mx = max(max(r, g), b)
            mn = min(min(r, g), b)
            sat = 0.0
            if mx > 0.0:
                sat = (mx - mn) / mx

            lum_out[count] = lum
            sums[0] += r
            sums[1] += g
            sums[2] += b
            sums[3] += sat
            count += 1

            nx = min(x + stride, x1 - 1)
            ny = min(y + stride, y1 - 1)
            if nx != x or ny != y:
                rr = rgba[y, nx, 0] / 255.0
                rg = rgba[y, nx, 1] / 255.0
                rb = rgba[y, nx, 2] / 255.0
                dr = rgba[ny, x, 0] / 255.0
                dg = rgba[ny, x, 1] / 255.0
                db = rgba[ny, x, 2] / 255.0

                grad_r = abs(r - rr) + abs(r - dr)
                grad_g = abs(g - rg) + abs(g - dg)
                grad_b = abs(b - rb) + abs(b - db)
                edge = grad_r + grad_g + grad_b

                if edge > edge_threshold:
                    sums[4] += r * edge
                    sums[5] += g * edge
                    sums[6] += b * edge
                    sums[7] += edge
    return count


@time_function
def collect_statistics(
    rgba: RGBA8Buffer, transform: TransformParams
) -> RenderStatistics:
    """
    Samples the (optionally cropped) image on a regular grid.

    Rotation does not change the sampled region, only an applied crop does.
    """
    h, w = rgba.shape[:2]
    x0, y0, x1, y1 = crop_pixel_bounds(transform.active_crop, w, h)

    region_w = max(0, x1 - x0)
    region_h = max(0, y1 - y0)
    stride = sampling_stride(
        region_w * region_h, AUTO_ADJUST_CONSTANTS["target_samples"]
    )
    capacity = math.ceil(region_w / stride) * math.ceil(region_h / stride)

    lum = np.empty(capacity, dtype=np.float64)
    sums = np.zeros(8, dtype=np.float64)
    count = _accumulate_statistics(
        np.ascontiguousarray(rgba),
        x0,
        y0,
        x1,
        y1,
        stride,
        AUTO_ADJUST_CONSTANTS["edge_threshold"],
        lum,
        sums,
    )

    return RenderStatistics(
        luminance=lum,
        sum_r=float(sums[_SUM_R]),
        sum_g=float(sums[_SUM_G]),
        sum_b=float(sums[_SUM_B]),
        sum_sat=float(sums[_SUM_SAT]),
        edge_weighted_r=float(sums[_EDGE_R]),
        edge_weighted_g=float(sums[_EDGE_G]),
        edge_weighted_b=float(sums[_EDGE_B]),
        edge_weight=float(sums[_EDGE_W]),
        count=int(count),
        stride=stride,
    )


def quantile(sorted_values: np.ndarray, q: float) -> float:
    """Nearest-rank quantile on an ascending array."""
    n = len(sorted_values)
    if n == 0:
        return 0.0
    idx = int(clamp(math.floor(q * (n - 1)), 0, n - 1))
    return float(sorted_values[idx])


def luminance_percentiles(stats: RenderStatistics) -> LuminancePercentiles:
    lum = np.sort(stats.samples)
    return LuminancePercentiles(
        p1=quantile(lum, 0.01),
        p5=quantile(lum, 0.05),
        p10=quantile(lum, 0.10),
        p50=quantile(lum, 0.50),
        p90=quantile(lum, 0.90),
        p95=quantile(lum, 0.95),
        p99=quantile(lum, 0.99),
    )


def estimate_white_balance(stats: RenderStatistics) -> WhiteBalanceEstimate:
    """
    Blends gray-world means with gray-edge (gradient weighted) means. The
    more edges the sample found, the more the gray-edge estimate counts.
    """
    avg_r = stats.sum_r / stats.count
    avg_g = stats.sum_g / stats.count
    avg_b = stats.sum_b / stats.count

    if stats.edge_weight > 0:
        edge_r = safe_div(stats.edge_weighted_r, stats.edge_weight)
        edge_g = safe_div(stats.edge_weighted_g, stats.edge_weight)
        edge_b = safe_div(stats.edge_weighted_b, stats.edge_weight)
    else:
        edge_r, edge_g, edge_b = avg_r, avg_g, avg_b

    confidence = clamp(stats.edge_weight / (stats.count * 0.25 + 1e-6), 0.0, 1.0)
    mix = (
        AUTO_ADJUST_CONSTANTS["wb_mix_base"]
        + confidence * AUTO_ADJUST_CONSTANTS["wb_mix_range"]
    )

    return WhiteBalanceEstimate(
        r=edge_r * mix + avg_r * (1.0 - mix),
        g=edge_g * mix + avg_g * (1.0 - mix),
        b=edge_b * mix + avg_b * (1.0 - mix),
        edge_confidence=confidence,
    )


def derive_adjustments(
    stats: RenderStatistics, current: AdjustmentParams
) -> AdjustmentParams:
    """
    Maps sample statistics to a full parameter set. Everything except
    sharpness is recomputed; sharpness is kept from `current`.
    """
    pct = luminance_percentiles(stats)
    wb = estimate_white_balance(stats)
    avg_sat = stats.sum_sat / stats.count

    exposure_highlight = math.log2(
        AUTO_ADJUST_CONSTANTS["target_p95"] / (pct.p95 + 1e-6)
    )
    exposure_mid = math.log2(AUTO_ADJUST_CONSTANTS["target_mid"] / (pct.p50 + 1e-6))
    exposure = clamp(0.7 * exposure_highlight + 0.3 * exposure_mid, -2.2, 2.2)
    if pct.p99 > AUTO_ADJUST_CONSTANTS["clip_p99"]:
        exposure = min(exposure, -0.3)

    dynamic = max(1e-4, pct.p95 - pct.p5)
    contrast = clamp((0.62 - dynamic) * 70.0, -35.0, 35.0)
    highlights = clamp(
        -(max(0.0, pct.p95 - 0.78) * 180.0 + max(0.0, pct.p99 - 0.95) * 320.0),
        -100.0,
        0.0,
    )
    shadows = clamp((0.20 - pct.p10) * 220.0, -20.0, 85.0)
    whites = clamp((0.80 - pct.p99) * 80.0, -60.0, 30.0)
    blacks = clamp((0.03 - pct.p1) * 260.0, -20.0, 45.0)

    saturation = clamp((0.34 - avg_sat) * 80.0, -20.0, 25.0)
    vibrance = clamp((0.35 - avg_sat) * 120.0, -25.0, 45.0)

    rb_ratio = (wb.b + 1e-6) / (wb.r + 1e-6)
    t_norm = clamp((rb_ratio - 1.0) / (0.3 * (rb_ratio + 1.0)), -1.0, 1.0)
    temperature = clamp(t_norm * 70.0, -70.0, 70.0)

    rb_mean = (wb.r + wb.b) * 0.5
    g_factor = (rb_mean + 1e-6) / (wb.g + 1e-6)
    tint = clamp(((g_factor - 1.0) / 0.2) * 35.0, -45.0, 45.0)

    logger.debug(
        f"Auto-adjust: n={stats.count} stride={stats.stride} "
        f"p5={pct.p5:.3f} p50={pct.p50:.3f} p95={pct.p95:.3f} p99={pct.p99:.3f} "
        f"edge_conf={wb.edge_confidence:.2f}"
    )

    return dataclasses.replace(
        AdjustmentParams(),
        sharpness=current.sharpness,
        exposure=exposure,
        contrast=contrast,
        highlights=highlights,
        shadows=shadows,
        whites=whites,
        blacks=blacks,
        saturation=saturation,
        vibrance=vibrance,
        temperature=temperature,
        tint=tint,
    )


def compute_auto_adjustments_rgba(
    rgba: RGBA8Buffer, current: AdjustmentParams, transform: TransformParams
) -> AdjustmentParams:
    """Same as compute_auto_adjustments on an already normalized image."""
    stats = collect_statistics(rgba, transform)
    if stats.count == 0:
        logger.debug("Auto-adjust found no samples, keeping current parameters")
        return current
    return derive_adjustments(stats, current)


def compute_auto_adjustments(
    image: RawPixelBuffer, current: AdjustmentParams, transform: TransformParams
) -> AdjustmentParams:
    """
    Derives a complete adjustment set from image content, restricted to the
    applied crop. Returns `current` unchanged when nothing can be sampled.
    """
    return compute_auto_adjustments_rgba(to_rgba8(image), current, transform)
