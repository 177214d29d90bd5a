import math
import numpy as np
from typing import Optional, Tuple
from rawview.domain.models import CropAspectPreset, CropRect, TransformParams
from rawview.domain.types import Size, UV
from rawview.kernel.system.performance import time_function

MIN_CROP_EXTENT = 1e-4

_PRESET_RATIOS = {
    CropAspectPreset.SQUARE: 1.0,
    CropAspectPreset.FOUR_THREE: 4.0 / 3.0,
    CropAspectPreset.THREE_TWO: 3.0 / 2.0,
    CropAspectPreset.SIXTEEN_NINE: 16.0 / 9.0,
}


def clamp01(v: float) -> float:
    return 0.0 if v < 0.0 else 1.0 if v > 1.0 else v


def aspect_preset_to_ratio(preset: CropAspectPreset) -> Optional[float]:
    """Width / height of a crop preset, None for free-form."""
    return _PRESET_RATIOS.get(preset)


def normalize_crop_rect(rect: CropRect) -> CropRect:
    """
    Clamps a crop into the unit square. Extent never drops below
    MIN_CROP_EXTENT and never runs past the right/bottom edge.
    """
    x = clamp01(rect.x)
    y = clamp01(rect.y)
    width = clamp01(rect.width)
    height = clamp01(rect.height)
    return CropRect(
        x=x,
        y=y,
        width=max(MIN_CROP_EXTENT, min(width, 1.0 - x)),
        height=max(MIN_CROP_EXTENT, min(height, 1.0 - y)),
    )


def get_rotated_bounds(width: float, height: float, rotation_deg: float) -> Size:
    """
    Axis-aligned bounding box of a width x height rectangle rotated by
    rotation_deg around its centre.
    """
    w = max(1.0, width)
    h = max(1.0, height)
    r = math.radians(rotation_deg)
    c = abs(math.cos(r))
    s = abs(math.sin(r))
    return w * c + h * s, w * s + h * c


def get_effective_image_size(
    source_width: float, source_height: float, transform: TransformParams
) -> Size:
    rot_w, rot_h = get_rotated_bounds(
        source_width, source_height, transform.rotation_deg
    )
    crop = transform.active_crop
    if crop is None:
        return rot_w, rot_h
    crop = normalize_crop_rect(crop)
    return rot_w * crop.width, rot_h * crop.height


def get_effective_aspect(
    source_width: float, source_height: float, transform: TransformParams
) -> float:
    w, h = get_effective_image_size(source_width, source_height, transform)
    if h <= 0:
        return 1.0
    return w / h


def map_display_uv_to_source_uv(
    uv_display: UV,
    source_width: float,
    source_height: float,
    rotation_deg: float,
    crop_rect: Optional[CropRect],
) -> UV:
    """
    Maps a point of the displayed (rotated, cropped) image back to the
    normalized source image.
    """
    sw = max(1.0, source_width)
    sh = max(1.0, source_height)

    u, v = uv_display
    if crop_rect is not None:
        crop = normalize_crop_rect(crop_rect)
        u = crop.x + u * crop.width
        v = crop.y + v * crop.height

    r = math.radians(rotation_deg)
    c = math.cos(r)
    s = math.sin(r)
    rot_w, rot_h = get_rotated_bounds(sw, sh, rotation_deg)
    px = (u - 0.5) * rot_w
    py = (v - 0.5) * rot_h
    sx = c * px + s * py
    sy = -s * px + c * py

    return sx / sw + 0.5, sy / sh + 0.5


def map_source_uv_to_display_uv(
    uv_source: UV,
    source_width: float,
    source_height: float,
    rotation_deg: float,
    crop_rect: Optional[CropRect],
) -> UV:
    """
    Exact inverse of map_display_uv_to_source_uv.
    """
    sw = max(1.0, source_width)
    sh = max(1.0, source_height)
    r = math.radians(rotation_deg)
    c = math.cos(r)
    s = math.sin(r)
    rot_w, rot_h = get_rotated_bounds(sw, sh, rotation_deg)

    sx = (uv_source[0] - 0.5) * sw
    sy = (uv_source[1] - 0.5) * sh
    px = c * sx - s * sy
    py = s * sx + c * sy

    u = px / rot_w + 0.5
    v = py / rot_h + 0.5

    if crop_rect is not None:
        crop = normalize_crop_rect(crop_rect)
        u = (u - crop.x) / crop.width
        v = (v - crop.y) / crop.height

    return u, v


def get_fit_scale(
    viewport_width: float, viewport_height: float, display_aspect: float
) -> Tuple[float, float]:
    """
    Fraction of the viewport (x, y) covered by an image of display_aspect
    fitted inside it. The longer relative side touches the viewport edge.
    """
    viewport_aspect = max(1.0, viewport_width) / max(1.0, viewport_height)
    if display_aspect <= 0 or not math.isfinite(display_aspect):
        return 1.0, 1.0
    if display_aspect > viewport_aspect:
        return 1.0, viewport_aspect / display_aspect
    return display_aspect / viewport_aspect, 1.0


@time_function
def build_source_grid(
    out_width: int,
    out_height: int,
    source_width: int,
    source_height: int,
    rotation_deg: float,
    crop_rect: Optional[CropRect],
    fit_aspect: Optional[float] = None,
) -> Tuple[np.ndarray, np.ndarray]:
    """
    Vectorized map_display_uv_to_source_uv sampled at output pixel centres.

    Without fit_aspect the displayed image is stretched over the whole
    output. With it, the image is fitted and centred, and the letterbox
    around it counts as outside.

    Returns integer (xs, ys) source pixel indices, each (out_height,
    out_width). Samples that land outside the source are -1 in both.
    """
    sw = max(1, source_width)
    sh = max(1, source_height)

    u = (np.arange(out_width, dtype=np.float64) + 0.5) / max(1, out_width)
    v = (np.arange(out_height, dtype=np.float64) + 0.5) / max(1, out_height)
    if fit_aspect is not None:
        scale_x, scale_y = get_fit_scale(out_width, out_height, fit_aspect)
        u = (u - 0.5) / scale_x + 0.5
        v = (v - 0.5) / scale_y + 0.5
    uu, vv = np.meshgrid(u, v)
    in_display = (uu >= 0.0) & (uu < 1.0) & (vv >= 0.0) & (vv < 1.0)

    if crop_rect is not None:
        crop = normalize_crop_rect(crop_rect)
        uu = crop.x + uu * crop.width
        vv = crop.y + vv * crop.height

    r = math.radians(rotation_deg)
    c = math.cos(r)
    s = math.sin(r)
    rot_w, rot_h = get_rotated_bounds(sw, sh, rotation_deg)
    px = (uu - 0.5) * rot_w
    py = (vv - 0.5) * rot_h
    su = (c * px + s * py) / sw + 0.5
    sv = (-s * px + c * py) / sh + 0.5

    inside = in_display & (su >= 0.0) & (su < 1.0) & (sv >= 0.0) & (sv < 1.0)
    xs = np.clip(np.floor(su * sw), 0, sw - 1).astype(np.int64)
    ys = np.clip(np.floor(sv * sh), 0, sh - 1).astype(np.int64)
    xs[~inside] = -1
    ys[~inside] = -1
    return xs, ys


def crop_pixel_bounds(
    crop_rect: Optional[CropRect], width: int, height: int
) -> Tuple[int, int, int, int]:
    """
    Pixel window (x0, y0, x1, y1) covered by a normalized crop, half-open.
    """
    if crop_rect is None:
        return 0, 0, width, height
    x0 = max(0, int(math.floor(crop_rect.x * width)))
    y0 = max(0, int(math.floor(crop_rect.y * height)))
    x1 = min(width, int(math.ceil((crop_rect.x + crop_rect.width) * width)))
    y1 = min(height, int(math.ceil((crop_rect.y + crop_rect.height) * height)))
    return x0, y0, x1, y1
