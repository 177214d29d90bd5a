import math
from typing import Tuple
import cv2
import numpy as np
from rawview.domain.types import RGBA8Buffer
from rawview.kernel.system.performance import time_function


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def resolve_export_size(
    source_width: float,
    source_height: float,
    target_width: float,
    target_height: float,
    upscale: bool,
) -> Tuple[int, int]:
    """
    Final (width, height) of an export.

    The requested width drives the size and the height follows the source
    aspect ratio. Without `upscale`, anything larger than the source snaps
    back to the source size.
    """
    sw = max(1, _round_half_up(source_width))
    sh = max(1, _round_half_up(source_height))
    aspect = sw / sh

    tw = max(1, _round_half_up(target_width))
    # target_height is superseded by the aspect-derived height
    th = max(1, _round_half_up(tw / aspect))

    if not upscale:
        if tw > sw:
            tw, th = sw, sh
        if th > sh:
            tw, th = sw, sh

    return tw, th


@time_function
def resize_rgba8(rgba: RGBA8Buffer, width: int, height: int) -> RGBA8Buffer:
    """
    Resamples an RGBA8 frame. Area averaging when shrinking, bilinear when
    enlarging. Alpha stays opaque.
    """
    h, w = rgba.shape[:2]
    if (w, h) == (width, height):
        return rgba

    interpolation = (
        cv2.INTER_AREA if width * height < w * h else cv2.INTER_LINEAR
    )
    res = cv2.resize(
        np.ascontiguousarray(rgba), (width, height), interpolation=interpolation
    )
    res[..., 3] = 255
    return res
