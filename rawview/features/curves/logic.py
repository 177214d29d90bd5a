import math
import numpy as np
from typing import Optional, Sequence
from rawview.domain.models import CurvePoint, ToneCurve
from rawview.domain.types import CurveLUTs
from rawview.kernel.system.logging import get_logger

logger = get_logger(__name__)

LUT_SIZE = 256

# Row order of the stacked LUT array consumed by the adjustment kernel
LUT_RED, LUT_GREEN, LUT_BLUE, LUT_RGB = 0, 1, 2, 3


def _safe_div(a: float, b: float) -> float:
    if abs(b) < 1e-9:
        return 0.0
    return a / b


def interpolate_curve(points: Sequence[CurvePoint], x: float) -> float:
    """
    Evaluates a control-point curve at x with smoothstep easing between
    neighbouring points. Fewer than two points is the identity.
    """
    if len(points) < 2:
        return x
    if x <= points[0].x:
        return points[0].y

    i = 0
    while i < len(points) - 1 and points[i + 1].x < x:
        i += 1
    if i >= len(points) - 1:
        return points[-1].y

    p0 = points[i]
    p1 = points[i + 1]
    t = _safe_div(x - p0.x, p1.x - p0.x)
    st = t * t * (3.0 - 2.0 * t)
    return p0.y + (p1.y - p0.y) * st


def build_curve_lut(points: Sequence[CurvePoint]) -> np.ndarray:
    """
    Compiles one curve into a 256-entry uint8 lookup table.
    """
    lut = np.empty(LUT_SIZE, dtype=np.uint8)
    for i in range(LUT_SIZE):
        y = interpolate_curve(points, i / 255.0)
        y = 0.0 if y < 0.0 else 1.0 if y > 1.0 else y
        lut[i] = int(math.floor(y * 255.0 + 0.5))
    return lut


def build_curve_luts(curve: ToneCurve) -> CurveLUTs:
    """
    Stacks red, green, blue and composite LUTs into a (4, 256) array.
    """
    luts = np.empty((4, LUT_SIZE), dtype=np.uint8)
    luts[LUT_RED] = build_curve_lut(curve.red)
    luts[LUT_GREEN] = build_curve_lut(curve.green)
    luts[LUT_BLUE] = build_curve_lut(curve.blue)
    luts[LUT_RGB] = build_curve_lut(curve.rgb)
    return luts


class CurveLutCache:
    """
    Holds the LUTs of the last tone curve seen. A changed curve produces a
    fresh array, so a LUT handed to a running render is never mutated.
    """

    def __init__(self) -> None:
        self._signature: Optional[str] = None
        self._luts: Optional[CurveLUTs] = None

    def get(self, curve: ToneCurve) -> CurveLUTs:
        signature = curve.signature()
        if self._luts is None or signature != self._signature:
            luts = build_curve_luts(curve)
            luts.flags.writeable = False
            self._luts = luts
            self._signature = signature
            logger.debug("Tone curve LUTs rebuilt")
        return self._luts

    def clear(self) -> None:
        self._signature = None
        self._luts = None
