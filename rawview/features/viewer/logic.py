import math

INTERACTIVE_DPR_CAP = 1.0
IDLE_DPR_CAP = 1.5
MIN_DPR = 0.75

MIN_SPLIT = 0.02
MAX_SPLIT = 0.98
DEFAULT_SPLIT = 0.5


def resolve_preview_pixel_ratio(device_pixel_ratio: float, interactive: bool) -> float:
    """
    Pixel ratio for preview renders. Lower while the user is dragging a
    control, a bit higher once idle.
    """
    dpr = device_pixel_ratio
    if not math.isfinite(dpr) or dpr <= 0:
        dpr = 1.0
    cap = INTERACTIVE_DPR_CAP if interactive else IDLE_DPR_CAP
    return min(cap, max(MIN_DPR, min(dpr, cap)))


def clamp_before_after_split(value: float) -> float:
    if not math.isfinite(value):
        return DEFAULT_SPLIT
    return max(MIN_SPLIT, min(MAX_SPLIT, value))


def resolve_before_after_split_from_pointer(
    client_x: float, container_left: float, container_width: float
) -> float:
    if not math.isfinite(container_width) or container_width <= 0:
        return DEFAULT_SPLIT
    return clamp_before_after_split((client_x - container_left) / container_width)
