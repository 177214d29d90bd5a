from dataclasses import dataclass, asdict
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple, Union
import numpy as np


class CropAspectPreset(Enum):
    """Aspect constraint for interactive crop editing. Not read by the pipeline."""

    FREE = "free"
    SQUARE = "1:1"
    FOUR_THREE = "4:3"
    THREE_TWO = "3:2"
    SIXTEEN_NINE = "16:9"


class RenderBackend(Enum):
    PARALLEL = "parallel"
    SCALAR = "scalar"


@dataclass(frozen=True, eq=False)
class RawPixelBuffer:
    """
    Decoded pixel data as handed over by the decoder.

    `data` is a flat, row-major sample array of at least
    width * height * channels samples. It is stored as a read-only view so
    the buffer stays immutable for its whole lifetime.
    """

    width: int
    height: int
    channels: int
    bits_per_sample: int
    data: np.ndarray

    def __post_init__(self) -> None:
        arr = np.asarray(self.data).reshape(-1).view()
        arr.flags.writeable = False
        object.__setattr__(self, "data", arr)

    @property
    def pixel_count(self) -> int:
        return self.width * self.height


@dataclass(frozen=True)
class AdjustmentParams:
    """
    Complete set of colour adjustments for one image.
    """

    exposure: float = 0.0  # EV, -5..5
    temperature: float = 0.0  # -100..100
    tint: float = 0.0  # -100..100
    contrast: float = 0.0
    highlights: float = 0.0
    shadows: float = 0.0
    whites: float = 0.0
    blacks: float = 0.0
    saturation: float = 0.0
    vibrance: float = 0.0
    sharpness: float = 0.0  # 0..100, carried for the UI only

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AdjustmentParams":
        """
        from UI state. Unknown keys are dropped, None falls back to default.
        """
        valid_keys = cls.__dataclass_fields__.keys()
        return cls(
            **{k: float(v) for k, v in data.items() if k in valid_keys and v is not None}
        )


@dataclass(frozen=True)
class CurvePoint:
    x: float
    y: float


PointLike = Union[CurvePoint, Tuple[float, float], Dict[str, float]]

IDENTITY_POINTS: Tuple[CurvePoint, ...] = (CurvePoint(0.0, 0.0), CurvePoint(1.0, 1.0))


def _to_points(points: Iterable[PointLike]) -> Tuple[CurvePoint, ...]:
    res = []
    for p in points:
        if isinstance(p, CurvePoint):
            res.append(p)
        elif isinstance(p, dict):
            res.append(CurvePoint(float(p["x"]), float(p["y"])))
        else:
            x, y = p
            res.append(CurvePoint(float(x), float(y)))
    return tuple(res)


@dataclass(frozen=True)
class ToneCurve:
    """
    Sparse control points per channel. 'rgb' is the composite curve applied
    after the per-channel ones.
    """

    rgb: Tuple[CurvePoint, ...] = IDENTITY_POINTS
    red: Tuple[CurvePoint, ...] = IDENTITY_POINTS
    green: Tuple[CurvePoint, ...] = IDENTITY_POINTS
    blue: Tuple[CurvePoint, ...] = IDENTITY_POINTS

    def __post_init__(self) -> None:
        for name in ("rgb", "red", "green", "blue"):
            object.__setattr__(self, name, _to_points(getattr(self, name)))

    def signature(self) -> str:
        def encode(points: Tuple[CurvePoint, ...]) -> str:
            return ";".join(f"{p.x:.5f},{p.y:.5f}" for p in points)

        return "|".join(
            encode(pts) for pts in (self.rgb, self.red, self.green, self.blue)
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Iterable[PointLike]]) -> "ToneCurve":
        valid_keys = cls.__dataclass_fields__.keys()
        return cls(**{k: v for k, v in data.items() if k in valid_keys and v is not None})


@dataclass(frozen=True)
class CropRect:
    x: float
    y: float
    width: float
    height: float


@dataclass(frozen=True)
class TransformParams:
    rotation_deg: float = 0.0
    crop_rect: Optional[CropRect] = None
    crop_applied: bool = False
    crop_aspect_preset: CropAspectPreset = CropAspectPreset.FREE

    @property
    def active_crop(self) -> Optional[CropRect]:
        """Crop that geometry should honour, or None."""
        if self.crop_applied and self.crop_rect is not None:
            return self.crop_rect
        return None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransformParams":
        crop = data.get("crop_rect")
        return cls(
            rotation_deg=float(data.get("rotation_deg", 0.0)),
            crop_rect=CropRect(**crop) if crop else None,
            crop_applied=bool(data.get("crop_applied", False)),
            crop_aspect_preset=CropAspectPreset(
                data.get("crop_aspect_preset", CropAspectPreset.FREE.value)
            ),
        )


@dataclass(frozen=True)
class ExportOptions:
    """
    Export sizing. Format, quality and filename are passed through to the
    external encoder untouched.
    """

    target_width: int
    target_height: int
    upscale: bool = False
    format: str = "jpeg"
    quality: int = 92
    filename: str = "export"


@dataclass(frozen=True)
class DecodedLayout:
    width: int
    height: int
    channels: int
    bits_per_sample: int
    expected_byte_length: int
    has_mismatch: bool
