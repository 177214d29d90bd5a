import dataclasses
import math
from dataclasses import dataclass, field
from typing import Optional
from rawview.domain.models import (
    AdjustmentParams,
    RawPixelBuffer,
    ToneCurve,
    TransformParams,
)
from rawview.features.auto.logic import compute_auto_adjustments
from rawview.kernel.system.logging import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class ViewerSnapshot:
    """
    Everything the core needs for one frame. Replaced, never patched.
    """

    image: Optional[RawPixelBuffer] = None
    adjustments: AdjustmentParams = field(default_factory=AdjustmentParams)
    tone_curve: ToneCurve = field(default_factory=ToneCurve)
    transform: TransformParams = field(default_factory=TransformParams)
    filename: str = ""


@dataclass(frozen=True)
class TaskState:
    kind: Optional[str] = None  # "open" | "export"
    progress: float = 0.0
    message: str = ""

    @property
    def loading(self) -> bool:
        return self.kind is not None


def clamp_progress(value: float) -> float:
    if not math.isfinite(value):
        return 0.0
    return max(0.0, min(1.0, value))


class ViewerSession:
    """
    Thin controller owning the mutable view state.

    Each image load bumps `generation`; an auto-adjust result computed for
    an older generation is dropped instead of overwriting newer edits.
    """

    def __init__(self) -> None:
        self.snapshot = ViewerSnapshot()
        self.task = TaskState()
        self.generation = 0

    def load_image(self, image: RawPixelBuffer, filename: str = "") -> int:
        self.generation += 1
        self.snapshot = ViewerSnapshot(image=image, filename=filename)
        logger.info(
            f"Session: loaded '{filename}' {image.width}x{image.height} "
            f"(generation {self.generation})"
        )
        return self.generation

    def reset(self) -> None:
        self.generation += 1
        self.snapshot = ViewerSnapshot()
        self.task = TaskState()

    def set_adjustments(self, params: AdjustmentParams) -> None:
        self.snapshot = dataclasses.replace(self.snapshot, adjustments=params)

    def set_tone_curve(self, curve: ToneCurve) -> None:
        self.snapshot = dataclasses.replace(self.snapshot, tone_curve=curve)

    def set_transform(self, transform: TransformParams) -> None:
        self.snapshot = dataclasses.replace(self.snapshot, transform=transform)

    def commit_auto_adjust(self, params: AdjustmentParams, generation: int) -> bool:
        """
        Applies an estimator result if it belongs to the current image.
        """
        if generation != self.generation:
            logger.info(
                f"Session: discarding auto-adjust for generation {generation} "
                f"(current {self.generation})"
            )
            return False
        self.set_adjustments(params)
        return True

    def apply_auto_adjust(self) -> bool:
        snap = self.snapshot
        if snap.image is None:
            return False
        generation = self.generation
        params = compute_auto_adjustments(snap.image, snap.adjustments, snap.transform)
        return self.commit_auto_adjust(params, generation)

    def begin_task(self, kind: str, message: str = "") -> None:
        self.task = TaskState(kind=kind, progress=0.0, message=message)

    def update_task(self, progress: float, message: Optional[str] = None) -> None:
        self.task = TaskState(
            kind=self.task.kind,
            progress=clamp_progress(progress),
            message=self.task.message if message is None else message,
        )

    def finish_task(self) -> None:
        self.task = TaskState()
