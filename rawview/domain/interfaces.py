from typing import Protocol, runtime_checkable
from rawview.domain.models import (
    AdjustmentParams,
    RawPixelBuffer,
    RenderBackend,
    ToneCurve,
    TransformParams,
)
from rawview.domain.types import RGBA8Buffer


@runtime_checkable
class IRenderer(Protocol):
    """
    Interface shared by every execution backend of the adjustment pipeline.
    """

    backend: RenderBackend

    def upload_image(self, image: RawPixelBuffer) -> None: ...

    def set_viewport(
        self, width: int, height: int, device_pixel_ratio: float = 1.0
    ) -> None: ...

    def render(
        self, params: AdjustmentParams, curve: ToneCurve, transform: TransformParams
    ) -> RGBA8Buffer: ...

    def read_pixels(self) -> RGBA8Buffer: ...

    def dispose(self) -> None: ...


class IImageLoader(Protocol):
    """
    Strategy interface for turning a file into a decoded pixel buffer.
    """

    def can_handle(self, file_path: str) -> bool: ...

    def load(self, file_path: str) -> RawPixelBuffer: ...
