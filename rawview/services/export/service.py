from typing import Callable, Optional
from rawview.domain.models import (
    AdjustmentParams,
    ExportOptions,
    RawPixelBuffer,
    ToneCurve,
    TransformParams,
)
from rawview.domain.types import RGBA8Buffer
from rawview.features.export.logic import resize_rgba8, resolve_export_size
from rawview.kernel.system.logging import get_logger
from rawview.services.rendering.factory import create_renderer
from rawview.services.rendering.renderer import BaseRenderer

logger = get_logger(__name__)


class ExportService:
    """
    Full-resolution render for export. Produces the RGBA8 frame the
    external encoder consumes; encoding and saving happen elsewhere.
    """

    def __init__(
        self, renderer_factory: Optional[Callable[[], BaseRenderer]] = None
    ) -> None:
        self.renderer_factory = renderer_factory or create_renderer

    def render_export(
        self,
        image: RawPixelBuffer,
        params: AdjustmentParams,
        curve: ToneCurve,
        transform: TransformParams,
        options: ExportOptions,
    ) -> RGBA8Buffer:
        with self.renderer_factory() as renderer:
            renderer.upload_image(image)
            full_w, full_h = renderer.full_resolution_size(transform)
            out_w, out_h = resolve_export_size(
                full_w,
                full_h,
                options.target_width,
                options.target_height,
                options.upscale,
            )
            frame = renderer.render(
                params, curve, transform, size=(full_w, full_h), fit=False
            )

        logger.info(
            f"Export '{options.filename}' ({options.format}): "
            f"{full_w}x{full_h} -> {out_w}x{out_h}"
        )
        return resize_rgba8(frame, out_w, out_h)
