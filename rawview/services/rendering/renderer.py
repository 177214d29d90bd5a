import math
from typing import Any, Optional, Tuple
import numpy as np
from rawview.domain.errors import RendererUnavailableError
from rawview.domain.models import (
    AdjustmentParams,
    RawPixelBuffer,
    RenderBackend,
    ToneCurve,
    TransformParams,
)
from rawview.domain.types import CurveLUTs, RGBA8Buffer
from rawview.features.adjust import kernels
from rawview.features.adjust.logic import run_pipeline
from rawview.features.curves.logic import CurveLutCache
from rawview.features.geometry.logic import (
    build_source_grid,
    get_effective_aspect,
    get_effective_image_size,
)
from rawview.features.pixels.logic import to_rgba8
from rawview.features.viewer.logic import (
    clamp_before_after_split,
    resolve_preview_pixel_ratio,
)
from rawview.kernel.system.logging import get_logger

logger = get_logger(__name__)

GridKey = Tuple[int, int, float, Any, Optional[float]]


class BaseRenderer:
    """
    Owns the normalized source image, the LUT cache and the last frame.
    Subclasses only choose how the shared per-pixel kernel is executed.
    """

    backend: RenderBackend

    def __init__(self) -> None:
        self._source: Optional[RGBA8Buffer] = None
        self._frame: Optional[RGBA8Buffer] = None
        self._viewport: Tuple[int, int] = (0, 0)
        self._luts = CurveLutCache()
        self._grid_key: Optional[GridKey] = None
        self._grid: Optional[Tuple[np.ndarray, np.ndarray]] = None
        self._disposed = False

    def __enter__(self) -> "BaseRenderer":
        return self

    def __exit__(self, *exc: Any) -> None:
        self.dispose()

    @property
    def source_size(self) -> Tuple[int, int]:
        """(width, height) of the uploaded image."""
        src = self._require_source()
        return src.shape[1], src.shape[0]

    def upload_image(self, image: RawPixelBuffer) -> None:
        self._require_alive()
        self._source = to_rgba8(image)
        self._frame = None
        self._grid_key = None
        self._grid = None
        logger.info(
            f"{self.backend.value} renderer: uploaded {image.width}x{image.height} "
            f"({image.channels}ch, {image.bits_per_sample}-bit)"
        )

    def set_viewport(
        self,
        width: int,
        height: int,
        device_pixel_ratio: float = 1.0,
        interactive: bool = False,
    ) -> None:
        """
        Sets the output size in CSS-like units; the rendered frame is scaled
        by the preview pixel ratio.
        """
        ratio = resolve_preview_pixel_ratio(device_pixel_ratio, interactive)
        self._viewport = (
            max(1, int(math.floor(width * ratio + 0.5))),
            max(1, int(math.floor(height * ratio + 0.5))),
        )

    @property
    def viewport(self) -> Tuple[int, int]:
        return self._viewport

    def render(
        self,
        params: AdjustmentParams,
        curve: ToneCurve,
        transform: TransformParams,
        size: Optional[Tuple[int, int]] = None,
        fit: bool = True,
    ) -> RGBA8Buffer:
        """
        Renders the rotated/cropped image into `size` (or the viewport, or
        the full effective resolution when neither is set).

        With `fit` the image keeps its aspect ratio and is centred, with a
        black letterbox around it. Without it the image fills the frame.
        """
        src = self._require_source()
        out_w, out_h = size or self._viewport
        if out_w <= 0 or out_h <= 0:
            out_w, out_h = self.full_resolution_size(transform)

        fit_aspect = None
        if fit:
            sw, sh = self.source_size
            fit_aspect = get_effective_aspect(sw, sh, transform)
        xs, ys = self._source_grid(out_w, out_h, transform, fit_aspect)
        luts = self._luts.get(curve)
        self._frame = self._execute(src, xs, ys, params, luts)
        return self._frame

    def render_before_after(
        self,
        params: AdjustmentParams,
        curve: ToneCurve,
        transform: TransformParams,
        split: float,
        size: Optional[Tuple[int, int]] = None,
    ) -> RGBA8Buffer:
        """
        Left of the split shows the unedited image (default parameters and
        curve), right of it the edited one.
        """
        before = self.render(AdjustmentParams(), ToneCurve(), transform, size)
        after = self.render(params, curve, transform, size)
        split_x = int(round(clamp_before_after_split(split) * after.shape[1]))
        frame = after.copy()
        frame[:, :split_x] = before[:, :split_x]
        self._frame = frame
        return frame

    def full_resolution_size(self, transform: TransformParams) -> Tuple[int, int]:
        sw, sh = self.source_size
        w, h = get_effective_image_size(sw, sh, transform)
        return max(1, int(math.floor(w + 0.5))), max(1, int(math.floor(h + 0.5)))

    def read_pixels(self) -> RGBA8Buffer:
        """Last rendered frame, (height, width, 4), top row first."""
        self._require_alive()
        if self._frame is None:
            raise RendererUnavailableError("Nothing has been rendered yet")
        return self._frame

    def dispose(self) -> None:
        self._source = None
        self._frame = None
        self._grid = None
        self._grid_key = None
        self._luts.clear()
        self._disposed = True

    def _source_grid(
        self,
        out_w: int,
        out_h: int,
        transform: TransformParams,
        fit_aspect: Optional[float],
    ) -> Tuple[np.ndarray, np.ndarray]:
        sw, sh = self.source_size
        key: GridKey = (
            out_w,
            out_h,
            transform.rotation_deg,
            transform.active_crop,
            fit_aspect,
        )
        if self._grid is None or key != self._grid_key:
            self._grid = build_source_grid(
                out_w,
                out_h,
                sw,
                sh,
                transform.rotation_deg,
                transform.active_crop,
                fit_aspect,
            )
            self._grid_key = key
        return self._grid

    def _execute(
        self,
        src: RGBA8Buffer,
        xs: np.ndarray,
        ys: np.ndarray,
        params: AdjustmentParams,
        luts: CurveLUTs,
    ) -> RGBA8Buffer:
        return run_pipeline(src, xs, ys, params, luts, backend=self.backend)

    def _require_alive(self) -> None:
        if self._disposed:
            raise RendererUnavailableError(f"{self.backend.value} renderer disposed")

    def _require_source(self) -> RGBA8Buffer:
        self._require_alive()
        if self._source is None:
            raise RendererUnavailableError("No image uploaded")
        return self._source


class ParallelRenderer(BaseRenderer):
    """
    Multi-threaded executor (numba prange). Construction runs the kernel
    once on a single pixel so an unusable threading layer fails here.
    """

    backend = RenderBackend.PARALLEL

    def __init__(self) -> None:
        super().__init__()
        self._probe()

    def _probe(self) -> None:
        src = np.zeros((1, 1, 4), dtype=np.uint8)
        grid = np.zeros((1, 1), dtype=np.int64)
        luts = np.zeros((4, 256), dtype=np.uint8)
        out = np.empty((1, 1, 4), dtype=np.uint8)
        u = np.zeros(kernels.UNIFORM_COUNT, dtype=np.float64)
        try:
            kernels.render_parallel(src, grid, grid, u, luts, out)
        except Exception as e:
            raise RendererUnavailableError(f"Parallel executor unavailable: {e}") from e


class ScalarRenderer(BaseRenderer):
    """Single-threaded fallback executor."""

    backend = RenderBackend.SCALAR