from typing import Optional
from rawview.domain.errors import RendererUnavailableError
from rawview.domain.models import RenderBackend
from rawview.kernel.system.config import APP_CONFIG
from rawview.kernel.system.logging import get_logger
from rawview.services.rendering.renderer import (
    BaseRenderer,
    ParallelRenderer,
    ScalarRenderer,
)

logger = get_logger(__name__)


def create_renderer(
    prefer_parallel: Optional[bool] = None,
    backend: Optional[RenderBackend] = None,
) -> BaseRenderer:
    """
    Creates the best available renderer.

    An explicit `backend` is honoured as-is. Otherwise the parallel executor
    is tried first (unless disabled in config) and the scalar one is used
    when it cannot start.
    """
    if backend == RenderBackend.SCALAR:
        return ScalarRenderer()
    if backend == RenderBackend.PARALLEL:
        return ParallelRenderer()

    if prefer_parallel is None:
        prefer_parallel = APP_CONFIG.use_parallel

    if prefer_parallel:
        try:
            renderer = ParallelRenderer()
            logger.info("Renderer: parallel backend initialized")
            return renderer
        except RendererUnavailableError as e:
            logger.warning(f"Renderer: parallel backend unavailable, using scalar: {e}")

    return ScalarRenderer()
