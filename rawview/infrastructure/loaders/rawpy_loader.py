import io
import os
import numpy as np
import rawpy
from rawview.domain.models import RawPixelBuffer
from rawview.kernel.system.logging import get_logger

logger = get_logger(__name__)

NON_RAW_EXTENSIONS = (".tif", ".tiff", ".jpg", ".jpeg", ".png", ".webp", ".bmp")


class RawpyLoader:
    """
    Standard loader for digital RAW files (DNG, CR2, NEF, ARW, etc.)
    """

    def can_handle(self, file_path: str) -> bool:
        ext = os.path.splitext(file_path)[1].lower()
        # libraw's list is huge, exclude known non-raws instead
        return bool(ext) and ext not in NON_RAW_EXTENSIONS

    def load(self, file_path: str) -> RawPixelBuffer:
        with open(file_path, "rb") as f:
            blob = io.BytesIO(f.read())

        with rawpy.imread(blob) as raw:
            rgb = raw.postprocess(
                output_bps=16,
                use_camera_wb=True,
                no_auto_bright=True,
                gamma=(1, 1),
                output_color=rawpy.ColorSpace.sRGB,
            )

        rgb = np.ascontiguousarray(rgb, dtype=np.uint16)
        h, w = rgb.shape[:2]
        logger.info(f"Decoded RAW {os.path.basename(file_path)}: {w}x{h} 16-bit")
        return RawPixelBuffer(
            width=w, height=h, channels=3, bits_per_sample=16, data=rgb
        )
