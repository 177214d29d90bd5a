import os
import numpy as np
import imageio.v3 as iio
from rawview.domain.errors import UnsupportedImageError
from rawview.domain.models import RawPixelBuffer

RASTER_EXTENSIONS = (".tif", ".tiff", ".jpg", ".jpeg", ".png", ".webp", ".bmp")


class ImageioLoader:
    """
    Loader for already-developed raster files (TIFF, JPEG, PNG).
    """

    def can_handle(self, file_path: str) -> bool:
        return file_path.lower().endswith(RASTER_EXTENSIONS)

    def load(self, file_path: str) -> RawPixelBuffer:
        img = iio.imread(file_path)
        if img.ndim == 3 and img.shape[2] > 4:
            img = img[:, :, :4]

        if img.dtype == np.uint8:
            bits = 8
        elif img.dtype == np.uint16:
            bits = 16
        elif np.issubdtype(img.dtype, np.integer) and img.min() >= 0 and img.max() <= 65535:
            # Pillow hands 16-bit greyscale back as int32
            img = img.astype(np.uint16)
            bits = 16
        elif np.issubdtype(img.dtype, np.floating):
            img = (np.clip(img, 0.0, 1.0) * 65535.0 + 0.5).astype(np.uint16)
            bits = 16
        else:
            raise UnsupportedImageError(
                f"{os.path.basename(file_path)}: unsupported sample type {img.dtype}"
            )

        h, w = img.shape[:2]
        channels = 1 if img.ndim == 2 else img.shape[2]
        return RawPixelBuffer(
            width=w,
            height=h,
            channels=channels,
            bits_per_sample=bits,
            data=np.ascontiguousarray(img),
        )
