from typing import List
from rawview.domain.errors import UnsupportedImageError
from rawview.domain.interfaces import IImageLoader
from rawview.domain.models import RawPixelBuffer
from rawview.features.pixels.logic import validate_pixel_buffer
from rawview.infrastructure.loaders.imageio_loader import ImageioLoader
from rawview.infrastructure.loaders.rawpy_loader import RawpyLoader


class ImageLoaderFactory:
    """
    Dispatches the appropriate loader for a given file.
    """

    def __init__(self) -> None:
        # Raster types first, rawpy takes whatever is left
        self.loaders: List[IImageLoader] = [ImageioLoader(), RawpyLoader()]

    def get_loader(self, file_path: str) -> IImageLoader:
        for loader in self.loaders:
            if loader.can_handle(file_path):
                return loader
        raise UnsupportedImageError(f"No loader found for: {file_path}")

    def load(self, file_path: str) -> RawPixelBuffer:
        buffer = self.get_loader(file_path).load(file_path)
        validate_pixel_buffer(buffer)
        return buffer


loader_factory = ImageLoaderFactory()
