class InvalidPixelBufferError(ValueError):
    """
    Raised when a decoded buffer violates the decoder hand-off contract
    (non-positive dimensions, channel count outside 1..4, unsupported bit
    depth or a short sample array).
    """


class RendererUnavailableError(RuntimeError):
    """Raised when a renderer is used without an image or after disposal."""


class UnsupportedImageError(ValueError):
    """Raised by the loader factory for file types it cannot route."""
