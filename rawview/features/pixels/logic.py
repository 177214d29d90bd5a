import math
import numpy as np
from rawview.domain.errors import InvalidPixelBufferError
from rawview.domain.models import DecodedLayout, RawPixelBuffer
from rawview.domain.types import RGBA8Buffer
from rawview.kernel.system.performance import time_function

SUPPORTED_BITS = (8, 16)


def validate_pixel_buffer(image: RawPixelBuffer) -> None:
    """
    Rejects buffers that break the decoder hand-off contract.
    Image content never fails here, only malformed metadata does.
    """
    if image.width <= 0 or image.height <= 0:
        raise InvalidPixelBufferError(
            f"Invalid dimensions {image.width}x{image.height}: both must be >= 1"
        )
    if not 1 <= image.channels <= 4:
        raise InvalidPixelBufferError(
            f"Invalid channel count {image.channels}: expected 1..4"
        )
    if image.bits_per_sample not in SUPPORTED_BITS:
        raise InvalidPixelBufferError(
            f"Unsupported bit depth {image.bits_per_sample}: expected 8 or 16"
        )
    required = image.width * image.height * image.channels
    if image.data.size < required:
        raise InvalidPixelBufferError(
            f"Sample array too short: got {image.data.size}, need {required} "
            f"({image.width}x{image.height}x{image.channels})"
        )


@time_function
def to_rgba8(image: RawPixelBuffer) -> RGBA8Buffer:
    """
    Converts decoded samples to display RGBA8, shape (height, width, 4).

    1 channel is replicated to grey, 2 channels map to R=c0 and G=B=c1,
    3+ channels keep the leading three. 16-bit samples keep their high
    byte (truncation, not rounding).
    """
    validate_pixel_buffer(image)

    w, h, ch = image.width, image.height, image.channels
    samples = image.data[: w * h * ch].reshape(h, w, ch)

    if image.bits_per_sample == 16:
        src = np.right_shift(samples.astype(np.uint16), 8).astype(np.uint8)
    else:
        src = samples.astype(np.uint8)

    rgba = np.empty((h, w, 4), dtype=np.uint8)
    if ch == 1:
        rgba[..., 0] = src[..., 0]
        rgba[..., 1] = src[..., 0]
        rgba[..., 2] = src[..., 0]
    elif ch == 2:
        rgba[..., 0] = src[..., 0]
        rgba[..., 1] = src[..., 1]
        rgba[..., 2] = src[..., 1]
    else:
        rgba[..., :3] = src[..., :3]
    rgba[..., 3] = 255
    return rgba


def normalize_decoded_layout(
    width: int,
    height: int,
    channels: int,
    bits_per_sample: int,
    byte_length: int,
) -> DecodedLayout:
    """
    Reconciles decoder metadata with the actual payload length.

    Some decoders report 16 bits while delivering 8-bit packed samples, or
    report a channel count that does not match the payload. The layout is
    corrected where the payload makes the answer unambiguous, and shrunk to
    fit when the payload is short.
    """
    width = max(1, int(math.floor(width)))
    height = max(1, int(math.floor(height)))
    channels = max(1, int(math.floor(channels)))
    reported_bits = bits_per_sample
    byte_length = max(0, int(math.floor(byte_length)))
    sample_count = width * height * channels

    if bits_per_sample == 16 and sample_count > 0 and byte_length == sample_count:
        bits_per_sample = 8

    bytes_per_sample = 2 if bits_per_sample == 16 else 1
    initial_expected = sample_count * (2 if reported_bits == 16 else 1)

    if initial_expected != byte_length:
        pixels = width * height
        inferred, rem = divmod(byte_length, pixels * bytes_per_sample)
        if rem == 0 and 1 <= inferred <= 4:
            channels = inferred

    expected = width * height * channels * bytes_per_sample

    if expected > byte_length:
        available = byte_length // (channels * bytes_per_sample)
        if available > 0:
            if available % width == 0:
                height = available // width
            elif available % height == 0:
                width = available // height
            else:
                aspect = width / height
                fitted_w = max(1, int(math.floor(math.sqrt(available * aspect) + 0.5)))
                fitted_w = min(fitted_w, available)
                fitted_h = max(1, available // fitted_w)
                while fitted_w * fitted_h > available and fitted_w > 1:
                    fitted_w -= 1
                    fitted_h = max(1, available // fitted_w)
                width, height = fitted_w, fitted_h
        expected = width * height * channels * bytes_per_sample

    return DecodedLayout(
        width=width,
        height=height,
        channels=channels,
        bits_per_sample=bits_per_sample,
        expected_byte_length=min(expected, byte_length),
        has_mismatch=initial_expected != byte_length
        or bits_per_sample != reported_bits,
    )
