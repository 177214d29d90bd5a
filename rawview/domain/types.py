from typing import TypeAlias, Tuple
import numpy as np
import numpy.typing as npt


# Display-ready image, uint8 (Height, Width, 4), alpha always 255
RGBA8Buffer: TypeAlias = npt.NDArray[np.uint8]

# Tone curve lookup tables, uint8 (4, 256): red, green, blue, rgb
CurveLUTs: TypeAlias = npt.NDArray[np.uint8]

# (Width, Height) in pixels, possibly fractional after rotation
Size: TypeAlias = Tuple[float, float]

# Normalized (u, v) coordinate in [0, 1]^2
UV: TypeAlias = Tuple[float, float]

# https://en.wikipedia.org/wiki/Luma_(video)
LUMA_R = 0.2126
LUMA_G = 0.7152
LUMA_B = 0.0722
