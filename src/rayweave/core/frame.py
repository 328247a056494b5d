"""Conversion of accumulated linear colour into displayable pixels.

Averaged sample colours are linear light values. Before they are written out
they are gamma encoded with gamma 2 (a per-channel square root), clamped to
[0, 1] and quantized to 8 bits by truncation.
"""

from dataclasses import dataclass

import numpy as np
import numpy.typing as npt

GAMMA = 2.0


@dataclass(frozen=True, eq=False)
class FrameBuffer:
    """A finished 8-bit RGB image.

    Attributes:
        pixels: uint8 array of shape (height, width, 3), rows top to bottom.
        width: Image width in pixels.
        height: Image height in pixels.
        samples_per_pixel: Number of samples averaged into every pixel.
    """

    pixels: npt.NDArray[np.uint8]
    width: int
    height: int
    samples_per_pixel: int

    def __post_init__(self) -> None:
        if self.pixels.shape != (self.height, self.width, 3):
            raise ValueError(
                f"Pixel array shape {self.pixels.shape} does not match "
                f"{self.width}x{self.height} RGB"
            )
        if self.pixels.dtype != np.uint8:
            raise ValueError(f"Pixel array must be uint8, got {self.pixels.dtype}")


def gamma_encode(image: npt.ArrayLike) -> npt.NDArray[np.float32]:
    """Encode linear colour with gamma 2 and clamp to [0, 1].

    Negative and NaN values become 0.
    """
    linear = np.nan_to_num(np.asarray(image, dtype=np.float32), nan=0.0, posinf=1.0, neginf=0.0)
    return np.clip(np.sqrt(np.maximum(linear, 0.0)), 0.0, 1.0)


def quantize(image: npt.ArrayLike) -> npt.NDArray[np.uint8]:
    """Map colour in [0, 1] to 0..255 as floor(255 * c); out-of-range values are clamped."""
    values = np.nan_to_num(np.asarray(image, dtype=np.float32), nan=0.0, posinf=1.0, neginf=0.0)
    return np.floor(255.0 * np.clip(values, 0.0, 1.0)).astype(np.uint8)


def to_frame_buffer(
    image: npt.ArrayLike,
    samples_per_pixel: int,
    gamma_correction: bool = True,
) -> FrameBuffer:
    """Build a FrameBuffer from an averaged linear image.

    Args:
        image: Linear colour, shape (height, width, 3), top row first.
        samples_per_pixel: Number of samples behind every pixel.
        gamma_correction: Apply gamma 2 encoding before quantizing.

    Returns:
        The quantized frame.
    """
    linear = np.asarray(image, dtype=np.float32)
    if linear.ndim != 3 or linear.shape[2] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {linear.shape}")

    encoded = gamma_encode(linear) if gamma_correction else linear
    height, width = linear.shape[:2]
    return FrameBuffer(
        pixels=quantize(encoded),
        width=width,
        height=height,
        samples_per_pixel=samples_per_pixel,
    )
