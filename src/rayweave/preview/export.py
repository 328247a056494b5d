"""Image export utilities.

Rendered frames are written as 8-bit RGB PNG files through Pillow.

Example:
    >>> from rayweave.preview.export import generate_gradient, save_png
    >>> save_png(generate_gradient(256, 256), "out/gradient.png", fix_dirs=True)
"""

from __future__ import annotations

import logging
from pathlib import Path

import numpy as np
import numpy.typing as npt
from PIL import Image as PILImage

from rayweave.core.frame import FrameBuffer, to_frame_buffer

logger = logging.getLogger(__name__)


def save_png(frame: FrameBuffer, filepath: str | Path, *, fix_dirs: bool = False) -> Path:
    """Write a frame to a PNG file.

    Args:
        frame: The frame to write.
        filepath: Output file path.
        fix_dirs: Create missing parent directories instead of failing.

    Returns:
        The path written to.

    Raises:
        FileNotFoundError: If the parent directory does not exist and
            fix_dirs is False.
        OSError: If the file cannot be written.
    """
    path = Path(filepath)
    parent = path.parent
    if not parent.exists():
        if not fix_dirs:
            raise FileNotFoundError(
                f"Output directory '{parent}' does not exist (use fix_dirs to create it)"
            )
        logger.debug("Creating output directory %s", parent)
        parent.mkdir(parents=True, exist_ok=True)

    pil_image = PILImage.fromarray(frame.pixels)
    pil_image.save(path, format="PNG")
    logger.info("Saved %dx%d image to %s", frame.width, frame.height, path)
    return path


def save_png_from_array(
    image: npt.NDArray[np.float32],
    filepath: str | Path,
    *,
    gamma_correction: bool = True,
    samples_per_pixel: int = 1,
    fix_dirs: bool = False,
) -> Path:
    """Encode a linear (H, W, 3) image and write it as a PNG file."""
    frame = to_frame_buffer(image, samples_per_pixel, gamma_correction)
    return save_png(frame, filepath, fix_dirs=fix_dirs)


def generate_gradient(width: int, height: int) -> FrameBuffer:
    """Build the test gradient image.

    Red grows from left to right, green from bottom to top, and blue is a
    constant 0.25. Channels are rounded to the nearest 8-bit value.

    Raises:
        ValueError: If a dimension is not positive.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")

    x = np.arange(width, dtype=np.float64) / max(width - 1, 1)
    # Rows are stored top to bottom, so the top row has the largest y
    y = np.arange(height - 1, -1, -1, dtype=np.float64) / max(height - 1, 1)

    pixels = np.empty((height, width, 3), dtype=np.uint8)
    pixels[:, :, 0] = np.round(255.0 * x)[None, :]
    pixels[:, :, 1] = np.round(255.0 * y)[:, None]
    pixels[:, :, 2] = round(255.0 * 0.25)
    return FrameBuffer(pixels=pixels, width=width, height=height, samples_per_pixel=1)


def compute_rmse(
    image_a: npt.NDArray[np.floating[npt.NBitBase]],
    image_b: npt.NDArray[np.floating[npt.NBitBase]],
) -> float:
    """Compute root mean squared error between two images.

    Raises:
        ValueError: If image shapes don't match.
    """
    if image_a.shape != image_b.shape:
        raise ValueError(f"Image shapes must match: {image_a.shape} vs {image_b.shape}")

    diff = image_a.astype(np.float64) - image_b.astype(np.float64)
    return float(np.sqrt(np.mean(diff**2)))
