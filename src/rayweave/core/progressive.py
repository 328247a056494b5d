"""Progressive rendering and the single-frame render pipeline.

ProgressiveRenderer wraps the global render target for workflows that add
samples over time (preview loops, progress reporting). render_frame() runs a
complete render of a built scene with fixed settings and returns the finished
8-bit frame.

Example:
    >>> from rayweave.core.progressive import ProgressiveRenderer
    >>> renderer = ProgressiveRenderer(320, 180, seed=3)
    >>> for current, target in renderer.render_progressive(64, batch_size=8):
    ...     print(f"{current}/{target} samples")
    >>> frame = renderer.to_frame_buffer()
"""

import logging
import time
from collections.abc import Callable, Generator
from dataclasses import replace
from typing import TYPE_CHECKING

import numpy as np
import numpy.typing as npt

from rayweave.camera.pinhole import setup_camera
from rayweave.core.frame import FrameBuffer, to_frame_buffer
from rayweave.core.integrator import (
    MAX_DEPTH,
    clear_render_target,
    get_image_numpy,
    get_total_samples,
    render_image,
    render_rows,
    setup_render_target,
)
from rayweave.core.settings import RenderSettings

if TYPE_CHECKING:
    from rayweave.scene.description import Scene

logger = logging.getLogger(__name__)

# Callback receives (current_samples, total_target_samples)
ProgressCallback = Callable[[int, int], None]


class ProgressiveRenderer:
    """Accumulates samples into the render target over several calls.

    The renderer owns the image size and seed; the accumulated colour lives
    in the global integrator fields, so only one renderer is active at a time.

    Attributes:
        width: Image width in pixels.
        height: Image height in pixels.
        seed: Seed of the pixel random streams.
    """

    def __init__(self, width: int, height: int, seed: int = 0) -> None:
        """Initialize the renderer and its render target.

        Raises:
            ValueError: If the dimensions are not supported.
        """
        self._width = width
        self._height = height
        self._seed = seed
        setup_render_target(width, height, seed)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def sample_count(self) -> int:
        """Number of samples accumulated per pixel so far."""
        return get_total_samples()

    def reset(self) -> None:
        """Discard accumulated samples and restart the random streams."""
        setup_render_target(self._width, self._height, self._seed)

    def resize(self, width: int, height: int) -> None:
        """Change the image size and discard accumulated samples.

        Raises:
            ValueError: If the dimensions are not supported.
        """
        setup_render_target(width, height, self._seed)
        self._width = width
        self._height = height

    def _render_batch(self, batch: int, max_depth: int, jitter: bool) -> None:
        render_rows(0, self._height, batch, max_depth, jitter)

    def render(
        self,
        num_samples: int = 1,
        max_depth: int = MAX_DEPTH,
        anti_aliasing: bool = True,
        batch_size: int = 1,
        callback: ProgressCallback | None = None,
    ) -> None:
        """Add samples to every pixel, reporting progress after each batch.

        Args:
            num_samples: Samples per pixel to add.
            max_depth: Depth budget of each path.
            anti_aliasing: Whether to jitter samples. Every sample added by the
                renderer is jittered, even a lone first one, so later calls
                never mix centred and jittered samples in one average.
            batch_size: Samples per pixel rendered between callbacks.
            callback: Called as callback(current_total, target_total).

        Raises:
            RuntimeError: If the camera has not been set up.
            ValueError: If batch_size is not positive.
        """
        for current, target in self.render_progressive(
            num_samples, max_depth, anti_aliasing, batch_size
        ):
            if callback is not None:
                callback(current, target)

    def render_progressive(
        self,
        num_samples: int = 1,
        max_depth: int = MAX_DEPTH,
        anti_aliasing: bool = True,
        batch_size: int = 1,
    ) -> Generator[tuple[int, int], None, None]:
        """Add samples to every pixel, yielding progress after each batch.

        Yields:
            Tuple of (current_total_samples, target_total_samples).

        Raises:
            RuntimeError: If the camera has not been set up.
            ValueError: If batch_size is not positive.
        """
        if batch_size <= 0:
            raise ValueError(f"batch_size must be positive, got {batch_size}")
        if num_samples <= 0:
            return

        target_samples = self.sample_count + num_samples

        remaining = num_samples
        while remaining > 0:
            batch = min(batch_size, remaining)
            self._render_batch(batch, max_depth, anti_aliasing)
            remaining -= batch
            yield (self.sample_count, target_samples)

    def clear(self) -> None:
        """Zero the accumulated samples without reseeding the streams."""
        clear_render_target()

    def get_image_numpy(self) -> npt.NDArray[np.float32]:
        """Averaged linear image, shape (height, width, 3), top row first."""
        return get_image_numpy()

    def to_frame_buffer(self, gamma_correction: bool = True) -> FrameBuffer:
        """Quantize the current image into an 8-bit frame."""
        return to_frame_buffer(self.get_image_numpy(), self.sample_count, gamma_correction)

    def __repr__(self) -> str:
        return (
            f"ProgressiveRenderer(width={self.width}, height={self.height}, "
            f"samples={self.sample_count})"
        )


def render_frame(
    scene: "Scene",
    settings: RenderSettings,
    callback: Callable[[int, int], None] | None = None,
) -> FrameBuffer:
    """Render a built scene into a finished frame.

    The scene's camera is re-aimed with the aspect ratio of the settings, the
    pixel streams are seeded from settings.seed, all samples are accumulated
    band by band and the average is gamma encoded (unless disabled) and
    quantized.

    Args:
        scene: Scene returned by build_scene().
        settings: Render settings.
        callback: Called as callback(rows_done, height) after every band.

    Returns:
        The rendered FrameBuffer.

    Raises:
        ValueError: If the settings are invalid.
        RuntimeError: If the scene has no objects or no camera, or another
            scene has been loaded since it was built.
    """
    settings.validate()
    if not scene.is_loaded:
        raise RuntimeError("Scene is no longer loaded; build it again before rendering")
    if scene.camera is None:
        raise RuntimeError("Scene has no camera")
    if scene.manager.get_sphere_count() == 0:
        raise RuntimeError("Scene has no objects to render")

    setup_camera(replace(scene.camera, aspect_ratio=settings.aspect_ratio))
    setup_render_target(settings.width, settings.height, settings.seed)

    logger.info(
        "Rendering %dx%d, %d samples per pixel, %d objects",
        settings.width,
        settings.height,
        settings.samples_per_pixel,
        scene.manager.get_sphere_count(),
    )
    start = time.perf_counter()
    render_image(
        samples=settings.samples_per_pixel,
        max_depth=settings.max_depth,
        anti_aliasing=settings.anti_aliasing,
        callback=callback,
    )
    image = get_image_numpy()
    elapsed = time.perf_counter() - start

    rays = settings.width * settings.height * settings.samples_per_pixel
    logger.info(
        "Rendered in %.2fs (%.0f camera rays/s)",
        elapsed,
        rays / elapsed if elapsed > 0 else float("inf"),
    )

    return to_frame_buffer(image, settings.samples_per_pixel, settings.gamma_correction)
