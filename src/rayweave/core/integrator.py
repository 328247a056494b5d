"""Colour resolution and frame accumulation.

This module turns camera rays into pixel colours. A ray's colour is defined by
the bounded recursion

    ray_color(ray, depth):
        depth <= 0        -> black
        closest hit       -> terminal material colour, or
                             attenuation * ray_color(scattered, depth - 1)
        no hit            -> background gradient

evaluated iteratively inside kernels by trace_ray(), which carries the product
of attenuations along the path instead of a call stack.

The render target keeps, per pixel, the sum of all linear sample colours, the
number of samples taken and the pixel's random stream. Pixels are rendered in
parallel; each pixel only ever writes its own cells, so no synchronisation is
needed and the result does not depend on thread scheduling.

Example:
    >>> from rayweave.camera.pinhole import PinholeCamera, setup_camera
    >>> from rayweave.core.integrator import get_image_numpy, render_image, setup_render_target
    >>> setup_camera(PinholeCamera.default(aspect_ratio=2.0))
    >>> setup_render_target(400, 200, seed=7)
    >>> render_image(samples=16)
    >>> image = get_image_numpy()  # (200, 400, 3) linear colour, top row first
"""

import logging
from collections.abc import Callable, Sequence

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from rayweave.camera.pinhole import (
    get_camera_origin,
    get_ray_jittered,
    is_camera_ready,
    ray_for_pixel,
)
from rayweave.core.sampler import (
    get_stream_state,
    seed_streams,
    set_stream_state,
    stream_seed,
)
from rayweave.core.settings import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH
from rayweave.materials.material import scatter_material
from rayweave.scene.intersection import intersect_scene

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# =============================================================================
# Rendering Constants
# =============================================================================

# Default bound on the number of scatter events per path
MAX_DEPTH = 50

# Hits closer than T_MIN are ignored (shadow acne)
T_MIN = 1e-3
T_MAX = tm.inf

# Background gradient, bottom (y = -1) to top (y = +1)
BACKGROUND_BOTTOM = vec3(1.0, 1.0, 1.0)
BACKGROUND_TOP = vec3(0.5, 0.7, 1.0)

# Rows rendered per kernel launch when no band size is given
DEFAULT_ROWS_PER_BAND = 16

ProgressCallback = Callable[[int, int], None]

# =============================================================================
# Render Target (Image Buffer)
# =============================================================================

_image_width = ti.field(dtype=ti.i32, shape=())
_image_height = ti.field(dtype=ti.i32, shape=())

# Sum of linear sample colours per pixel
_color_sum = ti.Vector.field(3, dtype=ti.f32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

# Number of samples per pixel
_sample_count = ti.field(dtype=ti.i32, shape=(MAX_IMAGE_WIDTH, MAX_IMAGE_HEIGHT))

_render_target_initialized = ti.field(dtype=ti.i32, shape=())


def setup_render_target(width: int, height: int, seed: int = 0) -> None:
    """Size the render target, clear it and seed the pixel streams.

    Args:
        width: Image width in pixels (1 to MAX_IMAGE_WIDTH).
        height: Image height in pixels (1 to MAX_IMAGE_HEIGHT).
        seed: Global seed from which every pixel's random stream is derived.

    Raises:
        ValueError: If a dimension is not positive or exceeds the maximum.
    """
    if width <= 0 or height <= 0:
        raise ValueError(f"Image dimensions must be positive, got {width}x{height}")
    if width > MAX_IMAGE_WIDTH or height > MAX_IMAGE_HEIGHT:
        raise ValueError(
            f"Image dimensions ({width}x{height}) exceed maximum supported "
            f"({MAX_IMAGE_WIDTH}x{MAX_IMAGE_HEIGHT})"
        )

    _image_width[None] = width
    _image_height[None] = height
    _render_target_initialized[None] = 1

    clear_render_target()
    seed_streams(width, height, seed)
    logger.debug("Render target set up: %dx%d, seed %d", width, height, seed)


def clear_render_target() -> None:
    """Zero the colour sums and sample counts."""
    _color_sum.fill(0.0)
    _sample_count.fill(0)


def reset_render_target() -> None:
    """Clear the render target and mark it as not set up."""
    clear_render_target()
    _render_target_initialized[None] = 0


def get_image_dimensions() -> tuple[int, int]:
    """Get the current render target dimensions as (width, height)."""
    return int(_image_width[None]), int(_image_height[None])


def _check_render_target_initialized() -> None:
    if _render_target_initialized[None] == 0:
        raise RuntimeError("Render target not set up. Call setup_render_target() first.")


def _check_ready_to_render() -> None:
    _check_render_target_initialized()
    if not is_camera_ready():
        raise RuntimeError("Camera not set up. Call setup_camera() first.")


# =============================================================================
# Colour Resolution
# =============================================================================


@ti.func
def background_color(direction: vec3) -> vec3:
    """Sky gradient seen by rays that hit nothing.

    Blends from white at the bottom to light blue at the top using the
    height of the unit direction: t = 0.5 * (unit(direction).y + 1).
    """
    unit_direction = tm.normalize(direction)
    t = 0.5 * (unit_direction.y + 1.0)
    return (1.0 - t) * BACKGROUND_BOTTOM + t * BACKGROUND_TOP


@ti.func
def trace_ray(origin: vec3, direction: vec3, max_depth: ti.i32, state: ti.u32):
    """Resolve the colour seen along a ray.

    Args:
        origin: Ray origin.
        direction: Ray direction, need not be normalized.
        max_depth: Maximum number of intersection tests along the path. A
            path that is still bouncing when the budget runs out is black,
            and max_depth <= 0 is black without touching the scene.
        state: Random stream state of the pixel.

    Returns:
        A tuple (colour, new_state).
    """
    rng = state
    colour = vec3(0.0, 0.0, 0.0)
    throughput = vec3(1.0, 1.0, 1.0)
    ray_origin = origin
    ray_direction = direction

    # Taichi has no recursion in ti.func; a flag ends the path instead
    active = 1

    for _ in range(max_depth):
        if active == 1:
            rec = intersect_scene(ray_origin, ray_direction, T_MIN, T_MAX)

            if rec.hit == 0:
                colour = throughput * background_color(ray_direction)
                active = 0
            else:
                scattered, material_colour, bounced, rng = scatter_material(
                    rec.material_id, rec.normal, rng
                )
                if bounced == 0:
                    colour = throughput * material_colour
                    active = 0
                else:
                    throughput *= material_colour
                    ray_origin = rec.point
                    ray_direction = scattered

    return colour, rng


@ti.func
def _sanitize(color: vec3) -> vec3:
    """Replace negative, NaN and infinite channels with zero."""
    result = color
    for c in ti.static(range(3)):
        if tm.isnan(result[c]) or tm.isinf(result[c]) or result[c] < 0.0:
            result[c] = 0.0
    return result


@ti.func
def render_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    samples: ti.i32,
    max_depth: ti.i32,
    jitter: ti.i32,
    state: ti.u32,
):
    """Sum the colours of several camera rays through one pixel.

    Returns:
        A tuple (colour_sum, new_state).
    """
    rng = state
    total = vec3(0.0, 0.0, 0.0)
    origin = get_camera_origin()

    for _ in range(samples):
        direction = ray_for_pixel(pixel_i, pixel_j, width, height).direction
        if jitter == 1:
            jittered, rng = get_ray_jittered(pixel_i, pixel_j, width, height, rng)
            direction = jittered.direction
        color, rng = trace_ray(origin, direction, max_depth, rng)
        total += _sanitize(color)

    return total, rng


# =============================================================================
# Rendering Kernels
# =============================================================================


@ti.kernel
def _render_rows_kernel(
    row_start: ti.i32,
    row_end: ti.i32,
    width: ti.i32,
    height: ti.i32,
    samples: ti.i32,
    max_depth: ti.i32,
    jitter: ti.i32,
):
    for i, j in ti.ndrange(width, (row_start, row_end)):
        total, rng = render_pixel(
            i, j, width, height, samples, max_depth, jitter, get_stream_state(i, j)
        )
        set_stream_state(i, j, rng)
        _color_sum[i, j] += total
        _sample_count[i, j] += samples


@ti.kernel
def _render_single_pixel(
    pixel_i: ti.i32,
    pixel_j: ti.i32,
    width: ti.i32,
    height: ti.i32,
    max_depth: ti.i32,
    jitter: ti.i32,
) -> vec3:
    total, rng = render_pixel(
        pixel_i, pixel_j, width, height, 1, max_depth, jitter, get_stream_state(pixel_i, pixel_j)
    )
    set_stream_state(pixel_i, pixel_j, rng)
    return total


@ti.kernel
def _ray_color_kernel(origin: vec3, direction: vec3, depth: ti.i32, state: ti.u32) -> vec3:
    color, _ = trace_ray(origin, direction, depth, state)
    return color


# =============================================================================
# Public Rendering API
# =============================================================================


def ray_color(
    origin: Sequence[float],
    direction: Sequence[float],
    depth: int = MAX_DEPTH,
    seed: int = 0,
) -> tuple[float, float, float]:
    """Resolve the colour of one ray against the loaded scene.

    Python-callable counterpart of trace_ray(), for inspecting single rays.
    Does not need a camera or render target.

    Args:
        origin: Ray origin as (x, y, z).
        direction: Ray direction as (x, y, z).
        depth: Remaining depth budget.
        seed: Seed of the random stream used by diffuse bounces.

    Returns:
        Linear (R, G, B) colour.
    """
    color = _ray_color_kernel(
        vec3(origin[0], origin[1], origin[2]),
        vec3(direction[0], direction[1], direction[2]),
        depth,
        stream_seed(seed, 0),
    )
    return (float(color[0]), float(color[1]), float(color[2]))


def render_sample(
    pixel_i: int,
    pixel_j: int,
    max_depth: int = MAX_DEPTH,
    jitter: bool = False,
) -> tuple[float, float, float]:
    """Trace one camera ray through a pixel without accumulating it.

    Advances the pixel's random stream but leaves the colour sums untouched.

    Args:
        pixel_i: Pixel x-coordinate (0 = left).
        pixel_j: Pixel y-coordinate (0 = bottom).
        max_depth: Depth budget of the path.
        jitter: Whether to jitter the ray inside the pixel.

    Returns:
        Linear (R, G, B) colour of the sample.

    Raises:
        RuntimeError: If the render target or camera has not been set up.
    """
    _check_ready_to_render()

    width, height = get_image_dimensions()
    color = _render_single_pixel(pixel_i, pixel_j, width, height, max_depth, int(jitter))
    return (float(color[0]), float(color[1]), float(color[2]))


def render_rows(
    row_start: int,
    row_end: int,
    samples: int = 1,
    max_depth: int = MAX_DEPTH,
    jitter: bool = True,
) -> None:
    """Accumulate samples for every pixel of rows [row_start, row_end).

    Args:
        row_start: First row (0 = bottom), inclusive.
        row_end: Last row, exclusive.
        samples: Number of samples per pixel to add.
        max_depth: Depth budget of each path.
        jitter: Whether each sample is jittered inside its pixel.

    Raises:
        RuntimeError: If the render target or camera has not been set up.
        ValueError: If the row range lies outside the image.
    """
    _check_ready_to_render()

    width, height = get_image_dimensions()
    if not 0 <= row_start <= row_end <= height:
        raise ValueError(f"Row range [{row_start}, {row_end}) outside image height {height}")
    if samples <= 0 or row_start == row_end:
        return

    _render_rows_kernel(row_start, row_end, width, height, samples, max_depth, int(jitter))


def render_image(
    samples: int = 1,
    max_depth: int = MAX_DEPTH,
    anti_aliasing: bool = True,
    rows_per_band: int | None = None,
    callback: ProgressCallback | None = None,
) -> None:
    """Accumulate samples for the whole image, band by band.

    Samples are jittered only when anti-aliasing is on and more than one
    sample is taken; a single sample goes through the pixel corner.

    Args:
        samples: Number of samples per pixel to add.
        max_depth: Depth budget of each path.
        anti_aliasing: Whether to jitter samples.
        rows_per_band: Rows per kernel launch. Defaults to DEFAULT_ROWS_PER_BAND.
        callback: Called as callback(rows_done, height) after every band.

    Raises:
        RuntimeError: If the render target or camera has not been set up.
        ValueError: If samples or rows_per_band is not positive.
    """
    _check_ready_to_render()

    if samples <= 0:
        raise ValueError(f"samples must be positive, got {samples}")
    band = DEFAULT_ROWS_PER_BAND if rows_per_band is None else rows_per_band
    if band <= 0:
        raise ValueError(f"rows_per_band must be positive, got {band}")

    jitter = anti_aliasing and samples > 1
    _, height = get_image_dimensions()

    for row_start in range(0, height, band):
        row_end = min(row_start + band, height)
        render_rows(row_start, row_end, samples, max_depth, jitter)
        logger.debug("Rendered rows %d-%d of %d", row_start, row_end, height)
        if callback is not None:
            callback(row_end, height)


def get_total_samples() -> int:
    """Number of samples accumulated in pixel (0, 0).

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    return int(_sample_count[0, 0])


def get_sample_counts_numpy() -> npt.NDArray[np.int32]:
    """Per-pixel sample counts as a (height, width) array, top row first.

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()
    width, height = get_image_dimensions()
    counts = _sample_count.to_numpy()[:width, :height]
    return np.flipud(counts.T).astype(np.int32)


def get_image_numpy() -> npt.NDArray[np.float32]:
    """Averaged linear image as a (height, width, 3) array, top row first.

    Pixels without samples are black. Values are not clamped.

    Raises:
        RuntimeError: If the render target has not been set up.
    """
    _check_render_target_initialized()

    width, height = get_image_dimensions()

    sums = _color_sum.to_numpy()[:width, :height, :]
    counts = _sample_count.to_numpy()[:width, :height]

    image = np.zeros_like(sums)
    np.divide(sums, counts[:, :, None], out=image, where=counts[:, :, None] > 0)

    # (width, height, 3) -> (height, width, 3), then bottom-up rows -> top-down
    image = np.transpose(image, (1, 0, 2))
    image = np.flipud(image)

    return np.ascontiguousarray(image, dtype=np.float32)
