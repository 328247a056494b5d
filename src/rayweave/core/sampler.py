"""Per-pixel random number streams for Monte Carlo sampling.

Every pixel of the render target owns its own xorshift32 generator. The stream
states live in a ``u32`` field indexed by pixel, so no generator is ever shared
between two pixels and the result of a render does not depend on how the
backend distributes pixels over threads.

Streams are seeded on the host from ``(seed, pixel_index)`` with the Wang
integer hash, evaluated on NumPy ``uint32`` arrays so overflow wraps exactly as
it does on the device.

Kernel-side samplers take the current state and return the advanced state
alongside the sample:

    >>> @ti.kernel
    ... def draw(i: ti.i32, j: ti.i32) -> ti.f32:
    ...     state = get_stream_state(i, j)
    ...     x, state = random_f32(state)
    ...     set_stream_state(i, j, state)
    ...     return x
"""

import logging

import numpy as np
import numpy.typing as npt
import taichi as ti
import taichi.math as tm

from rayweave.core.settings import MAX_IMAGE_HEIGHT, MAX_IMAGE_WIDTH

logger = logging.getLogger(__name__)

vec3 = tm.vec3

# One stream per pixel of the render target
MAX_STREAMS_X = MAX_IMAGE_WIDTH
MAX_STREAMS_Y = MAX_IMAGE_HEIGHT

# Maximum attempts for rejection sampling loops
MAX_REJECTION_ATTEMPTS = 64

# 2^-24: maps the top 24 bits of a u32 onto [0, 1)
_U24_SCALE = 1.0 / 16777216.0

# Replacement for a zero state, which xorshift can never leave
_NONZERO_STATE = 0x9E3779B9

_rng_state = ti.field(dtype=ti.u32, shape=(MAX_STREAMS_X, MAX_STREAMS_Y))


# =============================================================================
# Host-side seeding
# =============================================================================


def wang_hash(key: npt.ArrayLike) -> npt.NDArray[np.uint32]:
    """Wang integer hash (Thomas Wang 2007), vectorised over uint32."""
    k = np.asarray(key, dtype=np.uint32)
    k = (k ^ np.uint32(61)) ^ (k >> np.uint32(16))
    k = k * np.uint32(9)
    k = k ^ (k >> np.uint32(4))
    k = k * np.uint32(0x27D4EB2D)
    k = k ^ (k >> np.uint32(15))
    return k


def _stream_seeds(seed: int, indices: npt.NDArray[np.uint32]) -> npt.NDArray[np.uint32]:
    """Derive stream seeds for the given stream indices."""
    base = wang_hash(np.asarray([seed & 0xFFFFFFFF], dtype=np.uint32))[0]
    seeds = wang_hash(indices ^ base)
    # xorshift32 has a fixed point at zero
    return np.where(seeds == 0, np.uint32(_NONZERO_STATE), seeds).astype(np.uint32)


def stream_seed(seed: int, index: int) -> int:
    """Derive the initial state of a single generator stream.

    Args:
        seed: Global render seed.
        index: Stream index (e.g. linear pixel index).

    Returns:
        A non-zero 32-bit state.
    """
    indices = np.asarray([index & 0xFFFFFFFF], dtype=np.uint32)
    return int(_stream_seeds(seed, indices)[0])


def seed_streams(width: int, height: int, seed: int) -> None:
    """Seed one independent stream per pixel of the active region.

    The stream of pixel (i, j) is derived from ``j * width + i``, so the same
    seed and image size always reproduce the same samples.

    Args:
        width: Active image width in pixels.
        height: Active image height in pixels.
        seed: Global render seed.

    Raises:
        ValueError: If the dimensions exceed the stream capacity.
    """
    if width > MAX_STREAMS_X or height > MAX_STREAMS_Y:
        raise ValueError(
            f"Cannot seed {width}x{height} streams (capacity {MAX_STREAMS_X}x{MAX_STREAMS_Y})"
        )

    i = np.arange(MAX_STREAMS_X, dtype=np.uint32)[:, None]
    j = np.arange(MAX_STREAMS_Y, dtype=np.uint32)[None, :]
    indices = j * np.uint32(width) + i
    _rng_state.from_numpy(_stream_seeds(seed, indices))
    logger.debug("Seeded %dx%d sample streams with seed %d", width, height, seed)


# =============================================================================
# Kernel-side generators
# =============================================================================


@ti.func
def get_stream_state(i: ti.i32, j: ti.i32) -> ti.u32:
    """Read the stream state of pixel (i, j)."""
    return _rng_state[i, j]


@ti.func
def set_stream_state(i: ti.i32, j: ti.i32, state: ti.u32):
    """Store the stream state of pixel (i, j)."""
    _rng_state[i, j] = state


@ti.func
def next_u32(state: ti.u32) -> ti.u32:
    """Advance a xorshift32 state by one step."""
    x = state
    x ^= x << ti.u32(13)
    x ^= x >> ti.u32(17)
    x ^= x << ti.u32(5)
    return x


@ti.func
def random_f32(state: ti.u32):
    """Draw a uniform float in [0, 1).

    Args:
        state: Current stream state.

    Returns:
        A tuple (value, new_state).
    """
    new_state = next_u32(state)
    value = ti.cast(new_state >> ti.u32(8), ti.f32) * _U24_SCALE
    return value, new_state


@ti.func
def random_in_unit_sphere(state: ti.u32):
    """Draw a uniformly distributed point inside the unit sphere.

    Uses rejection sampling on the enclosing cube. After
    MAX_REJECTION_ATTEMPTS misses the last candidate is pulled onto the
    sphere surface.

    Args:
        state: Current stream state.

    Returns:
        A tuple (point, new_state) with length(point) <= 1.
    """
    rng = state
    p = vec3(0.0, 0.0, 0.0)
    found = 0
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if found == 0:
            x, rng = random_f32(rng)
            y, rng = random_f32(rng)
            z, rng = random_f32(rng)
            p = vec3(2.0 * x - 1.0, 2.0 * y - 1.0, 2.0 * z - 1.0)
            if tm.dot(p, p) < 1.0:
                found = 1
    if found == 0:
        len_sq = tm.dot(p, p)
        if len_sq > 0.0:
            p = p / ti.sqrt(len_sq)
    return p, rng


@ti.func
def random_unit_vector(state: ti.u32):
    """Draw a uniformly distributed direction on the unit sphere.

    Candidates too close to the origin to normalize reliably are rejected.

    Args:
        state: Current stream state.

    Returns:
        A tuple (unit_vector, new_state).
    """
    rng = state
    result = vec3(0.0, 1.0, 0.0)
    found = 0
    for _ in range(MAX_REJECTION_ATTEMPTS):
        if found == 0:
            p, rng = random_in_unit_sphere(rng)
            len_sq = tm.dot(p, p)
            if len_sq > 1e-12:
                result = p / ti.sqrt(len_sq)
                found = 1
    return result, rng
