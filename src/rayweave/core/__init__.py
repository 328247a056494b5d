"""Core rendering module.

Components:
    ray: Ray data structure and vector utilities
    sampler: Per-pixel random number streams
    integrator: Colour resolution and the frame accumulator
    frame: Gamma encoding, quantization and the FrameBuffer type
    progressive: Incremental rendering and the render_frame pipeline
    settings: Render settings (dimensions, samples, feature flags)
"""

from .ray import (
    Ray,
    as_vector,
    cross,
    dot,
    length,
    length_squared,
    make_ray,
    near_zero,
    normalize,
    normalize_host,
    ray_at,
    safe_normalize,
    vec3,
)

# Note: integrator and progressive are NOT imported here to avoid circular imports.
# Import directly from rayweave.core.integrator or rayweave.core.progressive.

__all__ = [
    "Ray",
    "ray_at",
    "make_ray",
    "vec3",
    "length",
    "length_squared",
    "normalize",
    "safe_normalize",
    "normalize_host",
    "as_vector",
    "dot",
    "cross",
    "near_zero",
]
