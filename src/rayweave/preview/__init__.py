"""Preview module for image output.

Components:
    export: PNG export through Pillow and the test gradient generator

Example:
    >>> from rayweave.preview import save_png
    >>> from rayweave.core.progressive import ProgressiveRenderer
    >>>
    >>> renderer = ProgressiveRenderer(512, 512)
    >>> renderer.render(100)
    >>> save_png(renderer.to_frame_buffer(), "output.png")
"""

from rayweave.preview.export import (
    compute_rmse,
    generate_gradient,
    save_png,
    save_png_from_array,
)

__all__ = [
    "save_png",
    "save_png_from_array",
    "generate_gradient",
    "compute_rmse",
]
