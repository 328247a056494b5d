"""Taichi-based offline ray tracer.

Renders scenes of spheres with normal-map and diffuse materials through a
pinhole camera, averaging many jittered samples per pixel in parallel.

Subpackages:
    core: Vector utilities, random streams, colour resolution, frame accumulation
    geometry: Sphere primitive and intersection
    materials: Normal-map and diffuse materials with unified ids
    scene: Scene storage, scene manager and scene description files
    camera: Pinhole camera and primary ray generation
    preview: PNG export
"""

__version__ = "0.1.0"
