"""GPU path tracer built on Taichi.

This package renders scenes of spheres and quads with a depth-bounded Monte
Carlo path tracer:
- Lambertian, metal, dielectric and emissive materials
- Solid and checker textures
- Thin-lens camera with depth of field and motion blur
- BVH acceleration built on the host and traversed on the device
- Progressive rendering with accumulation

Subpackages:
    core: Rays, intervals, the integrator and the progressive renderer
    geometry: Bounding boxes and shape primitives
    materials: Textures and scattering models
    scene: Primitive storage, BVH and scene management
    camera: Thin-lens camera with ray generation
    preview: Image export

Modules holding Taichi fields must be imported after pathtracer.config.init_taichi().
"""

__version__ = "0.1.0"
