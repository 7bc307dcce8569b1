"""
Brush geometry to mesh and collider conversion.

Usage:
    from brushmesh import MapConfig, convert_brush_groups
    from brushmesh.conversion import BrushGroup, make_box_brush

    group = BrushGroup(name="worldspawn", brushes=[
        make_box_brush((0, 0, 0), (64, 64, 64)),
    ])
    result = convert_brush_groups([group], MapConfig())
    for mesh in result.groups[0].meshes:
        print(mesh.material, mesh.vertex_count)
"""

from .pipeline import (
    ConversionError,
    ConversionPipeline,
    ConversionResult,
    MapConfig,
    convert_brush_groups,
)

__version__ = "0.1.0"

__all__ = [
    'ConversionError',
    'ConversionPipeline',
    'ConversionResult',
    'MapConfig',
    'convert_brush_groups',
]
