"""
Conversion configuration and orchestration.
"""

from .map_config import (
    MapConfig,
    MaterialOverride,
    MeshCompression,
    load_map_config,
    save_map_config,
)
from .conversion_pipeline import (
    ConversionContext,
    ConversionError,
    ConversionPipeline,
    ConversionResult,
    ConversionStage,
    GroupResult,
    MaterialMesh,
    convert_brush_groups,
)

__all__ = [
    'MapConfig',
    'MaterialOverride',
    'MeshCompression',
    'load_map_config',
    'save_map_config',
    'ConversionContext',
    'ConversionError',
    'ConversionPipeline',
    'ConversionResult',
    'ConversionStage',
    'GroupResult',
    'MaterialMesh',
    'convert_brush_groups',
]
