"""
Conversion settings and their JSON persistence.

MapConfig holds every knob of a brush conversion. It can be saved next to a
map as JSON and loaded back; unknown keys and values that don't fit a field
are logged and the field's default is kept.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field, fields
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from brushmesh.conversion.collider_builder import (
    DEFAULT_COLLIDER_NAME_FORMAT,
    ColliderMode,
)
from brushmesh.conversion.mesh_builder import FaceHook

logger = logging.getLogger(__name__)

DEFAULT_TEXTURE_SIZE = 128


# ---------------------------------------------------------------------------
# Enums
# ---------------------------------------------------------------------------

class MeshCompression(Enum):
    """Vertex compression requested from the host engine."""
    OFF = "off"
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


def is_valid_texture_size(size: Tuple[int, int]) -> bool:
    return len(size) == 2 and all(s >= 1 for s in size)


# ---------------------------------------------------------------------------
# Settings dataclasses
# ---------------------------------------------------------------------------

@dataclass
class MaterialOverride:
    """Per-texture material settings.

    Attributes:
        texture_name: Texture the override applies to (case-insensitive)
        material: Host material name; the texture name when None
        texture_size: (width, height) used for UVs; default_tex_size when None
        custom_face_hook: Optional per-face callback run during mesh building
    """
    texture_name: str
    material: Optional[str] = None
    texture_size: Optional[Tuple[int, int]] = None
    custom_face_hook: Optional[FaceHook] = None


def _default_nonsolid_entities() -> List[str]:
    return ["func_illusionary", "func_detail_illusionary"]


def _default_trigger_entities() -> List[str]:
    return ["trigger_"]


@dataclass
class MapConfig:
    # Scale
    scaling_factor: float = 0.03125  # 1/32: Quake units to meters
    global_texel_scale: float = 1.0
    default_tex_size: int = DEFAULT_TEXTURE_SIZE

    # Mesh output
    add_tangents: bool = True
    add_lightmap_uv2: bool = False
    mesh_compression: MeshCompression = MeshCompression.OFF
    material_overrides: Dict[str, MaterialOverride] = field(default_factory=dict)

    # Colliders
    collider_mode: ColliderMode = ColliderMode.BOX_AND_CONVEX
    nonsolid_entities: List[str] = field(default_factory=_default_nonsolid_entities)
    trigger_entities: List[str] = field(default_factory=_default_trigger_entities)
    collider_name_format: str = DEFAULT_COLLIDER_NAME_FORMAT

    # Geometry clean-up
    remove_hidden_faces: bool = True
    snapping_threshold: float = 0.0  # 0 = off

    # Normals
    smoothing_angle: float = 80.0
    smoothing_max_distance: float = 0.1

    # Welding
    weld_vertices: bool = False
    weld_max_delta: float = 0.1
    weld_max_angle: float = 180.0

    # Threads; None = ThreadPoolExecutor default, 1 = inline
    max_workers: Optional[int] = None

    def add_material_override(self, override: MaterialOverride) -> None:
        self.material_overrides[override.texture_name.lower()] = override

    def find_material_override(self, texture_name: str) -> Optional[MaterialOverride]:
        """Case-insensitive lookup of the override for a texture."""
        override = self.material_overrides.get(texture_name)
        if override is not None:
            return override
        lowered = texture_name.lower()
        for key, candidate in self.material_overrides.items():
            if key.lower() == lowered:
                return candidate
        return None

    def texture_size_for(self, texture_name: str) -> Tuple[int, int]:
        """UV normalisation size for a texture; sizes below 1 fall back."""
        override = self.find_material_override(texture_name)
        if override is not None and override.texture_size:
            if is_valid_texture_size(override.texture_size):
                return override.texture_size
            logger.warning("Ignoring texture size %r for %s; sizes must be positive",
                           override.texture_size, texture_name)
        size = self.default_tex_size
        if size < 1:
            logger.warning("default_tex_size %r is not positive; using %d",
                           size, DEFAULT_TEXTURE_SIZE)
            size = DEFAULT_TEXTURE_SIZE
        return (size, size)

    def material_for(self, texture_name: str) -> str:
        override = self.find_material_override(texture_name)
        if override is not None and override.material:
            return override.material
        return texture_name


# ---------------------------------------------------------------------------
# JSON persistence
# ---------------------------------------------------------------------------

_ENUM_FIELDS = {
    "collider_mode": ColliderMode,
    "mesh_compression": MeshCompression,
}


def _override_to_dict(override: MaterialOverride) -> Dict[str, Any]:
    # Hooks are code and are not persisted.
    return {
        "texture_name": override.texture_name,
        "material": override.material,
        "texture_size": list(override.texture_size) if override.texture_size else None,
    }


def _dict_to_override(data: Dict[str, Any]) -> MaterialOverride:
    size = data.get("texture_size")
    if size:
        size = (int(size[0]), int(size[1]))
        if not is_valid_texture_size(size):
            raise ValueError(f"texture size must be positive, got {size!r}")
    return MaterialOverride(
        texture_name=str(data["texture_name"]),
        material=data.get("material"),
        texture_size=size or None,
    )


def map_config_to_dict(config: MapConfig) -> Dict[str, Any]:
    """Convert a MapConfig to a JSON-serializable dictionary."""
    data: Dict[str, Any] = {}
    for f in fields(MapConfig):
        value = getattr(config, f.name)
        if isinstance(value, Enum):
            value = value.name
        elif f.name == "material_overrides":
            value = [_override_to_dict(o) for o in value.values()]
        elif isinstance(value, list):
            value = list(value)
        data[f.name] = value
    return data


def _coerce(name: str, raw: Any, default: Any) -> Any:
    """Convert a JSON value to the type of the field's default."""
    if name in _ENUM_FIELDS:
        return _ENUM_FIELDS[name][str(raw).upper()]
    if name == "material_overrides":
        overrides = {}
        for item in raw:
            override = _dict_to_override(item)
            overrides[override.texture_name.lower()] = override
        return overrides
    if name == "max_workers":
        if raw is None:
            return None
        if isinstance(raw, bool):
            raise TypeError(f"expected an integer, got {raw!r}")
        workers = int(raw)
        if workers < 1:
            raise ValueError(f"max_workers must be at least 1, got {workers}")
        return workers
    if name == "default_tex_size":
        size = int(raw)
        if size < 1:
            raise ValueError(f"texture size must be positive, got {size}")
        return size
    if isinstance(default, bool):
        if not isinstance(raw, bool):
            raise TypeError(f"expected a boolean, got {raw!r}")
        return raw
    if isinstance(default, float):
        return float(raw)
    if isinstance(default, int):
        return int(raw)
    if isinstance(default, str):
        if not isinstance(raw, str):
            raise TypeError(f"expected a string, got {raw!r}")
        return raw
    if isinstance(default, list):
        if not isinstance(raw, list):
            raise TypeError(f"expected a list, got {raw!r}")
        return [str(item) for item in raw]
    return raw


def map_config_from_dict(data: Dict[str, Any]) -> MapConfig:
    """
    Create a MapConfig from a dictionary.

    Unknown keys and values that can't be converted are logged and skipped,
    leaving the field at its default.
    """
    config = MapConfig()
    known = {f.name for f in fields(MapConfig)}
    for key, raw in data.items():
        if key not in known:
            logger.warning("Ignoring unknown map config key '%s'", key)
            continue
        default = getattr(config, key)
        try:
            setattr(config, key, _coerce(key, raw, default))
        except (KeyError, TypeError, ValueError, IndexError) as e:
            logger.warning("Ignoring invalid value for map config key '%s': %r (%s)",
                           key, raw, e)
    return config


def save_map_config(config: MapConfig, file_path: Union[str, Path]) -> Path:
    """
    Save a config as JSON.

    Args:
        config: The MapConfig to save
        file_path: Destination file; parent directories are created

    Returns:
        Path to the saved file

    Raises:
        OSError: If the file cannot be written
    """
    path = Path(file_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(map_config_to_dict(config), f, indent=2, ensure_ascii=False)
    logger.debug("Saved map config to %s", path)
    return path


def load_map_config(file_path: Union[str, Path]) -> Optional[MapConfig]:
    """
    Load a config from a JSON file.

    Args:
        file_path: Path to the JSON config file

    Returns:
        MapConfig if the file exists and is valid JSON, None otherwise
    """
    path = Path(file_path)
    if not path.exists():
        return None

    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Could not read map config %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Map config %s is not a JSON object", path)
        return None
    return map_config_from_dict(data)
