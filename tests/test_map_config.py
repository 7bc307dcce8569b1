"""Tests for MapConfig and its JSON persistence."""
import json

import pytest

from brushmesh.conversion.collider_builder import ColliderMode
from brushmesh.pipeline.map_config import (
    MapConfig,
    MaterialOverride,
    MeshCompression,
    load_map_config,
    map_config_from_dict,
    map_config_to_dict,
    save_map_config,
)


class TestDefaults:

    def test_defaults(self):
        config = MapConfig()
        assert config.scaling_factor == pytest.approx(1 / 32)
        assert config.default_tex_size == 128
        assert config.add_tangents is True
        assert config.add_lightmap_uv2 is False
        assert config.collider_mode == ColliderMode.BOX_AND_CONVEX
        assert config.mesh_compression == MeshCompression.OFF
        assert config.remove_hidden_faces is True
        assert config.snapping_threshold == 0.0
        assert config.smoothing_angle == 80.0
        assert config.smoothing_max_distance == pytest.approx(0.1)
        assert config.weld_vertices is False
        assert config.max_workers is None

    def test_lists_not_shared(self):
        a = MapConfig()
        b = MapConfig()
        a.trigger_entities.append("func_button")
        assert "func_button" not in b.trigger_entities


class TestMaterialOverrides:
    """Test case-insensitive override lookup."""

    def test_lookup_ignores_case(self):
        config = MapConfig()
        config.add_material_override(MaterialOverride("Sky1", material="SkyBox",
                                                      texture_size=(256, 128)))
        assert config.find_material_override("SKY1").material == "SkyBox"
        assert config.texture_size_for("sky1") == (256, 128)
        assert config.material_for("sky1") == "SkyBox"

    def test_direct_dict_entry(self):
        config = MapConfig(material_overrides={"Water": MaterialOverride("Water", texture_size=(64, 64))})
        assert config.texture_size_for("WATER") == (64, 64)

    def test_fallbacks(self):
        config = MapConfig(default_tex_size=64)
        assert config.find_material_override("none") is None
        assert config.texture_size_for("none") == (64, 64)
        assert config.material_for("none") == "none"

    def test_partial_override(self):
        config = MapConfig()
        config.add_material_override(MaterialOverride("lava", material="Lava_Mat"))
        assert config.texture_size_for("lava") == (128, 128)

    def test_non_positive_sizes_fall_back(self, caplog):
        config = MapConfig(default_tex_size=64)
        config.add_material_override(MaterialOverride("glass", texture_size=(0, 0)))
        assert config.texture_size_for("glass") == (64, 64)
        assert MapConfig(default_tex_size=0).texture_size_for("any") == (128, 128)
        assert MapConfig(default_tex_size=-32).texture_size_for("any") == (128, 128)
        assert "not positive" in caplog.text


class TestPersistence:
    """Test dict and JSON round trips."""

    def test_enums_serialized_by_name(self):
        data = map_config_to_dict(MapConfig(collider_mode=ColliderMode.MERGE_ALL_CONCAVE))
        assert data["collider_mode"] == "MERGE_ALL_CONCAVE"
        assert data["mesh_compression"] == "OFF"
        json.dumps(data)

    def test_from_dict(self):
        config = map_config_from_dict({
            "scaling_factor": 0.5,
            "collider_mode": "convex_only",
            "mesh_compression": "HIGH",
            "weld_vertices": True,
            "material_overrides": [{"texture_name": "Sky1", "texture_size": [256, 128]}],
            "max_workers": 2,
        })
        assert config.scaling_factor == 0.5
        assert config.collider_mode == ColliderMode.CONVEX_ONLY
        assert config.mesh_compression == MeshCompression.HIGH
        assert config.weld_vertices is True
        assert config.texture_size_for("SKY1") == (256, 128)
        assert config.max_workers == 2

    def test_unknown_key_ignored(self, caplog):
        config = map_config_from_dict({"not_a_setting": 1, "smoothing_angle": 45})
        assert config.smoothing_angle == 45.0
        assert "not_a_setting" in caplog.text

    def test_bad_values_keep_defaults(self, caplog):
        config = map_config_from_dict({
            "collider_mode": "sphere",
            "scaling_factor": "big",
            "add_tangents": "sometimes",
            "trigger_entities": "trigger_",
        })
        assert config.collider_mode == ColliderMode.BOX_AND_CONVEX
        assert config.scaling_factor == pytest.approx(1 / 32)
        assert config.add_tangents is True
        assert config.trigger_entities == ["trigger_"]
        assert caplog.text.count("Ignoring invalid value") == 4

    @pytest.mark.parametrize("key,value", [
        ("default_tex_size", 0),
        ("default_tex_size", -64),
        ("max_workers", 0),
        ("max_workers", -2),
        ("max_workers", True),
        ("material_overrides", [{"texture_name": "glass", "texture_size": [0, 0]}]),
    ])
    def test_out_of_range_values_keep_defaults(self, caplog, key, value):
        config = map_config_from_dict({key: value})
        assert getattr(config, key) == getattr(MapConfig(), key)
        assert "Ignoring invalid value" in caplog.text

    def test_max_workers_accepted(self):
        assert map_config_from_dict({"max_workers": 4}).max_workers == 4
        assert map_config_from_dict({"max_workers": None}).max_workers is None

    def test_save_and_load(self, tmp_path):
        config = MapConfig(snapping_threshold=2.0, smoothing_angle=60.0,
                           collider_mode=ColliderMode.BOX_ONLY)
        config.add_material_override(MaterialOverride("Sky1", material="SkyBox",
                                                      texture_size=(256, 128)))
        path = save_map_config(config, tmp_path / "configs" / "e1m1.json")
        loaded = load_map_config(path)
        assert loaded is not None
        assert map_config_to_dict(loaded) == map_config_to_dict(config)

    def test_hooks_are_not_persisted(self, tmp_path):
        config = MapConfig()
        config.add_material_override(MaterialOverride("a", custom_face_hook=lambda *args: None))
        loaded = load_map_config(save_map_config(config, tmp_path / "c.json"))
        assert loaded.find_material_override("a").custom_face_hook is None

    def test_missing_file(self, tmp_path):
        assert load_map_config(tmp_path / "missing.json") is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json")
        assert load_map_config(path) is None

    def test_non_object_file(self, tmp_path):
        path = tmp_path / "list.json"
        path.write_text("[1, 2]")
        assert load_map_config(path) is None
