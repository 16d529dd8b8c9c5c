import json

import pytest

from storage.config import EngineConfig, load_config, save_config, update_config


def test_missing_file_gives_defaults(tmp_path):
    cfg = load_config(tmp_path / "config.json")
    assert cfg == EngineConfig()
    assert cfg.fallback_interval_sec == 60.0


def test_bad_values_are_ignored(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(
        json.dumps({"auto_sync": "yes", "fallback_interval_sec": 5, "cache_max_entries": True, "extra": 1}),
        encoding="utf-8",
    )
    cfg = load_config(path)
    assert cfg.auto_sync is True
    assert cfg.fallback_interval_sec == 5.0
    assert cfg.cache_max_entries == EngineConfig().cache_max_entries


def test_unreadable_file_falls_back(tmp_path):
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")
    assert load_config(path) == EngineConfig()


def test_save_and_update_round_trip(tmp_path):
    path = tmp_path / "nested" / "config.json"
    save_config(EngineConfig(auto_sync=False), path)
    assert load_config(path).auto_sync is False
    assert not path.with_suffix(".tmp").exists()

    cfg = update_config(path, cache_max_entries=10)
    assert cfg.cache_max_entries == 10
    assert load_config(path).cache_max_entries == 10

    with pytest.raises(ValueError):
        update_config(path, colour="blue")
