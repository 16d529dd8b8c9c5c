"""JSON-backed user configuration of the sync engine."""
from __future__ import annotations

import json
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional

from core.logs import get_child_logger
from core.settings import CACHE, CONFIG_PATH, SYNC


logger = get_child_logger("config")


@dataclass
class EngineConfig:
    """User-tunable knobs persisted to ``config.json``."""

    auto_sync: bool = True
    fallback_interval_sec: float = float(SYNC.fallback_interval_sec)
    cache_max_entries: int = CACHE.max_entries


def _ensure_parent(path: Path) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)


def _load_raw(path: Path) -> Dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        logger.warning("Ignoring unreadable config %s: %s", path, exc)
        return {}
    return data if isinstance(data, dict) else {}


def load_config(path: Optional[Path] = None) -> EngineConfig:
    target = path or CONFIG_PATH
    data = _load_raw(target)
    defaults = EngineConfig()
    known = {f.name for f in fields(EngineConfig)}
    values = {}
    for key, value in data.items():
        if key not in known:
            continue
        expected = type(getattr(defaults, key))
        if expected is float and isinstance(value, int) and not isinstance(value, bool):
            value = float(value)
        if isinstance(value, expected) and (expected is bool or not isinstance(value, bool)):
            values[key] = value
        else:
            logger.warning("Config %s: ignoring %s=%r", target, key, value)
    return EngineConfig(**values)


def save_config(config: EngineConfig, path: Optional[Path] = None) -> None:
    target = path or CONFIG_PATH
    _ensure_parent(target)
    payload = json.dumps(asdict(config), ensure_ascii=False, indent=2, sort_keys=True)
    tmp = target.with_suffix(".tmp")
    try:
        tmp.write_text(payload, encoding="utf-8")
        tmp.replace(target)
    finally:
        if tmp.exists():
            try:
                tmp.unlink()
            except OSError:
                pass


def update_config(path: Optional[Path] = None, **changes: Any) -> EngineConfig:
    target = path or CONFIG_PATH
    cfg = load_config(target)
    for key, value in changes.items():
        if not hasattr(cfg, key):
            raise ValueError(f"Unknown config option: {key}")
        setattr(cfg, key, value)
    save_config(cfg, target)
    return cfg


__all__ = ["EngineConfig", "load_config", "save_config", "update_config"]
