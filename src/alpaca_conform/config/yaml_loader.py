from __future__ import annotations

from pathlib import Path

import yaml

from .settings import ConformSettings


def load_yaml_settings(base_settings: ConformSettings, config_path: str | Path) -> ConformSettings:
    """Overlay settings from a YAML file onto the base `ConformSettings` instance."""
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    with path.open("r", encoding="utf-8") as stream:
        data = yaml.safe_load(stream) or {}

    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {config_path}")

    merged = base_settings.model_dump()
    for key, value in data.items():
        # nested telescope test switches merge instead of replacing the table
        if key == "telescope_tests" and isinstance(value, dict):
            merged[key] = {**merged.get(key, {}), **value}
            continue
        merged[key] = value

    return ConformSettings(**merged)
