from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any

import yaml

from .factorizer import FactorizerConfig


_FACTORIZER_FIELDS = {f.name: f for f in dataclasses.fields(FactorizerConfig)}
# Integer fields are passed through unchanged so FactorizerConfig can reject non-integral values.
_CASTS = {"alpha": float, "beta": float, "max_error": float}


def load_yaml(path: Path) -> dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config not found: {path}")
    obj = yaml.safe_load(path.read_text())
    if obj is None:
        return {}
    if not isinstance(obj, dict):
        raise ValueError(f"Expected YAML mapping at {path}, got {type(obj)}")
    return obj


def factorizer_config_from_dict(raw: dict[str, Any] | None, **overrides: Any) -> FactorizerConfig:
    """Build a FactorizerConfig from a mapping, then apply non-None overrides.

    Unknown keys raise ValueError.
    """
    values: dict[str, Any] = dict(raw or {})
    values.update({k: v for k, v in overrides.items() if v is not None})

    unknown = sorted(set(values) - set(_FACTORIZER_FIELDS))
    if unknown:
        raise ValueError(f"Unknown factorizer config keys: {unknown}")

    kwargs: dict[str, Any] = {}
    for key, value in values.items():
        cast = _CASTS.get(key)
        kwargs[key] = cast(value) if cast is not None and value is not None else value
    return FactorizerConfig(**kwargs)


def load_factorizer_config(path: Path | None, **overrides: Any) -> FactorizerConfig:
    """Read the `factorizer:` section of a YAML config (defaults when path is None)."""
    if path is None:
        return factorizer_config_from_dict(None, **overrides)

    cfg_yaml = load_yaml(path)
    section = cfg_yaml.get("factorizer", {})
    if section is None:
        section = {}
    if not isinstance(section, dict):
        raise ValueError(f"'factorizer' section in {path} must be a mapping")
    return factorizer_config_from_dict(section, **overrides)
