"""Load run configuration from YAML or JSON.

Expected layout (both sections optional)::

    concat:
      preset: caption+wd+tags      # or florence+wd+tags
      base_extensions: [png, jpg]
      extensions_to_concat: [caption, wd, tags]
      output_extension: txt
      remove_duplicates: true
      tag_separator: ", "
      deduplicate_files: false
    e621:
      filter_tags: true
      rating_conversions: {s: safe, q: questionable, e: explicit}  # null = raw ratings
      format: "{rating}, {artists}, {general}"
      artist_prefix: "by "
      artist_suffix: null
      replace_underscores: true
"""
from __future__ import annotations

import json
from dataclasses import fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from dset.data.schema import ConcatConfig, E621Config

CONFIG_SECTIONS = ("concat", "e621")


def load_config(path: Optional[Path]) -> Dict[str, Any]:
    if path is None:
        return {}
    path = Path(path)
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() == ".json":
        data = json.loads(text)
    else:
        data = yaml.safe_load(text)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must contain a mapping at the top level")
    unknown = set(data) - set(CONFIG_SECTIONS)
    if unknown:
        raise ValueError(f"Unknown config sections in {path}: {', '.join(sorted(unknown))}")
    return data


def _check_keys(section: str, values: Mapping[str, Any], allowed: set) -> None:
    unknown = set(values) - allowed
    if unknown:
        raise ValueError(f"Unknown {section} options: {', '.join(sorted(unknown))}")


def concat_config_from_mapping(values: Optional[Mapping[str, Any]] = None) -> ConcatConfig:
    values = dict(values or {})
    allowed = {f.name for f in fields(ConcatConfig)} | {"preset"}
    _check_keys("concat", values, allowed)
    preset = values.pop("preset", None)
    base = ConcatConfig.from_preset(preset) if preset else ConcatConfig()
    if not values:
        return base
    merged = {f.name: getattr(base, f.name) for f in fields(ConcatConfig)}
    merged.update(values)
    return ConcatConfig(**merged)


def e621_config_from_mapping(values: Optional[Mapping[str, Any]] = None) -> E621Config:
    values = dict(values or {})
    _check_keys("e621", values, {f.name for f in fields(E621Config)})
    conversions = values.get("rating_conversions")
    if conversions is not None:
        if not isinstance(conversions, Mapping):
            raise ValueError("e621.rating_conversions must be a mapping or null")
        values["rating_conversions"] = {str(k): str(v) for k, v in conversions.items()}
    return E621Config(**values)
