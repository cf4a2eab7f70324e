"""Pytest configuration and shared fixtures."""
from __future__ import annotations

import json
from pathlib import Path
from typing import Callable, Dict

import pytest


@pytest.fixture
def make_group(tmp_path: Path) -> Callable[..., Path]:
    """Create ``<stem>.jpg`` plus one companion file per ``ext=content``."""

    def _make(stem: str, companions: Dict[str, str], base_ext: str = "jpg", folder: Path = None) -> Path:
        folder = folder or tmp_path
        folder.mkdir(parents=True, exist_ok=True)
        image = folder / f"{stem}.{base_ext}"
        image.write_bytes(b"not really an image")
        for ext, content in companions.items():
            (folder / f"{stem}.{ext}").write_text(content, encoding="utf-8")
        return image

    return _make


@pytest.fixture
def write_post(tmp_path: Path) -> Callable[..., Path]:
    def _write(post: dict, name: str = "post.json") -> Path:
        path = tmp_path / name
        path.write_text(json.dumps({"post": post}), encoding="utf-8")
        return path

    return _write
