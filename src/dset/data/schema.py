"""Shared data schemas for caption building.

Configuration objects are frozen dataclasses so a single instance can be shared
by every worker of a directory run.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Tuple

IMAGE_EXTENSIONS: Tuple[str, ...] = ("png", "jpg", "jpeg", "webp", "gif", "tiff", "bmp", "jxl", "avif")

# Companion extensions holding free text rather than comma separated tags
CAPTION_EXTENSIONS: Tuple[str, ...] = ("caption", "florence")

DEFAULT_RATING_CONVERSIONS: Dict[str, str] = {
    "s": "safe",
    "q": "questionable",
    "e": "explicit",
}

DEFAULT_E621_FORMAT = "{rating}, {artists}, {characters}, {species}, {copyright}, {general}, {meta}"


def _clean_extensions(values: Iterable[str]) -> Tuple[str, ...]:
    if isinstance(values, str):
        values = [values]
    return tuple(str(v).strip().lstrip(".") for v in values if str(v).strip().lstrip("."))


class FileExtensionPreset(str, Enum):
    CAPTION_WD_TAGS = "caption+wd+tags"
    FLORENCE_WD_TAGS = "florence+wd+tags"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class ConcatConfig:
    """How companion files of one image are merged into a caption file.

    - ``base_extensions``: image types that anchor a group (without the dot)
    - ``extensions_to_concat``: companion extensions, in merge order
    - the caption-like companion (``caption``/``florence``, else the last
      extension) is appended after the tags and never deduplicated
    - ``remove_duplicates``: dedupe + sort the tag portion
    - ``deduplicate_files``: skip groups whose companions repeat an earlier group
    """

    base_extensions: Tuple[str, ...] = IMAGE_EXTENSIONS
    extensions_to_concat: Tuple[str, ...] = ("caption", "wd", "tags")
    output_extension: str = "txt"
    remove_duplicates: bool = True
    tag_separator: str = ", "
    deduplicate_files: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(self, "base_extensions", tuple(e.lower() for e in _clean_extensions(self.base_extensions)))
        object.__setattr__(self, "extensions_to_concat", _clean_extensions(self.extensions_to_concat))
        object.__setattr__(self, "output_extension", str(self.output_extension).strip().lstrip("."))
        if not self.extensions_to_concat:
            raise ValueError("extensions_to_concat must name at least one extension")
        if not self.output_extension:
            raise ValueError("output_extension must not be empty")

    @classmethod
    def from_preset(cls, preset: FileExtensionPreset | str) -> "ConcatConfig":
        preset = FileExtensionPreset(preset)
        if preset is FileExtensionPreset.FLORENCE_WD_TAGS:
            return cls(extensions_to_concat=("florence", "wd", "tags"))
        return cls(extensions_to_concat=("caption", "wd", "tags"))

    def with_deduplication(self, deduplicate: bool) -> "ConcatConfig":
        return replace(self, deduplicate_files=deduplicate)

    @property
    def caption_extension(self) -> str:
        for ext in CAPTION_EXTENSIONS:
            if ext in self.extensions_to_concat:
                return ext
        return self.extensions_to_concat[-1]


@dataclass(frozen=True)
class E621Config:
    """Formatting rules for e621 post records.

    Placeholders available in ``format``: ``{rating}``, ``{artists}``,
    ``{characters}``, ``{species}``, ``{copyright}``, ``{general}``, ``{meta}``.
    Tags inside a group are always joined with ``", "``.
    """

    filter_tags: bool = True
    rating_conversions: Optional[Mapping[str, str]] = field(
        default_factory=lambda: dict(DEFAULT_RATING_CONVERSIONS)
    )
    format: Optional[str] = None
    artist_prefix: Optional[str] = "by "
    artist_suffix: Optional[str] = None
    replace_underscores: bool = True

    @property
    def template(self) -> str:
        return self.format if self.format is not None else DEFAULT_E621_FORMAT

    def convert_rating(self, rating: str) -> str:
        if self.rating_conversions is not None:
            return self.rating_conversions.get(rating, rating)
        return rating

    def format_artist_name(self, name: str) -> str:
        name = name.replace("_", " ").replace(" (artist)", "")
        return f"{self.artist_prefix or ''}{name}{self.artist_suffix or ''}"

    def with_filter_tags(self, filter_tags: bool) -> "E621Config":
        return replace(self, filter_tags=filter_tags)

    def with_rating_conversions(self, conversions: Optional[Mapping[str, str]]) -> "E621Config":
        return replace(self, rating_conversions=conversions)

    def with_format(self, fmt: Optional[str]) -> "E621Config":
        return replace(self, format=fmt)

    def with_artist_prefix(self, prefix: Optional[str]) -> "E621Config":
        return replace(self, artist_prefix=prefix)

    def with_artist_suffix(self, suffix: Optional[str]) -> "E621Config":
        return replace(self, artist_suffix=suffix)

    def with_replace_underscores(self, replace_underscores: bool) -> "E621Config":
        return replace(self, replace_underscores=replace_underscores)


@dataclass(frozen=True)
class ItemGroup:
    base_path: Path
    companions: Tuple[Tuple[str, Path], ...]
    missing: Tuple[Path, ...] = ()

    @property
    def stem(self) -> str:
        return self.base_path.stem

    @property
    def complete(self) -> bool:
        return not self.missing

    @property
    def companion_paths(self) -> Tuple[Path, ...]:
        return tuple(p for _, p in self.companions)

    def output_path(self, extension: str) -> Path:
        return self.base_path.parent / f"{self.stem}.{extension}"


@dataclass
class RunSummary:
    processed: int = 0
    skipped_duplicates: int = 0
    skipped_missing: int = 0
    failed: int = 0
    dry_run: bool = False
    deduplicate_files: bool = False
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def increment(self, name: str, amount: int = 1) -> None:
        if name.startswith("_") or name not in {f.name for f in fields(self)}:
            raise AttributeError(name)
        with self._lock:
            setattr(self, name, getattr(self, name) + amount)
