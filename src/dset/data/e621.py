"""Caption files from e621 post records.

A record looks like ``{"post": {"file": {"url": ...}, "rating": "s",
"tags": {"artist": [...], "general": [...], ...}}}``. Each tag category is
filtered and normalized on its own, joined with ``", "``, then substituted
into the configured template:

    "{rating}, {artists}, {characters}, {species}, {copyright}, {general}, {meta}"

The caption is written next to the JSON file as ``<url stem>.txt``.
"""
from __future__ import annotations

import json
import logging
from pathlib import Path, PurePosixPath
from typing import Any, List, Mapping, Optional, Tuple
from urllib.parse import urlsplit

from dset.data.captions import read_text, write_caption
from dset.data.errors import MalformedRecord, UnreadableFile, WriteFailure
from dset.data.schema import E621Config, RunSummary
from dset.data.tagging import cleanup_caption, filter_tags, normalize_tag, render_template
from dset.data.walk import walk_directory

logger = logging.getLogger(__name__)

# (record category, template placeholder), in output order
CATEGORY_PLACEHOLDERS: Tuple[Tuple[str, str], ...] = (
    ("artist", "artists"),
    ("character", "characters"),
    ("species", "species"),
    ("copyright", "copyright"),
    ("general", "general"),
    ("meta", "meta"),
)

DEFAULT_RATING = "q"
GROUP_SEPARATOR = ", "


def process_category(tags: Any, category: str, config: E621Config) -> List[str]:
    if not isinstance(tags, list):
        return []
    raw = [t for t in tags if isinstance(t, str)]
    return [normalize_tag(t, category, config) for t in filter_tags(raw, config.filter_tags)]


def _tag_groups(tags_dict: Any, config: E621Config) -> List[Tuple[str, List[str]]]:
    if not isinstance(tags_dict, Mapping):
        tags_dict = {}
    return [
        (placeholder, process_category(tags_dict.get(category), category, config))
        for category, placeholder in CATEGORY_PLACEHOLDERS
    ]


def process_e621_tags(tags_dict: Any, config: Optional[E621Config] = None) -> List[str]:
    """Flatten every category into one list, artist first, meta last."""
    config = config or E621Config()
    flat: List[str] = []
    for _, tags in _tag_groups(tags_dict, config):
        flat.extend(tags)
    return flat


def format_e621_caption(post: Mapping[str, Any], config: Optional[E621Config] = None) -> Optional[str]:
    """Build the caption text for one ``post`` object.

    Returns None when nothing worth writing is left: an empty caption, or,
    with tag filtering on, a caption that would hold only the rating.
    """
    config = config or E621Config()
    rating = post.get("rating")
    if not isinstance(rating, str):
        rating = DEFAULT_RATING
    rating = config.convert_rating(rating)

    groups = _tag_groups(post.get("tags"), config)
    values = [("rating", rating)]
    values.extend((placeholder, GROUP_SEPARATOR.join(tags)) for placeholder, tags in groups)

    caption = cleanup_caption(render_template(config.template, values))
    has_tags = any(tags for _, tags in groups)
    if not caption.strip() or (config.filter_tags and not has_tags):
        return None
    return caption


def _post_url(data: Any) -> Optional[str]:
    if not isinstance(data, Mapping):
        return None
    post = data.get("post")
    if not isinstance(post, Mapping):
        return None
    file_data = post.get("file")
    if not isinstance(file_data, Mapping):
        return None
    url = file_data.get("url")
    return url if isinstance(url, str) and url else None


def e621_caption_path(url: str, file_path: Path) -> Optional[Path]:
    stem = PurePosixPath(urlsplit(url).path).stem
    if not stem:
        return None
    return Path(file_path).with_name(f"{stem}.txt")


def process_e621_json_data(
    data: Any,
    file_path: Path,
    config: Optional[E621Config] = None,
    dry_run: bool = False,
    require_url: bool = False,
) -> Optional[Path]:
    """Write the caption for one parsed record; returns the written path.

    A record without ``post.file.url`` is skipped silently unless
    ``require_url`` is set, in which case ``MalformedRecord`` is raised.
    """
    url = _post_url(data)
    caption_path = e621_caption_path(url, file_path) if url else None
    if caption_path is None:
        if require_url:
            raise MalformedRecord(f"No post.file.url in {file_path}")
        logger.debug("No post.file.url in %s, nothing to do", file_path)
        return None

    caption = format_e621_caption(data["post"], config)
    if caption is None:
        logger.debug("No tags left for %s, not writing %s", file_path, caption_path)
        return None

    if dry_run:
        logger.info("Would write to %s: %s", caption_path, caption)
    else:
        write_caption(caption_path, caption)
        logger.debug("Wrote %s", caption_path)
    return caption_path


def load_e621_json(path: Path) -> Any:
    try:
        return json.loads(read_text(path))
    except json.JSONDecodeError as exc:
        raise UnreadableFile(path, exc) from exc


def process_e621_json_file(
    file_path: Path,
    config: Optional[E621Config] = None,
    dry_run: bool = False,
) -> Optional[Path]:
    file_path = Path(file_path)
    return process_e621_json_data(load_e621_json(file_path), file_path, config, dry_run=dry_run)


def process_e621_directory(
    directory: Path,
    config: Optional[E621Config] = None,
    dry_run: bool = False,
    max_workers: Optional[int] = None,
    progress: bool = True,
) -> RunSummary:
    config = config or E621Config()
    summary = RunSummary(dry_run=dry_run)

    def handle(path: Path) -> None:
        try:
            written = process_e621_json_file(path, config, dry_run=dry_run)
        except UnreadableFile as exc:
            logger.warning("Error processing %s: %s", path, exc)
            summary.increment("failed")
            return
        if written is not None:
            summary.increment("processed")
        else:
            summary.increment("skipped_missing")

    result = walk_directory(directory, "*.json", handle, max_workers=max_workers, progress=progress, desc="e621")
    for _, exc in result.errors:
        if isinstance(exc, WriteFailure):
            raise exc
    for path, exc in result.errors:
        logger.warning("Error processing %s: %s", path, exc)
        summary.increment("failed")

    verb = "Would have written" if dry_run else "Wrote"
    logger.info("%s %d caption files from %s.", verb, summary.processed, directory)
    return summary
