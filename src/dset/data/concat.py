"""Merge companion files (``.caption``, ``.wd``, ``.tags``...) into one caption.

For every image under a directory the files sharing its stem are collected:

  images/x.jpg  x.wd  x.tags  x.caption   ->   images/x.txt

Tag files are split on commas and merged (deduplicated and sorted by
default). The caption-like file is kept whole and appended after the tags.
A group is only written when every configured companion exists.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from dset.data.captions import read_text, write_caption
from dset.data.dedup import ContentHashTable, content_digest
from dset.data.errors import MissingCompanionFile, UnreadableFile, WriteFailure
from dset.data.schema import ConcatConfig, ItemGroup, RunSummary
from dset.data.tagging import append_caption, join_tags, split_tags
from dset.data.walk import walk_directory

logger = logging.getLogger(__name__)


def find_item_group(base_path: Path, config: ConcatConfig, strict: bool = False) -> ItemGroup:
    """Collect the companions of ``base_path``; ``strict`` raises on a gap."""
    base_path = Path(base_path)
    companions = []
    missing = []
    for ext in config.extensions_to_concat:
        candidate = base_path.parent / f"{base_path.stem}.{ext}"
        if candidate.is_file():
            companions.append((ext, candidate))
        else:
            missing.append(candidate)
    if strict and missing:
        raise MissingCompanionFile(base_path, missing)
    return ItemGroup(base_path=base_path, companions=tuple(companions), missing=tuple(missing))


def read_file_content(path: Path) -> str:
    return read_text(path).strip()


def _caption_index(config: ConcatConfig, file_paths: Sequence[Path], count: int) -> int:
    wanted = config.caption_extension
    for i, path in enumerate(file_paths):
        if Path(path).name.endswith(f".{wanted}"):
            return i
    return count - 1


def concat_tags(contents: Sequence[str], config: ConcatConfig, file_paths: Sequence[Path]) -> str:
    """Join the tag files of one group and append its caption file.

    The caption file is chosen by extension (``caption``, then ``florence``,
    else the last configured extension) and is never deduplicated against
    the tags.
    """
    if not contents:
        return ""

    caption_index = _caption_index(config, file_paths, len(contents))
    tags: List[str] = []
    for i, content in enumerate(contents):
        if i == caption_index:
            continue
        tags.extend(split_tags(content))

    tags_portion = join_tags(tags, config.tag_separator, dedupe=config.remove_duplicates)
    return append_caption(tags_portion, contents[caption_index], config.tag_separator)


def check_duplicate_content(base_path: Path, config: ConcatConfig, hashes: ContentHashTable) -> bool:
    base_path = Path(base_path)
    group = find_item_group(base_path, config)
    if not group.complete:
        logger.debug("Missing required files for %s, not deduplicating", base_path)
        return False
    try:
        digest = content_digest(group.companion_paths)
    except OSError as exc:
        logger.debug("Failed to hash companions of %s: %s", base_path, exc)
        return False

    owner = hashes.claim(digest, str(base_path))
    if owner is not None:
        logger.debug("Found duplicate content: %s matches %s", base_path, owner)
        return True
    logger.debug("Generated hash for %s: %s", base_path, digest)
    return False


def process_image_file(image_path: Path, config: ConcatConfig, dry_run: bool = False) -> bool:
    """Write the merged caption for one image.

    Returns False (after a warning) when a companion file is missing. Raises
    ``UnreadableFile`` when a companion cannot be decoded and ``WriteFailure``
    when the output cannot be written.
    """
    image_path = Path(image_path)
    try:
        group = find_item_group(image_path, config, strict=True)
    except MissingCompanionFile as exc:
        logger.warning("%s", exc)
        return False

    contents = [read_file_content(p) for p in group.companion_paths]
    concatenated = concat_tags(contents, config, group.companion_paths)
    output_path = group.output_path(config.output_extension)

    if dry_run:
        logger.info("Would write to %s: %s", output_path, concatenated)
    else:
        write_caption(output_path, concatenated)
        logger.debug("Wrote %s", output_path)
    return True


def concat_files(
    directory: Path,
    config: ConcatConfig,
    dry_run: bool = False,
    max_workers: Optional[int] = None,
    progress: bool = True,
) -> RunSummary:
    directory = Path(directory)
    logger.info("Searching for files in: %s", directory)
    logger.info("Using extensions: %s", ", ".join(config.extensions_to_concat))
    logger.info("Output extension: %s", config.output_extension)
    if config.deduplicate_files:
        logger.info("File deduplication enabled - will check for identical file contents")

    summary = RunSummary(dry_run=dry_run, deduplicate_files=config.deduplicate_files)
    hashes = ContentHashTable()
    base_extensions = set(config.base_extensions)

    def handle(path: Path) -> None:
        if path.suffix.lstrip(".").lower() not in base_extensions:
            return
        if config.deduplicate_files and check_duplicate_content(path, config, hashes):
            logger.debug("Skipping duplicate file: %s", path)
            summary.increment("skipped_duplicates")
            return
        try:
            processed = process_image_file(path, config, dry_run)
        except UnreadableFile as exc:
            logger.warning("Error processing %s: %s", path, exc)
            summary.increment("failed")
            return
        if processed:
            summary.increment("processed")
        else:
            summary.increment("skipped_missing")

    result = walk_directory(directory, "*", handle, max_workers=max_workers, progress=progress, desc="Concatenating")

    for path, exc in result.errors:
        if isinstance(exc, WriteFailure):
            raise exc
    for path, exc in result.errors:
        logger.warning("Error processing %s: %s", path, exc)
        summary.increment("failed")

    if dry_run:
        logger.info("Dry run completed. Would have processed %d files.", summary.processed)
    else:
        logger.info("Concatenation completed. Processed %d files.", summary.processed)
    if config.deduplicate_files:
        logger.info("Skipped %d duplicate files.", summary.skipped_duplicates)
    return summary
