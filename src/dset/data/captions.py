"""Caption file helpers: reading, writing and in-place text fixes."""
from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, List, Optional, Tuple

from dset.data.errors import UnreadableFile, WriteFailure

logger = logging.getLogger(__name__)

_SMART_DOUBLE_QUOTES = ("“", "”")
_WHITESPACE = re.compile(r"\s+")


def read_text(path: Path) -> str:
    try:
        return Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise UnreadableFile(path, exc) from exc


def write_caption(path: Path, text: str) -> None:
    try:
        Path(path).write_text(text, encoding="utf-8")
    except OSError as exc:
        raise WriteFailure(path, exc) from exc


def process_file(path: Path) -> None:
    """Log a caption file, pretty-printed when it holds JSON."""
    path = Path(path)
    logger.info("Processing caption file: %s", path)
    content = read_text(path)
    try:
        data = json.loads(content)
    except json.JSONDecodeError:
        logger.info("Plain text caption for %s: %s", path, content.strip())
        return
    logger.info("JSON caption for %s: %s", path, json.dumps(data, indent=2, ensure_ascii=False))


def json_to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        caption = value.get("caption")
        if isinstance(caption, str):
            return caption
        raise ValueError("No caption field found in JSON object")
    raise ValueError("Unsupported JSON format")


def caption_file_exists_and_not_empty(path: Path) -> bool:
    path = Path(path)
    if not path.is_file():
        return False
    try:
        return bool(path.read_text(encoding="utf-8").strip())
    except (OSError, UnicodeDecodeError):
        return False


def format_text_content(content: str) -> str:
    return _WHITESPACE.sub(" ", content).strip()


def replace_string(path: Path, search: str, replace: str) -> bool:
    """Replace ``search`` with ``replace`` in a caption file.

    Removing text (empty ``replace``) also collapses the whitespace left
    behind. Returns True when the file was rewritten.
    """
    if not search:
        return False
    content = read_text(path)
    new_content = content.replace(search, replace)
    if not replace:
        new_content = format_text_content(new_content)
    if new_content == content:
        return False
    write_caption(path, new_content)
    return True


def replace_special_chars(path: Path) -> bool:
    content = read_text(path)
    new_content = content
    for quote in _SMART_DOUBLE_QUOTES:
        new_content = new_content.replace(quote, '"')
    if new_content == content:
        return False
    write_caption(path, new_content)
    return True


def split_content(content: str) -> Tuple[List[str], str]:
    """Split ``"tag1, tag2., Sentence."`` into its tags and trailing prose."""
    head, _, sentences = content.partition("., ")
    tags = [tag.strip() for tag in head.split(",")]
    return tags, sentences.strip()


def tagger_json_to_caption(path: Path, threshold: float = 0.2) -> Optional[Path]:
    """Turn a ``{tag: probability}`` tagger dump into a ``.txt`` caption.

    Tags below ``threshold`` are dropped, the rest are ordered by probability
    and have their parentheses escaped for prompt syntax.
    """
    path = Path(path)
    if path.suffix.lower() != ".json":
        return None
    try:
        data = json.loads(read_text(path))
    except json.JSONDecodeError as exc:
        raise UnreadableFile(path, exc) from exc
    logger.debug("Processing JSON: %s", path)

    scored: List[Tuple[str, float]] = []
    if isinstance(data, dict):
        for tag, prob in data.items():
            if isinstance(prob, bool) or not isinstance(prob, (int, float)):
                continue
            if prob >= threshold:
                scored.append((tag, float(prob)))
    scored.sort(key=lambda item: item[1], reverse=True)

    tags = [tag.replace("(", "\\(").replace(")", "\\)") for tag, _ in scored]
    out_path = path.with_suffix(".txt")
    write_caption(out_path, ", ".join(tags))
    return out_path
