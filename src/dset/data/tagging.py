"""Tag normalization, joining and caption templating.

Both front ends end in the same merge-filter-format-join step:

  * tags are split out of comma separated text (``split_tags``)
  * ignore patterns drop e621 noise such as years and aspect ratios
  * each tag is normalized for its category (artist decoration, underscores)
  * the surviving tags are joined, either deduplicated and sorted or in
    source order with repeats kept
  * structured records additionally go through a ``{placeholder}`` template
    and a cleanup pass that removes the separators left by empty groups
"""
from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence, Tuple

from dset.data.schema import E621Config

# ---------------------------------------------------------------------------
#  Ignore patterns
# ---------------------------------------------------------------------------
IGNORED_E621_TAGS: Tuple[re.Pattern, ...] = (
    re.compile(r"^conditional_dnp$"),
    re.compile(r"^\d{4}$"),      # years
    re.compile(r"^\d+:\d+$"),    # aspect ratios
)

ARTIST_CATEGORY = "artist"
DEFAULT_CATEGORY = "default"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")

# Artifacts left behind when an empty group is substituted into a template
_CLEANUP_REPLACEMENTS: Tuple[Tuple[str, str], ...] = (
    (", ,", ","),
    (",,", ","),
    (" ,", ","),
)


def should_ignore_e621_tag(tag: str) -> bool:
    return any(pattern.fullmatch(tag) for pattern in IGNORED_E621_TAGS)


def split_tags(content: str) -> List[str]:
    return [tag.strip() for tag in content.split(",") if tag.strip()]


def filter_tags(tags: Iterable[str], enabled: bool = True) -> List[str]:
    if not enabled:
        return list(tags)
    return [tag for tag in tags if not should_ignore_e621_tag(tag)]


def normalize_tag(tag: str, category: str = DEFAULT_CATEGORY, config: Optional[E621Config] = None) -> str:
    """Return the display form of ``tag`` for ``category``.

    Artists lose their ``" (artist)"`` disambiguator and get the configured
    prefix/suffix (``"by "`` by default). Other categories only have their
    underscores replaced, and only when ``replace_underscores`` is on.
    """
    config = config or E621Config()
    if category == ARTIST_CATEGORY:
        return config.format_artist_name(tag)
    if config.replace_underscores:
        return tag.replace("_", " ")
    return tag


def join_tags(tags: Iterable[str], separator: str = ", ", dedupe: bool = True) -> str:
    if dedupe:
        return separator.join(sorted(set(tags)))
    return separator.join(tags)


def append_caption(tags_portion: str, caption: str, separator: str = ", ") -> str:
    if not tags_portion:
        return caption
    if not caption:
        return tags_portion
    return f"{tags_portion}{separator}{caption}"


def render_template(template: str, values: Sequence[Tuple[str, str]]) -> str:
    """Replace each known ``{name}`` token with its value in a single pass.

    Substituted values are never scanned again, and unknown tokens or other
    braces are left alone.
    """
    lookup = dict(values)
    return _PLACEHOLDER.sub(lambda m: lookup.get(m.group(1), m.group(0)), template)


def cleanup_caption(text: str) -> str:
    while True:
        cleaned = text
        for old, new in _CLEANUP_REPLACEMENTS:
            cleaned = cleaned.replace(old, new)
        cleaned = cleaned.strip(" ,")
        if cleaned == text:
            return cleaned
        text = cleaned
