"""Directory traversal that hands every matching file to a handler.

The walk is the only place work is scheduled: one unit per path is submitted
to a thread pool, so handlers doing blocking file I/O overlap freely. A
failing handler is logged and recorded; it never stops the rest of the walk.
"""
from __future__ import annotations

import logging
import os
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple

from tqdm import tqdm

logger = logging.getLogger(__name__)

PathHandler = Callable[[Path], None]


@dataclass
class WalkResult:
    visited: int = 0
    errors: List[Tuple[Path, BaseException]] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.errors


def iter_matching_paths(root: Path, pattern: str = "*") -> List[Path]:
    root = Path(root)
    if not root.is_dir():
        raise FileNotFoundError(f"Directory not found: {root}")
    return sorted(p for p in root.rglob(pattern) if p.is_file())


def _default_workers() -> int:
    return min(32, (os.cpu_count() or 1) + 4)


def walk_directory(
    root: Path,
    pattern: str,
    handler: PathHandler,
    max_workers: Optional[int] = None,
    progress: bool = True,
    desc: str = "Walking",
) -> WalkResult:
    paths = iter_matching_paths(root, pattern)
    result = WalkResult()
    total = len(paths)
    if total == 0:
        logger.debug("No files matching %r under %s", pattern, root)
        return result

    workers = max(1, max_workers or _default_workers())
    show_bar = progress and sys.stderr.isatty()

    with ThreadPoolExecutor(max_workers=workers) as ex:
        pending = {ex.submit(handler, p): p for p in paths}
        for future in tqdm(
            as_completed(pending),
            total=total,
            desc=desc,
            unit="file",
            dynamic_ncols=True,
            disable=not show_bar,
        ):
            path = pending[future]
            result.visited += 1
            try:
                future.result()
            except Exception as exc:
                logger.debug("Handler failed for %s: %s", path, exc)
                result.errors.append((path, exc))

    # deterministic order for callers that report or re-raise the first error
    result.errors.sort(key=lambda item: str(item[0]))
    return result
