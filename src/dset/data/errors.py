"""Error kinds raised while building captions.

Per-group problems (missing companions, unreadable files) are recovered by the
directory runner; only ``WriteFailure`` escapes a run.
"""
from __future__ import annotations

from pathlib import Path
from typing import Sequence


class DsetError(RuntimeError):
    pass


class MissingCompanionFile(DsetError):
    """A group lacks one or more of the configured companion extensions."""

    def __init__(self, base_path: Path, missing: Sequence[Path]):
        self.base_path = Path(base_path)
        self.missing = [Path(p) for p in missing]
        names = ", ".join(str(p) for p in self.missing)
        super().__init__(f"Skipping {self.base_path}: Missing files: {names}")


class UnreadableFile(DsetError):
    def __init__(self, path: Path, reason: object = None):
        self.path = Path(path)
        self.reason = reason
        msg = f"Failed to read file: {self.path}"
        if reason is not None:
            msg += f" ({reason})"
        super().__init__(msg)


class MalformedRecord(DsetError):
    """Structured record without ``post.file.url``."""


class WriteFailure(DsetError):
    def __init__(self, path: Path, reason: object = None):
        self.path = Path(path)
        self.reason = reason
        msg = f"Failed to write to: {self.path}"
        if reason is not None:
            msg += f" ({reason})"
        super().__init__(msg)
