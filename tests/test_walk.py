import threading
from pathlib import Path

import pytest

from dset.data.walk import iter_matching_paths, walk_directory


def _populate(root: Path) -> None:
    for rel in ["a.txt", "b.json", "sub/c.txt", "sub/deeper/d.txt"]:
        path = root / rel
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(rel, encoding="utf-8")


def test_iter_matching_paths_is_recursive_and_sorted(tmp_path: Path) -> None:
    _populate(tmp_path)
    paths = iter_matching_paths(tmp_path, "*.txt")
    assert [p.relative_to(tmp_path).as_posix() for p in paths] == ["a.txt", "sub/c.txt", "sub/deeper/d.txt"]


def test_walk_visits_every_file(tmp_path: Path) -> None:
    _populate(tmp_path)
    seen = []
    lock = threading.Lock()

    def handler(path: Path) -> None:
        with lock:
            seen.append(path.name)

    result = walk_directory(tmp_path, "*", handler, max_workers=4, progress=False)
    assert result.visited == 4
    assert result.ok
    assert sorted(seen) == ["a.txt", "b.json", "c.txt", "d.txt"]


def test_walk_collects_errors_without_stopping(tmp_path: Path) -> None:
    _populate(tmp_path)
    done = []

    def handler(path: Path) -> None:
        if path.suffix == ".json":
            raise RuntimeError("bad record")
        done.append(path.name)

    result = walk_directory(tmp_path, "*", handler, max_workers=1, progress=False)
    assert result.visited == 4
    assert len(done) == 3
    assert [p.name for p, _ in result.errors] == ["b.json"]
    assert isinstance(result.errors[0][1], RuntimeError)


def test_walk_empty_directory(tmp_path: Path) -> None:
    result = walk_directory(tmp_path, "*.txt", lambda p: None, progress=False)
    assert result.visited == 0
    assert result.ok


def test_walk_missing_root(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        walk_directory(tmp_path / "missing", "*", lambda p: None, progress=False)
