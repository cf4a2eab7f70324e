import json
from pathlib import Path

import pytest

from dset.cli import build_parser, main


def test_parser_requires_a_command() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args([])


def test_concat_command(make_group, tmp_path: Path) -> None:
    make_group("img", {"wd": "b, a", "tags": "a, c", "caption": "a photo"})
    rc = main(["--no-progress", "concat", str(tmp_path)])
    assert rc == 0
    assert (tmp_path / "img.txt").read_text(encoding="utf-8") == "a, b, c, a photo"


def test_concat_command_options(make_group, tmp_path: Path) -> None:
    make_group("img", {"florence": "a drawing", "wd": "b, a", "tags": "a"})
    rc = main([
        "--no-progress",
        "concat",
        str(tmp_path),
        "--preset",
        "florence+wd+tags",
        "--keep-duplicate-tags",
        "--output-ext",
        "caption_out",
    ])
    assert rc == 0
    assert (tmp_path / "img.caption_out").read_text(encoding="utf-8") == "b, a, a, a drawing"


def test_concat_dry_run(make_group, tmp_path: Path) -> None:
    make_group("img", {"wd": "a", "tags": "b", "caption": "c"})
    assert main(["--no-progress", "concat", str(tmp_path), "--dry-run"]) == 0
    assert not (tmp_path / "img.txt").exists()


def test_concat_missing_directory(tmp_path: Path) -> None:
    assert main(["--no-progress", "concat", str(tmp_path / "missing")]) == 1


def test_concat_config_file(make_group, tmp_path: Path) -> None:
    make_group("img", {"wd": "b, a", "tags": "c", "caption": "x"})
    config = tmp_path / "run.yaml"
    config.write_text("concat:\n  tag_separator: ' | '\n", encoding="utf-8")
    assert main(["--no-progress", "concat", str(tmp_path), "--config", str(config)]) == 0
    assert (tmp_path / "img.txt").read_text(encoding="utf-8") == "a | b | c | x"


def test_e621_command(write_post, tmp_path: Path) -> None:
    path = write_post({"file": {"url": "https://e621.net/data/ab/cd/post1.png"}, "rating": "e", "tags": {"general": ["blue_eyes"]}})
    assert main(["e621", str(path), "--rating", "e=nsfw"]) == 0
    assert (tmp_path / "post1.txt").read_text(encoding="utf-8") == "nsfw, blue eyes"

    assert main(["e621", str(path), "--raw-ratings", "--keep-underscores"]) == 0
    assert (tmp_path / "post1.txt").read_text(encoding="utf-8") == "e, blue_eyes"


def test_e621_directory_command(write_post, tmp_path: Path) -> None:
    write_post({"file": {"url": "https://x/one.jpg"}, "rating": "s", "tags": {"general": ["2023", "tree"]}})
    assert main(["--no-progress", "e621", str(tmp_path), "--no-filter", "--format", "{rating}: {general}"]) == 0
    assert (tmp_path / "one.txt").read_text(encoding="utf-8") == "safe: 2023, tree"


def test_e621_invalid_json_exit_code(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{", encoding="utf-8")
    assert main(["e621", str(path)]) == 1


def test_bad_rating_pair() -> None:
    with pytest.raises(SystemExit):
        build_parser().parse_args(["e621", "x.json", "--rating", "nonsense"])


def test_replace_and_special_chars_commands(tmp_path: Path) -> None:
    path = tmp_path / "c.txt"
    path.write_text("a “quoted” cat", encoding="utf-8")
    assert main(["replace", str(path), "--search", "cat", "--replace", "dog"]) == 0
    assert main(["special-chars", str(path)]) == 0
    assert path.read_text(encoding="utf-8") == 'a "quoted" dog'


def test_tagger_json_command(tmp_path: Path) -> None:
    path = tmp_path / "img.json"
    path.write_text(json.dumps({"cat": 0.9, "dog": 0.3}), encoding="utf-8")
    assert main(["tagger-json", str(path), "--threshold", "0.5"]) == 0
    assert (tmp_path / "img.txt").read_text(encoding="utf-8") == "cat"


def test_show_command(tmp_path: Path) -> None:
    path = tmp_path / "a.caption"
    path.write_text(json.dumps({"caption": "a cat"}), encoding="utf-8")
    assert main(["show", str(path)]) == 0
    assert main(["show", str(tmp_path / "missing.caption")]) == 1
