"""Command-line interface for dset.

Subcommands build training captions from companion files (``concat``) or
from e621 post records (``e621``), and apply small fixes to existing caption
files. Options given on the command line override the ``--config`` file.
"""
from __future__ import annotations

import argparse
import logging
import pathlib
import sys
from typing import Dict, List, Optional

from dset.config import concat_config_from_mapping, e621_config_from_mapping, load_config
from dset.data import captions, concat, e621
from dset.data.errors import DsetError
from dset.data.schema import DEFAULT_RATING_CONVERSIONS, FileExtensionPreset, RunSummary

logger = logging.getLogger("dset")


def _path_type(path_str: str) -> pathlib.Path:
    return pathlib.Path(path_str).expanduser().resolve()


def _rating_pair(value: str) -> tuple:
    key, sep, converted = value.partition("=")
    if not sep or not key:
        raise argparse.ArgumentTypeError(f"expected RATING=TEXT, got {value!r}")
    return key, converted


def _configure_logging(verbose: bool = False, quiet: bool = False) -> None:
    level = logging.DEBUG if verbose else logging.WARNING if quiet else logging.INFO
    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)


def _overrides(args: argparse.Namespace, names: Dict[str, str]) -> Dict[str, object]:
    return {key: getattr(args, attr) for attr, key in names.items() if getattr(args, attr) is not None}


def _report_failures(summary: RunSummary) -> None:
    if summary.failed:
        logger.warning("%d item(s) could not be read and were skipped", summary.failed)
    if summary.skipped_missing:
        logger.info("%d item(s) skipped", summary.skipped_missing)


def run_concat(args: argparse.Namespace) -> int:
    values = dict(load_config(args.config).get("concat") or {})
    if args.preset is not None:
        values["preset"] = args.preset
    values.update(
        _overrides(
            args,
            {
                "base_ext": "base_extensions",
                "ext": "extensions_to_concat",
                "output_ext": "output_extension",
                "separator": "tag_separator",
                "remove_duplicates": "remove_duplicates",
                "dedupe_files": "deduplicate_files",
            },
        )
    )
    config = concat_config_from_mapping(values)
    summary = concat.concat_files(
        args.directory,
        config,
        dry_run=args.dry_run,
        max_workers=args.workers,
        progress=args.progress,
    )
    _report_failures(summary)
    return 0


def run_e621(args: argparse.Namespace) -> int:
    values = dict(load_config(args.config).get("e621") or {})
    values.update(
        _overrides(
            args,
            {
                "filter_tags": "filter_tags",
                "format": "format",
                "artist_prefix": "artist_prefix",
                "artist_suffix": "artist_suffix",
                "replace_underscores": "replace_underscores",
            },
        )
    )
    if args.raw_ratings:
        values["rating_conversions"] = None
    elif args.rating:
        conversions = dict(values.get("rating_conversions") or DEFAULT_RATING_CONVERSIONS)
        conversions.update(dict(args.rating))
        values["rating_conversions"] = conversions
    config = e621_config_from_mapping(values)

    written = 0
    for path in args.paths:
        if path.is_dir():
            summary = e621.process_e621_directory(
                path, config, dry_run=args.dry_run, max_workers=args.workers, progress=args.progress
            )
            _report_failures(summary)
            written += summary.processed
        elif e621.process_e621_json_file(path, config, dry_run=args.dry_run) is not None:
            written += 1
    action = "Would write" if args.dry_run else "Wrote"
    logger.info("%s %d caption file(s)", action, written)
    return 0


def run_tagger_json(args: argparse.Namespace) -> int:
    for path in args.paths:
        out = captions.tagger_json_to_caption(path, threshold=args.threshold)
        if out is None:
            logger.warning("Not a JSON file, skipped: %s", path)
        else:
            logger.info("Wrote %s", out)
    return 0


def run_replace(args: argparse.Namespace) -> int:
    changed = sum(1 for path in args.paths if captions.replace_string(path, args.search, args.replace))
    logger.info("Updated %d of %d file(s)", changed, len(args.paths))
    return 0


def run_show(args: argparse.Namespace) -> int:
    for path in args.paths:
        captions.process_file(path)
    return 0


def run_special_chars(args: argparse.Namespace) -> int:
    changed = sum(1 for path in args.paths if captions.replace_special_chars(path))
    logger.info("Updated %d of %d file(s)", changed, len(args.paths))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build training captions from tag files and e621 records")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    parser.add_argument("-q", "--quiet", action="store_true", help="Only log warnings and errors")
    parser.add_argument("--no-progress", dest="progress", action="store_false", help="Hide progress bars")
    subparsers = parser.add_subparsers(dest="command", required=True)

    # concat
    cat = subparsers.add_parser("concat", help="Merge .caption/.wd/.tags companions into one caption per image")
    cat.add_argument("directory", type=_path_type, help="Dataset directory (searched recursively)")
    cat.add_argument("--config", type=_path_type, required=False, help="YAML/JSON config file")
    cat.add_argument("--preset", choices=[p.value for p in FileExtensionPreset], default=None)
    cat.add_argument("--base-ext", nargs="+", default=None, help="Image extensions anchoring a group")
    cat.add_argument("--ext", nargs="+", default=None, help="Companion extensions to merge, in order")
    cat.add_argument("--output-ext", default=None, help="Extension of the written caption (default: txt)")
    cat.add_argument("--separator", default=None, help="Tag separator (default: ', ')")
    cat.add_argument("--keep-duplicate-tags", dest="remove_duplicates", action="store_const", const=False, default=None,
                     help="Keep repeated tags and source order instead of dedupe + sort")
    cat.add_argument("--dedupe-files", dest="dedupe_files", action="store_const", const=True, default=None,
                     help="Skip images whose companion files repeat an earlier image")
    cat.add_argument("--dry-run", action="store_true", help="Log what would be written")
    cat.add_argument("--workers", type=int, default=None, help="Worker threads")
    cat.set_defaults(func=run_concat)

    # e621
    ej = subparsers.add_parser("e621", help="Write captions from e621 post JSON files")
    ej.add_argument("paths", nargs="+", type=_path_type, help="JSON files or directories")
    ej.add_argument("--config", type=_path_type, required=False, help="YAML/JSON config file")
    ej.add_argument("--no-filter", dest="filter_tags", action="store_const", const=False, default=None,
                    help="Keep years, aspect ratios and conditional_dnp")
    ej.add_argument("--format", default=None, help="Caption template with {rating}, {artists}, ... placeholders")
    ej.add_argument("--artist-prefix", default=None)
    ej.add_argument("--artist-suffix", default=None)
    ej.add_argument("--keep-underscores", dest="replace_underscores", action="store_const", const=False, default=None)
    ej.add_argument("--raw-ratings", action="store_true", help="Do not convert s/q/e ratings")
    ej.add_argument("--rating", type=_rating_pair, action="append", default=[], metavar="RATING=TEXT",
                    help="Extra rating conversion, may be repeated")
    ej.add_argument("--dry-run", action="store_true", help="Log what would be written")
    ej.add_argument("--workers", type=int, default=None, help="Worker threads for directories")
    ej.set_defaults(func=run_e621)

    # tagger-json
    tj = subparsers.add_parser("tagger-json", help="Convert {tag: probability} JSON into captions")
    tj.add_argument("paths", nargs="+", type=_path_type)
    tj.add_argument("--threshold", type=float, default=0.2)
    tj.set_defaults(func=run_tagger_json)

    # replace
    rp = subparsers.add_parser("replace", help="Replace text in caption files")
    rp.add_argument("paths", nargs="+", type=_path_type)
    rp.add_argument("--search", required=True)
    rp.add_argument("--replace", default="")
    rp.set_defaults(func=run_replace)

    # special-chars
    sc = subparsers.add_parser("special-chars", help="Replace smart quotes with plain ones")
    sc.add_argument("paths", nargs="+", type=_path_type)
    sc.set_defaults(func=run_special_chars)

    # show
    sh = subparsers.add_parser("show", help="Log caption files, pretty-printing JSON ones")
    sh.add_argument("paths", nargs="+", type=_path_type)
    sh.set_defaults(func=run_show)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging(verbose=args.verbose, quiet=args.quiet)
    try:
        return args.func(args)
    except (DsetError, FileNotFoundError, ValueError) as exc:
        logger.error("%s", exc)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
