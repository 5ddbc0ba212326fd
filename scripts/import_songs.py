from __future__ import annotations

import argparse
import logging
from pathlib import Path
import sys

from tqdm import tqdm

from song_list.core.config import load_settings
from song_list.core.importer import import_source
from song_list.core.ocr import get_recognizer, preview_image
from song_list.core.parser import ImportCandidate, extract_songs
from song_list.core.report import ImportReport
from song_list.core.sources import OcrSource, SpreadsheetSource, read_table_rows
from song_list.core.store import SongStore


SPREADSHEET_SUFFIXES = {".xlsx", ".xlsm", ".csv"}
TEXT_SUFFIXES = {".txt"}
IMAGE_SUFFIXES = {".png", ".jpg", ".jpeg", ".bmp", ".gif", ".webp"}


def _parse_selection(value: str | None) -> list[int] | None:
    if not value:
        return None
    try:
        return [int(part) for part in value.split(",") if part.strip()]
    except ValueError as exc:
        raise RuntimeError(f"--select must be comma-separated indexes, got {value!r}") from exc


def _progress(total: int):
    def wrap(entries):
        return tqdm(entries, total=total, desc="Importing")

    return wrap


def _candidates_from(path: Path, settings) -> list[ImportCandidate]:
    suffix = path.suffix.lower()
    if suffix in TEXT_SUFFIXES:
        return extract_songs(path.read_text(encoding="utf-8").splitlines())
    preview = preview_image(path, get_recognizer(settings))
    print(f"Recognized {preview.total_text_lines} text lines ({preview.mode} mode).")
    return preview.candidates


def _print_candidates(candidates: list[ImportCandidate]) -> None:
    for index, candidate in enumerate(candidates):
        print(f"[{index}] {candidate.display}  (confidence {candidate.confidence:.1f})")


def _print_report(report: ImportReport) -> None:
    print(report.message)
    if report.skipped_samples:
        print("Skipped (already in the song list):")
        for line in report.skipped_samples:
            print(f"- {line}")
    if report.error_samples:
        print("Errors:")
        for line in report.error_samples:
            print(f"- {line}")


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(description="Import songs into the song list database.")
    parser.add_argument("input", help="Spreadsheet (.xlsx/.csv), text list (.txt) or song list image")
    parser.add_argument("--db", default=None, help="Database file (default: SONGLIST_DB_PATH or data/songlist.sqlite3)")
    parser.add_argument("--no-create-tags", action="store_true", help="Only link tags that already exist")
    parser.add_argument("--select", default=None, help="Comma-separated indexes of recognized songs to import (text/image input)")
    parser.add_argument("--dry-run", action="store_true", help="Show what would be imported without writing anything")
    args = parser.parse_args(argv)

    settings = load_settings()
    logging.basicConfig(level=settings.log_level, format="[%(levelname)s] %(asctime)s %(message)s")

    path = Path(args.input).expanduser()
    if not path.exists():
        raise RuntimeError(f"Input file not found:\n  {path}")

    suffix = path.suffix.lower()
    if suffix not in SPREADSHEET_SUFFIXES | TEXT_SUFFIXES | IMAGE_SUFFIXES:
        raise RuntimeError(f"Unsupported input type: {suffix or path.name}")

    auto_create_tags = not args.no_create_tags
    db_path = Path(args.db).expanduser() if args.db else settings.db_path

    if suffix in SPREADSHEET_SUFFIXES:
        with path.open("rb") as stream:
            source = SpreadsheetSource(read_table_rows(path.name, stream))
        if args.dry_run:
            print(f"[dry-run] Would import {len(source)} spreadsheet rows into {db_path}")
            return 0
    else:
        candidates = _candidates_from(path, settings)
        if not candidates:
            raise RuntimeError("No songs found in input file.")
        source = OcrSource(candidates, _parse_selection(args.select))
        if args.dry_run:
            _print_candidates(candidates)
            print(f"[dry-run] Would import {len(source)} of {len(candidates)} songs into {db_path}")
            return 0

    store = SongStore.open(db_path)
    try:
        report = import_source(store, source, auto_create_tags=auto_create_tags, progress=_progress(len(source)))
    finally:
        store.close()
    _print_report(report)
    return 0


if __name__ == "__main__":
    try:
        raise SystemExit(main(sys.argv[1:]))
    except KeyboardInterrupt:
        print("\nCancelled.", file=sys.stderr)
        raise SystemExit(130)
    except Exception as exc:
        msg = str(exc).rstrip() or repr(exc)
        if "\n" in msg:
            first, rest = msg.split("\n", 1)
            print(f"ERROR: {first}", file=sys.stderr)
            print(rest, file=sys.stderr)
        else:
            print(f"ERROR: {msg}", file=sys.stderr)
        raise SystemExit(2)
