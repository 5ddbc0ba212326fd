"""
Reconciliation engine: classifies each candidate against the song store as
imported, skipped (duplicate) or failed (invalid), and commits the batch in a
single transaction.
"""

from __future__ import annotations

import logging
import sqlite3
from typing import Any, Callable, Iterable, Mapping, Sequence

from .errors import ImportFailedError, ImportPreconditionError, RowError
from .parser import ImportCandidate
from .report import ImportReport, Outcome, build_report
from .sources import CandidateSource, ColumnMap, OcrSource, SpreadsheetSource
from .store import MAX_ARTIST_LENGTH, MAX_TITLE_LENGTH, SongStore


__all__ = [
    "ImportFailedError",
    "ImportPreconditionError",
    "RowError",
    "import_candidates",
    "import_rows",
    "import_selected",
    "import_source",
]

logger = logging.getLogger(__name__)

Progress = Callable[[Iterable[Any]], Iterable[Any]]


def _validate(candidate: ImportCandidate) -> str | None:
    if not candidate.title:
        return "title must not be empty"
    if len(candidate.title) > MAX_TITLE_LENGTH:
        return f"title must be at most {MAX_TITLE_LENGTH} characters"
    if len(candidate.artist) > MAX_ARTIST_LENGTH:
        return f"artist must be at most {MAX_ARTIST_LENGTH} characters"
    return None


def _attach_tags(store: SongStore, song_id: int, tags: Sequence[str], *, auto_create_tags: bool) -> None:
    for raw in tags:
        name = raw.strip()
        if not name:
            continue
        try:
            with store.savepoint("song_tag"):
                tag = store.find_or_create_tag(name) if auto_create_tags else store.find_tag(name)
                if tag is None:
                    logger.debug("tag %r does not exist, not linking song %d", name, song_id)
                    continue
                store.link_song_tag(song_id, tag.id)
        except (sqlite3.Error, ValueError) as exc:
            logger.warning("could not tag song %d with %r: %s", song_id, name, exc)


def _reconcile(store: SongStore, label: str, candidate: ImportCandidate, *, auto_create_tags: bool) -> Outcome:
    problem = _validate(candidate)
    if problem:
        return Outcome("failed", f"{label}: {problem}")

    if store.find_song_by_title_artist(candidate.title, candidate.artist):
        return Outcome("skipped", candidate.display)

    song_id = store.insert_song(candidate.title, candidate.artist)
    if candidate.tags:
        _attach_tags(store, song_id, candidate.tags, auto_create_tags=auto_create_tags)
    return Outcome("imported", candidate.display, song_id=song_id)


def import_source(
    store: SongStore,
    source: CandidateSource,
    *,
    auto_create_tags: bool = True,
    progress: Progress | None = None,
) -> ImportReport:
    outcomes: list[Outcome] = []
    entries: Iterable[tuple[str, Any]] = source.entries()
    if progress is not None:
        entries = progress(entries)

    try:
        with store.transaction():
            for label, entry in entries:
                try:
                    candidate = source.to_candidate(entry)
                except RowError as exc:
                    outcomes.append(Outcome("failed", f"{label}: {exc}"))
                    continue
                outcomes.append(_reconcile(store, label, candidate, auto_create_tags=auto_create_tags))
    except Exception as exc:
        logger.error("%s import failed and was rolled back: %s", source.kind, exc)
        raise ImportFailedError(f"import failed: {exc}") from exc

    report = build_report(outcomes)
    logger.info("%s import: %s", source.kind, report.message)
    return report


def import_candidates(
    store: SongStore,
    candidates: Sequence[ImportCandidate],
    *,
    auto_create_tags: bool = True,
) -> ImportReport:
    return import_source(store, OcrSource(candidates), auto_create_tags=auto_create_tags)


def import_selected(
    store: SongStore,
    candidates: Sequence[ImportCandidate],
    selected: Sequence[int],
    *,
    auto_create_tags: bool = True,
) -> ImportReport:
    """Commit the previewed candidates picked by index, in the order given."""
    return import_source(store, OcrSource(candidates, selected), auto_create_tags=auto_create_tags)


def import_rows(
    store: SongStore,
    rows: Sequence[Mapping[str, Any]],
    column_map: ColumnMap | None = None,
    *,
    auto_create_tags: bool = True,
    progress: Progress | None = None,
) -> ImportReport:
    return import_source(
        store,
        SpreadsheetSource(rows, column_map),
        auto_create_tags=auto_create_tags,
        progress=progress,
    )
