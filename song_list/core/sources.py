"""
Candidate sources for the import engine.

A source turns its raw input into `(label, entry)` pairs and converts each
entry into an `ImportCandidate`. Both sources validate their preconditions in
the constructor, so a bad batch is rejected before the engine touches the
store.
"""

from __future__ import annotations

import csv
from dataclasses import dataclass
from io import BytesIO, StringIO
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Mapping, Sequence, Union
from zipfile import BadZipFile

from openpyxl import Workbook, load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from .errors import ImportPreconditionError, RowError
from .parser import ImportCandidate, split_tags


TITLE_ALIASES = ("歌曲名称", "title", "Title", "song", "Song")
ARTIST_ALIASES = ("歌手", "artist", "Artist", "singer", "Singer")
TAGS_ALIASES = ("标签", "tags", "Tags")

TEMPLATE_HEADERS = ("歌曲名称", "歌手", "标签")
TEMPLATE_ROWS = [
    ("起风了", "买辣椒也用券", "国语,流行,治愈"),
    ("夜曲", "周杰伦", "国语,R&B,经典"),
    ("示例歌曲3", "示例歌手3", "标签1,标签2"),
]
TEMPLATE_COLUMN_WIDTHS = {"A": 20, "B": 15, "C": 25}
TEMPLATE_SHEET_TITLE = "歌曲列表"

# Sheet row numbers start at 2: row 1 holds the headers.
FIRST_DATA_ROW = 2


@dataclass(frozen=True)
class ColumnMap:
    title: str
    artist: str | None = None
    tags: str | None = None

    @classmethod
    def detect(cls, headers: Sequence[str]) -> "ColumnMap":
        def pick(aliases: Sequence[str]) -> str | None:
            for alias in aliases:
                if alias in headers:
                    return alias
            return None

        title = pick(TITLE_ALIASES)
        if title is None:
            raise ImportPreconditionError(
                "spreadsheet is missing the title column (expected one of: " + ", ".join(TITLE_ALIASES) + ")"
            )
        return cls(title=title, artist=pick(ARTIST_ALIASES), tags=pick(TAGS_ALIASES))


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return str(value).strip()


class SpreadsheetSource:
    kind = "spreadsheet"

    def __init__(self, rows: Sequence[Any], column_map: ColumnMap | None = None):
        rows = list(rows)
        if not rows:
            raise ImportPreconditionError("spreadsheet has no data rows")
        first = rows[0]
        if not isinstance(first, Mapping):
            raise ImportPreconditionError("spreadsheet rows must be mappings of column name to value")
        if column_map is None:
            column_map = ColumnMap.detect(list(first.keys()))
        elif column_map.title not in first:
            raise ImportPreconditionError(f"spreadsheet is missing the title column: {column_map.title}")
        self.rows = rows
        self.column_map = column_map

    def __len__(self) -> int:
        return len(self.rows)

    def entries(self) -> Iterator[tuple[str, Any]]:
        for index, row in enumerate(self.rows):
            yield f"row {index + FIRST_DATA_ROW}", row

    def to_candidate(self, row: Any) -> ImportCandidate:
        if not isinstance(row, Mapping):
            raise RowError("malformed row")
        cols = self.column_map
        title = _cell_text(row.get(cols.title))
        artist = _cell_text(row.get(cols.artist)) if cols.artist else ""
        tags = split_tags(_cell_text(row.get(cols.tags))) if cols.tags else ()
        return ImportCandidate(title=title, artist=artist, tags=tags, confidence=1.0)


class OcrSource:
    kind = "ocr"

    def __init__(self, candidates: Sequence[ImportCandidate], selected: Sequence[int] | None = None):
        candidates = list(candidates)
        if not candidates:
            raise ImportPreconditionError("no songs to import")
        if selected is None:
            indexes = list(range(len(candidates)))
        else:
            indexes = []
            for index in selected:
                if not isinstance(index, int) or isinstance(index, bool):
                    raise ImportPreconditionError(f"selection index must be an integer: {index!r}")
                if not 0 <= index < len(candidates):
                    raise ImportPreconditionError(f"selection index out of range: {index}")
                if index not in indexes:
                    indexes.append(index)
            if not indexes:
                raise ImportPreconditionError("no songs selected")
        self.candidates = candidates
        self.indexes = indexes

    def __len__(self) -> int:
        return len(self.indexes)

    def entries(self) -> Iterator[tuple[str, ImportCandidate]]:
        for index in self.indexes:
            yield f"index {index}", self.candidates[index]

    def to_candidate(self, candidate: ImportCandidate) -> ImportCandidate:
        return ImportCandidate(
            title=(candidate.title or "").strip(),
            artist=(candidate.artist or "").strip(),
            tags=candidate.tags,
            confidence=candidate.confidence,
            source_line=candidate.source_line,
        )


CandidateSource = Union[SpreadsheetSource, OcrSource]


def read_workbook_rows(source: str | Path | BinaryIO) -> list[dict[str, str]]:
    workbook = load_workbook(source, read_only=True, data_only=True)
    try:
        sheet = workbook.worksheets[0]
        values = sheet.iter_rows(values_only=True)
        header_row = next(values, None)
        if header_row is None:
            return []
        headers = [_cell_text(h) for h in header_row]
        rows: list[dict[str, str]] = []
        for raw in values:
            cells = [_cell_text(v) for v in raw]
            if not any(cells):
                continue
            rows.append({h: c for h, c in zip(headers, cells) if h})
        return rows
    finally:
        workbook.close()


def read_csv_rows(text: str) -> list[dict[str, str]]:
    reader = csv.DictReader(StringIO(text.lstrip("\ufeff")))
    rows: list[dict[str, str]] = []
    for raw in reader:
        row = {(k or "").strip(): _cell_text(v) for k, v in raw.items() if k}
        if any(row.values()):
            rows.append(row)
    return rows


def read_table_rows(filename: str, stream: BinaryIO) -> list[dict[str, str]]:
    suffix = Path(filename or "").suffix.lower()
    if suffix in (".xlsx", ".xlsm"):
        try:
            return read_workbook_rows(BytesIO(stream.read()))
        except (InvalidFileException, BadZipFile, KeyError) as exc:
            raise ImportPreconditionError("file is not a readable .xlsx workbook") from exc
    if suffix == ".csv":
        try:
            text = stream.read().decode("utf-8")
        except UnicodeDecodeError as exc:
            raise ImportPreconditionError("CSV file must be UTF-8 encoded") from exc
        return read_csv_rows(text)
    raise ImportPreconditionError(f"unsupported spreadsheet format: {suffix or filename!r}")


def build_template_workbook() -> bytes:
    workbook = Workbook()
    sheet = workbook.active
    sheet.title = TEMPLATE_SHEET_TITLE
    sheet.append(TEMPLATE_HEADERS)
    for row in TEMPLATE_ROWS:
        sheet.append(row)
    for column, width in TEMPLATE_COLUMN_WIDTHS.items():
        sheet.column_dimensions[column].width = width

    buf = BytesIO()
    workbook.save(buf)
    return buf.getvalue()
