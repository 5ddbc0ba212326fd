from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
import os
from pathlib import Path
import sqlite3
from typing import Iterable, Iterator


MAX_TITLE_LENGTH = 100
MAX_ARTIST_LENGTH = 100
MAX_TAG_LENGTH = 50

_SCHEMA = """
CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    name TEXT UNIQUE NOT NULL,
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS songs (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    title TEXT NOT NULL,
    artist TEXT NOT NULL DEFAULT '',
    created_at DATETIME DEFAULT CURRENT_TIMESTAMP
);
CREATE TABLE IF NOT EXISTS song_tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    song_id INTEGER NOT NULL,
    tag_id INTEGER NOT NULL,
    FOREIGN KEY (song_id) REFERENCES songs(id) ON DELETE CASCADE,
    FOREIGN KEY (tag_id) REFERENCES tags(id) ON DELETE CASCADE,
    UNIQUE(song_id, tag_id)
);
CREATE UNIQUE INDEX IF NOT EXISTS idx_songs_title_artist ON songs(title, artist);
CREATE INDEX IF NOT EXISTS idx_songs_artist ON songs(artist);
CREATE INDEX IF NOT EXISTS idx_songs_created_at ON songs(created_at);
CREATE INDEX IF NOT EXISTS idx_song_tags_song_id ON song_tags(song_id);
CREATE INDEX IF NOT EXISTS idx_song_tags_tag_id ON song_tags(tag_id);
"""


@dataclass(frozen=True)
class Song:
    id: int
    title: str
    artist: str
    created_at: str


@dataclass(frozen=True)
class Tag:
    id: int
    name: str


def _song_from_row(row: sqlite3.Row) -> Song:
    return Song(id=row["id"], title=row["title"], artist=row["artist"], created_at=row["created_at"])


class SongStore:
    """SQLite-backed songs, tags and their associations.

    The connection runs in autocommit mode; `transaction()` opens an explicit
    transaction so a whole import commits or rolls back as one unit.
    """

    def __init__(self, db: sqlite3.Connection):
        self.db = db
        self.db.row_factory = sqlite3.Row
        self.db.execute("PRAGMA foreign_keys = ON")
        self.db.executescript(_SCHEMA)

    @classmethod
    def open(cls, path: str | os.PathLike[str]) -> "SongStore":
        if str(path) != ":memory:":
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        return cls(sqlite3.connect(str(path), isolation_level=None))

    def close(self) -> None:
        self.db.close()

    @contextmanager
    def transaction(self) -> Iterator["SongStore"]:
        self.db.execute("BEGIN")
        try:
            yield self
            self.db.execute("COMMIT")
        except BaseException:
            if self.db.in_transaction:
                self.db.execute("ROLLBACK")
            raise

    @contextmanager
    def savepoint(self, name: str) -> Iterator[None]:
        self.db.execute(f"SAVEPOINT {name}")
        try:
            yield
        except BaseException:
            self.db.execute(f"ROLLBACK TO {name}")
            self.db.execute(f"RELEASE {name}")
            raise
        self.db.execute(f"RELEASE {name}")

    # -------------------------------
    # SONGS
    # -------------------------------
    def find_song_by_title_artist(self, title: str, artist: str = "") -> Song | None:
        row = self.db.execute(
            "SELECT id, title, artist, created_at FROM songs WHERE title = ? AND artist = ? LIMIT 1",
            (title, artist or ""),
        ).fetchone()
        return _song_from_row(row) if row else None

    def insert_song(self, title: str, artist: str = "") -> int:
        title = (title or "").strip()
        artist = (artist or "").strip()
        if not 1 <= len(title) <= MAX_TITLE_LENGTH:
            raise ValueError(f"title must be 1-{MAX_TITLE_LENGTH} characters")
        if len(artist) > MAX_ARTIST_LENGTH:
            raise ValueError(f"artist must be at most {MAX_ARTIST_LENGTH} characters")
        cursor = self.db.execute("INSERT INTO songs (title, artist) VALUES (?, ?)", (title, artist))
        return cursor.lastrowid

    def get_song(self, song_id: int) -> Song | None:
        row = self.db.execute(
            "SELECT id, title, artist, created_at FROM songs WHERE id = ?", (song_id,)
        ).fetchone()
        return _song_from_row(row) if row else None

    def list_songs(self) -> list[Song]:
        cursor = self.db.execute("SELECT id, title, artist, created_at FROM songs ORDER BY id ASC")
        return [_song_from_row(row) for row in cursor.fetchall()]

    def count_songs(self) -> int:
        return self.db.execute("SELECT COUNT(*) FROM songs").fetchone()[0]

    def delete_songs(self, song_ids: Iterable[int]) -> int:
        deleted = 0
        with self.transaction():
            for song_id in song_ids:
                cursor = self.db.execute("DELETE FROM songs WHERE id = ?", (song_id,))
                deleted += cursor.rowcount
        return deleted

    # -------------------------------
    # TAGS
    # -------------------------------
    def find_tag(self, name: str) -> Tag | None:
        row = self.db.execute("SELECT id, name FROM tags WHERE name = ?", (name,)).fetchone()
        return Tag(id=row["id"], name=row["name"]) if row else None

    def find_or_create_tag(self, name: str) -> Tag:
        name = (name or "").strip()
        if not 1 <= len(name) <= MAX_TAG_LENGTH:
            raise ValueError(f"tag name must be 1-{MAX_TAG_LENGTH} characters")
        existing = self.find_tag(name)
        if existing:
            return existing
        cursor = self.db.execute("INSERT INTO tags (name) VALUES (?)", (name,))
        return Tag(id=cursor.lastrowid, name=name)

    def link_song_tag(self, song_id: int, tag_id: int) -> None:
        self.db.execute(
            "INSERT OR IGNORE INTO song_tags (song_id, tag_id) VALUES (?, ?)",
            (song_id, tag_id),
        )

    def song_tags(self, song_id: int) -> list[str]:
        cursor = self.db.execute(
            """
            SELECT tags.name FROM song_tags
            JOIN tags ON song_tags.tag_id = tags.id
            WHERE song_tags.song_id = ?
            ORDER BY song_tags.id ASC
            """,
            (song_id,),
        )
        return [row["name"] for row in cursor.fetchall()]
