from pathlib import Path

import pytest

from song_list.core.store import SongStore


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    return tmp_path / "songs.sqlite3"


@pytest.fixture
def store(db_path: Path):
    store = SongStore.open(db_path)
    yield store
    store.close()
