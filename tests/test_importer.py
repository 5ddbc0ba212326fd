import logging
import sqlite3

import pytest

from song_list.core.importer import (
    ImportFailedError,
    ImportPreconditionError,
    import_candidates,
    import_rows,
    import_selected,
)
from song_list.core.parser import ImportCandidate
from song_list.core.sources import ColumnMap
from song_list.core.store import SongStore


def _candidates(*pairs):
    return [ImportCandidate(title=title, artist=artist) for title, artist in pairs]


def test_same_batch_duplicate_is_skipped_against_the_first(store):
    report = import_rows(store, [{"title": "A", "artist": ""}, {"title": "A", "artist": ""}])
    assert (report.imported_count, report.skipped_count, report.failed_count, report.total_count) == (1, 1, 0, 2)
    assert report.skipped_samples == ["A"]
    assert store.count_songs() == 1


def test_empty_title_fails_with_row_number(store):
    report = import_rows(store, [{"title": "夜曲", "artist": "周杰伦"}, {"title": "  ", "artist": "周杰伦"}])
    assert report.failed_count == 1
    assert report.imported_count == 1
    assert report.error_samples == ["row 3: title must not be empty"]


def test_candidates_are_labelled_by_index(store):
    report = import_candidates(store, _candidates(("", "x"), ("夜曲", "")))
    assert report.error_samples == ["index 0: title must not be empty"]
    assert report.imported_count == 1


def test_overlong_fields_fail(store):
    report = import_candidates(store, _candidates(("t" * 101, ""), ("ok", "a" * 101)))
    assert report.failed_count == 2
    assert report.error_samples == [
        "index 0: title must be at most 100 characters",
        "index 1: artist must be at most 100 characters",
    ]
    assert store.count_songs() == 0


def test_second_import_of_same_list_skips_everything(store):
    candidates = _candidates(("起风了", "买辣椒也用券"), ("夜曲", "周杰伦"), ("UP", ""))
    first = import_candidates(store, candidates)
    second = import_candidates(store, candidates)

    assert first.imported_count == 3
    assert (second.imported_count, second.skipped_count) == (0, 3)
    assert second.skipped_samples == ["起风了 - 买辣椒也用券", "夜曲 - 周杰伦", "UP"]


def test_duplicate_check_is_case_sensitive(store):
    report = import_candidates(store, _candidates(("Hello", "Adele"), ("hello", "Adele")))
    assert report.imported_count == 2


def test_skipped_samples_are_truncated_to_ten(store):
    candidates = _candidates(*[(f"Song {i}", "Artist") for i in range(15)])
    import_candidates(store, candidates)
    report = import_candidates(store, candidates)

    assert report.skipped_count == 15
    assert len(report.skipped_samples) == 10
    assert report.skipped_samples[0] == "Song 0 - Artist"
    assert report.total_count == report.imported_count + report.skipped_count + report.failed_count


def test_error_samples_are_truncated_to_ten(store):
    report = import_candidates(store, _candidates(*[("", str(i)) for i in range(12)]))
    assert report.failed_count == 12
    assert len(report.error_samples) == 10
    assert report.error_samples[-1] == "index 9: title must not be empty"


def test_tags_are_created_and_linked(store):
    rows = [{"歌曲名称": "夜曲", "歌手": "周杰伦", "标签": "国语，R&B 经典,国语"}]
    report = import_rows(store, rows)

    song = store.find_song_by_title_artist("夜曲", "周杰伦")
    assert report.imported_count == 1
    assert store.song_tags(song.id) == ["国语", "R&B", "经典"]


def test_without_auto_create_only_existing_tags_are_linked(store):
    with store.transaction():
        store.find_or_create_tag("国语")

    report = import_candidates(
        store,
        [ImportCandidate(title="夜曲", artist="周杰伦", tags=("国语", "经典"))],
        auto_create_tags=False,
    )

    song = store.find_song_by_title_artist("夜曲", "周杰伦")
    assert report.imported_count == 1
    assert store.song_tags(song.id) == ["国语"]
    assert store.find_tag("经典") is None


def test_tag_failure_does_not_fail_the_song(store, caplog):
    caplog.set_level(logging.WARNING, logger="song_list.core.importer")
    report = import_candidates(store, [ImportCandidate(title="夜曲", artist="周杰伦", tags=("x" * 51, "经典"))])

    song = store.find_song_by_title_artist("夜曲", "周杰伦")
    assert report.imported_count == 1
    assert report.failed_count == 0
    assert store.song_tags(song.id) == ["经典"]
    assert "could not tag song" in caplog.text


def test_malformed_row_fails_and_batch_continues(store):
    report = import_rows(store, [{"title": "A"}, ["not", "a", "row"], {"title": "B"}])
    assert (report.imported_count, report.failed_count) == (2, 1)
    assert report.error_samples == ["row 3: malformed row"]


def test_explicit_column_map(store):
    rows = [{"Song Name": "夜曲", "Singer Name": "周杰伦", "Labels": "国语"}]
    report = import_rows(store, rows, ColumnMap(title="Song Name", artist="Singer Name", tags="Labels"))
    song = store.find_song_by_title_artist("夜曲", "周杰伦")
    assert report.imported_count == 1
    assert store.song_tags(song.id) == ["国语"]


@pytest.mark.parametrize(
    "rows,column_map",
    [
        ([], None),
        ([{"name": "夜曲", "artist": "周杰伦"}], None),
        ([{"title": "夜曲"}], ColumnMap(title="Song Name")),
        (["夜曲"], None),
    ],
)
def test_precondition_failures_write_nothing(store, rows, column_map):
    with pytest.raises(ImportPreconditionError):
        import_rows(store, rows, column_map)
    assert store.count_songs() == 0


def test_empty_candidate_list_is_rejected(store):
    with pytest.raises(ImportPreconditionError):
        import_candidates(store, [])


class FlakyStore(SongStore):
    def __init__(self, db, fail_on: int):
        super().__init__(db)
        self.fail_on = fail_on
        self.inserts = 0

    def insert_song(self, title, artist=""):
        self.inserts += 1
        if self.inserts == self.fail_on:
            raise sqlite3.OperationalError("disk I/O error")
        return super().insert_song(title, artist)


def test_engine_failure_rolls_back_the_whole_batch(db_path):
    flaky = FlakyStore(sqlite3.connect(str(db_path), isolation_level=None), fail_on=2)
    try:
        with pytest.raises(ImportFailedError) as excinfo:
            import_candidates(flaky, [ImportCandidate(title="A", tags=("t",)), ImportCandidate(title="B")])
        assert isinstance(excinfo.value.__cause__, sqlite3.OperationalError)
        assert flaky.count_songs() == 0
        assert flaky.find_tag("t") is None
    finally:
        flaky.close()


def test_import_selected_uses_chosen_indexes_in_order(store):
    candidates = _candidates(("起风了", "买辣椒也用券"), ("夜曲", "周杰伦"), ("成都", "赵雷"))
    report = import_selected(store, candidates, [2, 0, 2])

    assert report.imported_count == 2
    assert report.total_count == 2
    assert [s.title for s in store.list_songs()] == ["成都", "起风了"]


@pytest.mark.parametrize("selected", [[], [3], [-1], ["0"], [True]])
def test_import_selected_rejects_bad_selection(store, selected):
    candidates = _candidates(("起风了", ""), ("夜曲", ""), ("成都", ""))
    with pytest.raises(ImportPreconditionError):
        import_selected(store, candidates, selected)
    assert store.count_songs() == 0


def test_progress_wraps_entries(store):
    seen = []

    def progress(entries):
        for entry in entries:
            seen.append(entry[0])
            yield entry

    import_rows(store, [{"title": "A"}, {"title": "B"}], progress=progress)
    assert seen == ["row 2", "row 3"]
