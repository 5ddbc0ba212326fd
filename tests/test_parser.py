import pytest

from song_list.core.ocr import OcrLine
from song_list.core.parser import ImportCandidate, extract_songs, parse_line, split_tags


def test_parse_strips_ordinal_and_splits_title_artist():
    result = parse_line("3. 起风了 - 买辣椒也用券")
    assert result is not None
    assert (result.title, result.artist, result.confidence) == ("起风了", "买辣椒也用券", 0.8)
    assert result.source_line == "3. 起风了 - 买辣椒也用券"


@pytest.mark.parametrize("text", ["UP", "up", "Go", "NO", "so"])
def test_parse_keeps_short_titles(text):
    result = parse_line(text)
    assert result == ImportCandidate(title=text, artist="", confidence=0.8, source_line=text)


@pytest.mark.parametrize(
    "text",
    [
        "02:20",
        "12：30",
        "12",
        "好",
        "A",
        "。。！",
        "...",
        "第1页",
        "共10首",
        "歌单推荐",
        "播放列表",
        "Page 2",
        "Total: 25",
        "时间 12",
        "日期2024",
        "扫码关注",
        "点赞收藏",
        "欧美：",
        "流行:经典",
        "Pop: hits",
        "Genre: Rock",
        "category：民谣",
    ],
)
def test_parse_rejects_noise(text):
    assert parse_line(text) is None


@pytest.mark.parametrize(
    "text,title,artist",
    [
        ("夜曲 - 周杰伦", "夜曲", "周杰伦"),
        ("12) Yesterday - The Beatles", "Yesterday", "The Beatles"),
        ("5、体面 - 于文文", "体面", "于文文"),
        ("稻香—周杰伦", "稻香", "周杰伦"),
        ("演员－薛之谦", "演员", "薛之谦"),
        ("夜曲 / 周杰伦", "夜曲", "周杰伦"),
        ("AC/DC", "AC", "DC"),
        ("Hello  Adele", "Hello", "Adele"),
        ("Hello\tAdele", "Hello", "Adele"),
        ("成都 - 赵雷 - live", "成都", "赵雷"),
        ("起风了——买辣椒也用券", "起风了", "买辣椒也用券"),
        ("2. 夜曲 —— 周杰伦", "夜曲", "周杰伦"),
        ("/晴天/周杰伦", "晴天", "周杰伦"),
    ],
)
def test_parse_separators(text, title, artist):
    result = parse_line(text)
    assert result is not None
    assert (result.title, result.artist, result.confidence) == (title, artist, 0.8)
    assert 1 <= len(result.title) <= 50


def test_parse_needs_two_non_empty_parts_to_split():
    # Only one non-empty part around "/", so the line falls back to a bare title.
    result = parse_line("/晴天")
    assert result is not None
    assert (result.title, result.artist, result.confidence) == ("/晴天", "", 0.7)


def test_parse_fallbacks():
    numbered = parse_line("1. 成都")
    assert (numbered.title, numbered.artist, numbered.confidence) == ("成都", "", 0.6)

    short = parse_line("晴天")
    assert (short.title, short.confidence) == ("晴天", 0.7)

    plain = parse_line("Bohemian Rhapsody")
    assert (plain.title, plain.confidence) == ("Bohemian Rhapsody", 0.5)


def test_parse_rejects_long_lines_without_separator():
    assert parse_line("x" * 31) is None
    assert parse_line("1. " + "x" * 40) is None
    assert parse_line("x" * 60 + " - artist") is None


def test_parse_is_deterministic():
    assert parse_line("2. 夜曲 - 周杰伦") == parse_line("2. 夜曲 - 周杰伦")
    assert parse_line("") is None


def test_extract_songs_normalizes_items_and_dedupes():
    lines = iter(
        [
            {"text": " 夜曲 - 周杰伦 "},
            "夜曲 - 周杰伦",
            {"Text": "UP"},
            {"content": "02:20"},
            OcrLine(text="成都 - 赵雷", confidence=99),
            {"text": "", "content": "理想 - 赵雷"},
            {"position": [1, 2]},
            "",
            "   ",
        ]
    )
    songs = extract_songs(lines)
    assert [(s.title, s.artist) for s in songs] == [
        ("夜曲", "周杰伦"),
        ("UP", ""),
        ("成都", "赵雷"),
        ("理想", "赵雷"),
    ]


def test_extract_songs_keeps_distinct_lines_that_parse_alike():
    songs = extract_songs(["1. 夜曲 - 周杰伦", "2. 夜曲 - 周杰伦"])
    assert len(songs) == 2


def test_split_tags_handles_mixed_delimiters():
    assert split_tags("国语，R&B 经典,,  治愈") == ("国语", "R&B", "经典", "治愈")
    assert split_tags("") == ()


def test_candidate_round_trips_through_dict():
    candidate = ImportCandidate(title="夜曲", artist="周杰伦", tags=("国语",), confidence=0.8, source_line="2. 夜曲 - 周杰伦")
    assert ImportCandidate.from_dict(candidate.to_dict()) == candidate
    assert ImportCandidate.from_dict({"title": " UP ", "tags": "a,b"}).tags == ("a", "b")


def test_clock_filter_only_matches_two_digit_hours():
    assert parse_line("02:20") is None
    assert parse_line("9:05").title == "9:05"
