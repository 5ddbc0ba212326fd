from __future__ import annotations

from dataclasses import dataclass
import logging
import re
from typing import Any, Iterable, Iterator


logger = logging.getLogger(__name__)

# Legitimate short titles that the noise filters below would otherwise drop.
SHORT_TITLES = frozenset({"UP", "GO", "ON", "NO", "HI", "WE", "MY", "SO"})

_NOISE_PATTERNS = [
    re.compile(r"^\d+$"),
    re.compile(r"^.$", re.DOTALL),
    re.compile(r"^[\W_]+$"),
    re.compile(r"^(第|页|共|总|合计|小计|歌单|播放列表)"),
    re.compile(r"^(page|total|playlist)\s*[:：\d]", re.IGNORECASE),
    re.compile(r"^(时间|日期|年|月|日|点|分|秒)"),
    re.compile(r"^(扫码|关注|订阅|点赞|收藏)"),
    re.compile(r"^(欧美|中文|英文|韩文|日文|粤语|说唱|流行|摇滚|民谣|电子|古典)[:：]"),
    re.compile(r"^(genre|category|type|pop|rock|folk|rap|jazz|electronic|classical)\s*[:：]", re.IGNORECASE),
    re.compile(r"^\d{2}[:：]\d{2}$"),
]

_SEPARATORS = (" - ", "－", "—", " — ", " / ", "/", "  ", "\t")
_ORDINAL_PREFIX_RE = re.compile(r"^\d+[.)、]\s*")
_ORDINAL_LINE_RE = re.compile(r"^\d+[.)、]\s*(.+)$")

_TEXT_KEYS = ("text", "Text", "content")

MAX_TITLE_LENGTH = 50
MAX_FALLBACK_LINE_LENGTH = 30


@dataclass(frozen=True)
class ImportCandidate:
    title: str
    artist: str = ""
    tags: tuple[str, ...] = ()
    confidence: float = 1.0
    source_line: str = ""

    @property
    def display(self) -> str:
        return f"{self.title} - {self.artist}" if self.artist else self.title

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "artist": self.artist,
            "tags": list(self.tags),
            "confidence": self.confidence,
            "source_line": self.source_line,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ImportCandidate":
        tags = data.get("tags") or ()
        if isinstance(tags, str):
            tags = split_tags(tags)
        return cls(
            title=str(data.get("title") or "").strip(),
            artist=str(data.get("artist") or "").strip(),
            tags=tuple(str(t).strip() for t in tags if str(t).strip()),
            confidence=float(data.get("confidence", 1.0)),
            source_line=str(data.get("source_line") or ""),
        )


_TAG_SPLIT_RE = re.compile(r"[,，\s]+")


def split_tags(value: str) -> tuple[str, ...]:
    return tuple(tag for tag in _TAG_SPLIT_RE.split(value or "") if tag)


def is_noise(text: str) -> bool:
    return any(pattern.search(text) for pattern in _NOISE_PATTERNS)


def _strip_ordinal(text: str) -> str:
    return _ORDINAL_PREFIX_RE.sub("", text, count=1).strip()


def _split_on_separator(text: str) -> ImportCandidate | None:
    for separator in _SEPARATORS:
        if separator not in text:
            continue
        parts = [part.strip() for part in text.split(separator) if part.strip()]
        if len(parts) < 2:
            continue
        title = _strip_ordinal(parts[0])
        if 1 <= len(title) <= MAX_TITLE_LENGTH:
            return ImportCandidate(title=title, artist=parts[1], confidence=0.8, source_line=text)
    return None


def parse_line(text: str) -> ImportCandidate | None:
    """Turn one line of recognized text into a candidate, or None for noise.

    Checks run in a fixed order: the short-title allow-list, then the noise
    patterns, then separator splitting, then the bare-title fallback.
    """
    if not text:
        return None

    if text.upper() in SHORT_TITLES:
        return ImportCandidate(title=text, artist="", confidence=0.8, source_line=text)

    if is_noise(text):
        return None

    candidate = _split_on_separator(text)
    if candidate is not None:
        return candidate

    if len(text) > MAX_FALLBACK_LINE_LENGTH:
        return None

    match = _ORDINAL_LINE_RE.match(text)
    if match:
        title = match.group(1).strip()
        if 1 <= len(title) <= MAX_TITLE_LENGTH:
            return ImportCandidate(title=title, artist="", confidence=0.6, source_line=text)
        return None

    confidence = 0.7 if len(text) <= 3 else 0.5
    return ImportCandidate(title=text, artist="", confidence=confidence, source_line=text)


def line_text(item: Any) -> str:
    if isinstance(item, str):
        return item.strip()
    if isinstance(item, dict):
        for key in _TEXT_KEYS:
            value = item.get(key)
            if isinstance(value, str) and value.strip():
                return value.strip()
        return ""
    value = getattr(item, "text", None)
    return value.strip() if isinstance(value, str) else ""


def _iter_unique_texts(lines: Iterable[Any]) -> Iterator[str]:
    seen: set[str] = set()
    for item in lines:
        text = line_text(item)
        if not text or text in seen:
            continue
        seen.add(text)
        yield text


def extract_songs(lines: Iterable[Any]) -> list[ImportCandidate]:
    songs: list[ImportCandidate] = []
    for text in _iter_unique_texts(lines):
        candidate = parse_line(text)
        if candidate is None:
            continue
        logger.debug("extracted %r - %r (confidence %.1f)", candidate.title, candidate.artist, candidate.confidence)
        songs.append(candidate)

    logger.info("extracted %d songs from recognized text", len(songs))
    return songs
