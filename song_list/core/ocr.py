"""
Boundary to the text-recognition service.

Recognizers return raw text lines; turning those lines into songs is the
parser's job. The recognizer is chosen once, by `get_recognizer`, and passed
in by the caller.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
import json
import logging
from pathlib import Path
from typing import Any

from PIL import Image, UnidentifiedImageError

from .config import Settings
from .errors import InvalidImageError
from .parser import ImportCandidate, extract_songs


logger = logging.getLogger(__name__)

SAMPLE_LINES = [
    "1. 起风了 - 买辣椒也用券",
    "2. 夜曲 - 周杰伦",
    "3. 告白气球 - 周杰伦",
    "4. 稻香 - 周杰伦",
    "5. 七里香 - 周杰伦",
    "6. 青花瓷 - 周杰伦",
    "7. 演员 - 薛之谦",
    "8. 体面 - 于文文",
    "9. 成都 - 赵雷",
    "10. 理想 - 赵雷",
]


@dataclass(frozen=True)
class OcrLine:
    text: str
    confidence: float | None = None
    position: Any = None
    angle: Any = None


@dataclass(frozen=True)
class OcrResult:
    lines: list[OcrLine]
    confidence: float
    mode: str


@dataclass(frozen=True)
class OcrPreview:
    candidates: list[ImportCandidate]
    confidence: float
    total_text_lines: int
    mode: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "extracted_songs": [c.to_dict() for c in self.candidates],
            "song_count": len(self.candidates),
            "confidence": self.confidence,
            "total_text_lines": self.total_text_lines,
            "mode": self.mode,
        }


class TextRecognizer(ABC):
    mode = "real"

    @abstractmethod
    def recognize(self, image_path: Path) -> OcrResult:
        """Return the text lines found in the image."""


class SimulatedRecognizer(TextRecognizer):
    """Returns a fixed song list whatever the image; used when no OCR credentials are configured."""

    mode = "simulation"

    def __init__(self, lines: list[str] | None = None, confidence: float = 0.9):
        self.lines = list(SAMPLE_LINES if lines is None else lines)
        self.confidence = confidence

    def recognize(self, image_path: Path) -> OcrResult:
        logger.info("recognizing %s (simulation mode)", image_path)
        return OcrResult(
            lines=[OcrLine(text=line) for line in self.lines],
            confidence=self.confidence,
            mode=self.mode,
        )


def _import_aliyun_sdk():
    try:
        from alibabacloud_ocr_api20210707 import models as ocr_models
        from alibabacloud_ocr_api20210707.client import Client
        from alibabacloud_tea_openapi import models as open_api_models
        from alibabacloud_tea_util import models as util_models
    except ModuleNotFoundError as exc:  # pragma: no cover - depends on local env
        raise RuntimeError(
            "Missing dependency: Alibaba Cloud OCR SDK.\n"
            "Install it with:\n"
            '  python3 -m pip install -e ".[ocr]"'
        ) from exc
    return Client, ocr_models, open_api_models, util_models


def lines_from_prism_data(data: str | dict[str, Any] | None) -> list[OcrLine]:
    """Convert the `Data` payload of a RecognizeGeneral response into lines."""
    if not data:
        return []
    payload = json.loads(data) if isinstance(data, str) else data
    words = payload.get("prism_wordsInfo")
    if not isinstance(words, list):
        return []
    lines: list[OcrLine] = []
    for item in words:
        text = item.get("word")
        if not isinstance(text, str):
            continue
        lines.append(
            OcrLine(
                text=text,
                confidence=item.get("prob", 99),
                position=item.get("pos"),
                angle=item.get("angle"),
            )
        )
    return lines


class AliyunRecognizer(TextRecognizer):
    mode = "real"

    def __init__(self, access_key_id: str, access_key_secret: str, endpoint: str):
        Client, ocr_models, open_api_models, util_models = _import_aliyun_sdk()
        self._ocr_models = ocr_models
        self._util_models = util_models
        self._client = Client(
            open_api_models.Config(
                access_key_id=access_key_id,
                access_key_secret=access_key_secret,
                endpoint=endpoint,
            )
        )

    def recognize(self, image_path: Path) -> OcrResult:
        logger.info("recognizing %s with Aliyun OCR", image_path)
        with open(image_path, "rb") as stream:
            request = self._ocr_models.RecognizeGeneralRequest(body=stream)
            response = self._client.recognize_general_with_options(request, self._util_models.RuntimeOptions())
        data = getattr(getattr(response, "body", None), "data", None)
        lines = lines_from_prism_data(data)
        logger.info("Aliyun OCR returned %d text blocks", len(lines))
        return OcrResult(lines=lines, confidence=0.9, mode=self.mode)


def get_recognizer(settings: Settings) -> TextRecognizer:
    if not settings.ocr_configured:
        logger.warning("OCR credentials are not configured; using the simulated recognizer")
        return SimulatedRecognizer()
    return AliyunRecognizer(
        settings.ocr_access_key_id,
        settings.ocr_access_key_secret,
        settings.ocr_endpoint,
    )


def verify_image(image_path: Path) -> None:
    if not Path(image_path).is_file():
        raise InvalidImageError(f"image file not found: {image_path}")
    try:
        with Image.open(image_path) as img:
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as exc:
        raise InvalidImageError("file is not a readable image") from exc


def preview_image(image_path: Path, recognizer: TextRecognizer) -> OcrPreview:
    """Recognize an image and extract candidate songs without writing anything."""
    verify_image(image_path)
    result = recognizer.recognize(Path(image_path))
    candidates = extract_songs(result.lines)
    return OcrPreview(
        candidates=candidates,
        confidence=result.confidence,
        total_text_lines=len(result.lines),
        mode=result.mode,
    )
