from __future__ import annotations

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv


APP_DIR = Path(__file__).resolve().parent.parent.parent
DEFAULT_DB_PATH = APP_DIR / "data" / "songlist.sqlite3"
DEFAULT_MAX_FILE_SIZE = 10 * 1024 * 1024
DEFAULT_OCR_ENDPOINT = "ocr-api.cn-hangzhou.aliyuncs.com"

_PLACEHOLDERS = {"your_access_key_id", "your_access_key_secret", "changeme"}


@dataclass(frozen=True)
class Settings:
    db_path: Path = DEFAULT_DB_PATH
    max_file_size: int = DEFAULT_MAX_FILE_SIZE
    ocr_access_key_id: str = ""
    ocr_access_key_secret: str = ""
    ocr_endpoint: str = DEFAULT_OCR_ENDPOINT
    secret_key: str = "dev-secret-key"
    log_level: str = "INFO"

    @property
    def ocr_configured(self) -> bool:
        return bool(self.ocr_access_key_id and self.ocr_access_key_secret)


def _normalize_env_value(value: str) -> str:
    v = (value or "").strip()
    if len(v) >= 2 and ((v[0] == v[-1] == '"') or (v[0] == v[-1] == "'")):
        v = v[1:-1].strip()
    return v


def _env(name: str, default: str = "") -> str:
    value = _normalize_env_value(os.getenv(name, default))
    return "" if value in _PLACEHOLDERS else value


def load_settings(env_path: Path | None = None) -> Settings:
    load_dotenv(dotenv_path=env_path or APP_DIR / ".env")

    max_file_size_raw = _env("MAX_FILE_SIZE", str(DEFAULT_MAX_FILE_SIZE))
    try:
        max_file_size = int(max_file_size_raw)
    except ValueError as exc:
        raise RuntimeError(f"MAX_FILE_SIZE must be a whole number of bytes, got {max_file_size_raw!r}") from exc

    db_path = _env("SONGLIST_DB_PATH")
    return Settings(
        db_path=Path(db_path).expanduser() if db_path else DEFAULT_DB_PATH,
        max_file_size=max_file_size,
        ocr_access_key_id=_env("ALIYUN_ACCESS_KEY_ID"),
        ocr_access_key_secret=_env("ALIYUN_ACCESS_KEY_SECRET"),
        ocr_endpoint=_env("ALIYUN_OCR_ENDPOINT") or DEFAULT_OCR_ENDPOINT,
        secret_key=_env("FLASK_SECRET_KEY") or "dev-secret-key",
        log_level=(_env("LOG_LEVEL") or "INFO").upper(),
    )
