from __future__ import annotations

import logging
import os
from pathlib import Path
import tempfile
from typing import Any

from flask import Flask, Response, current_app, g, jsonify, render_template_string, request

from song_list.core.config import load_settings
from song_list.core.errors import ImportFailedError, ImportPreconditionError
from song_list.core.importer import import_candidates, import_rows, import_selected
from song_list.core.ocr import TextRecognizer, get_recognizer, preview_image
from song_list.core.parser import ImportCandidate, extract_songs
from song_list.core.sources import build_template_workbook, read_table_rows
from song_list.core.store import SongStore


XLSX_MIMETYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
TEMPLATE_FILENAME = "songlist-template.xlsx"


HTML = """
<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>Song List Import</title>
    <style>
      body { font-family: system-ui, -apple-system, Segoe UI, Roboto, sans-serif; margin: 24px; max-width: 920px; }
      h1 { margin: 0 0 8px; }
      .hint { color: #333; margin: 0 0 16px; }
      label { display: block; font-weight: 600; margin: 12px 0 6px; }
      textarea { width: 100%; padding: 10px; border: 1px solid #111; border-radius: 6px; min-height: 220px; font-family: ui-monospace, SFMono-Regular, Menlo, Monaco, Consolas, monospace; }
      .btn { margin-top: 14px; padding: 10px 14px; border: 2px solid #111; border-radius: 10px; background: #fff; font-weight: 700; cursor: pointer; }
      .box { border: 2px solid #111; border-radius: 12px; padding: 14px; margin-bottom: 16px; }
      .small { font-size: 12px; color: #333; }
    </style>
  </head>
  <body>
    <h1>Song List Import</h1>
    <p class="hint">Import songs from a spreadsheet, a pasted list, or a screenshot of a song list. Existing songs are skipped.</p>

    <form class="box" method="post" action="/import/excel" enctype="multipart/form-data">
      <label>Spreadsheet (.xlsx or .csv)</label>
      <input type="file" name="excel" accept=".xlsx,.csv" required>
      <div class="small">Columns: 歌曲名称 (or title), 歌手 (or artist), 标签 (or tags). <a href="/import/template">Download the template</a>.</div>
      <button class="btn" type="submit">Import spreadsheet</button>
    </form>

    <form class="box" method="post" action="/import/text">
      <label>Song list (one song per line)</label>
      <textarea name="songs" placeholder="1. 起风了 - 买辣椒也用券"></textarea>
      <button class="btn" type="submit">Import list</button>
    </form>

    <form class="box" method="post" action="/import/image" enctype="multipart/form-data">
      <label>Song list image</label>
      <input type="file" name="image" accept="image/*" required>
      <div class="small">Recognized songs are previewed first; nothing is saved until you confirm.</div>
      <button class="btn" type="submit">Recognize</button>
    </form>
  </body>
</html>
"""


settings = load_settings()

app = Flask(__name__)
app.secret_key = settings.secret_key
app.config["MAX_CONTENT_LENGTH"] = settings.max_file_size
app.config["SONGLIST_DB_PATH"] = str(settings.db_path)
app.config["SONGLIST_RECOGNIZER"] = None


def get_store() -> SongStore:
    if "store" not in g:
        g.store = SongStore.open(current_app.config["SONGLIST_DB_PATH"])
    return g.store


@app.teardown_appcontext
def close_store(exc: BaseException | None) -> None:
    store = g.pop("store", None)
    if store is not None:
        store.close()


def get_app_recognizer() -> TextRecognizer:
    recognizer = current_app.config.get("SONGLIST_RECOGNIZER")
    if recognizer is None:
        recognizer = get_recognizer(settings)
        current_app.config["SONGLIST_RECOGNIZER"] = recognizer
    return recognizer


def _ok(message: str, data: Any) -> Response:
    return jsonify({"success": True, "message": message, "data": data})


def _error(message: str, status: int) -> tuple[Response, int]:
    return jsonify({"success": False, "error": message}), status


@app.errorhandler(ImportPreconditionError)
def handle_precondition(exc: ImportPreconditionError):
    return _error(str(exc), 400)


@app.errorhandler(ImportFailedError)
def handle_import_failed(exc: ImportFailedError):
    return _error(str(exc), 500)


@app.errorhandler(413)
def handle_too_large(exc):
    return _error(f"File is larger than the {current_app.config['MAX_CONTENT_LENGTH']} byte limit.", 413)


def _bool_field(value: Any, default: bool = True) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() not in {"0", "false", "no", "off", ""}


@app.get("/")
def index() -> str:
    return render_template_string(HTML)


@app.post("/import/excel")
def import_excel():
    uploaded = request.files.get("excel")
    if not uploaded or not uploaded.filename:
        return _error("Choose a spreadsheet file to import.", 400)

    rows = read_table_rows(uploaded.filename, uploaded.stream)
    report = import_rows(
        get_store(),
        rows,
        auto_create_tags=_bool_field(request.form.get("auto_create_tags")),
    )
    return _ok(report.message, report.to_dict())


@app.post("/import/text")
def import_text():
    text = (request.form.get("songs") or "").strip()
    if not text:
        return _error("Provide a song list (one song per line).", 400)

    candidates = extract_songs(text.splitlines())
    if not candidates:
        return _error("No songs found in the pasted text.", 400)
    report = import_candidates(
        get_store(),
        candidates,
        auto_create_tags=_bool_field(request.form.get("auto_create_tags")),
    )
    return _ok(report.message, report.to_dict())


@app.post("/import/image")
def import_image():
    uploaded = request.files.get("image")
    if not uploaded or not uploaded.filename:
        return _error("Choose an image file.", 400)
    if uploaded.mimetype and not uploaded.mimetype.startswith("image/"):
        return _error("Only image files can be recognized.", 400)

    suffix = Path(uploaded.filename).suffix or ".img"
    fd, tmp_name = tempfile.mkstemp(prefix="songlist-", suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as tmp:
            uploaded.save(tmp)
        preview = preview_image(Path(tmp_name), get_app_recognizer())
    finally:
        os.unlink(tmp_name)

    return _ok(f"Recognized {len(preview.candidates)} songs ({preview.mode} mode)", preview.to_dict())


@app.post("/import/image/confirm")
def confirm_image_import():
    payload = request.get_json(silent=True) or {}
    songs = payload.get("songs")
    selected = payload.get("selected")
    if not isinstance(songs, list) or not isinstance(selected, list):
        return _error("Send the previewed songs and the selected indexes.", 400)

    try:
        candidates = [ImportCandidate.from_dict(song) for song in songs]
    except (AttributeError, TypeError, ValueError):
        return _error("Previewed songs are malformed.", 400)

    report = import_selected(
        get_store(),
        candidates,
        selected,
        auto_create_tags=_bool_field(payload.get("auto_create_tags")),
    )
    return _ok(report.message, report.to_dict())


@app.get("/import/template")
def download_template() -> Response:
    return Response(
        build_template_workbook(),
        mimetype=XLSX_MIMETYPE,
        headers={"Content-Disposition": f'attachment; filename="{TEMPLATE_FILENAME}"'},
    )


@app.delete("/import/batch")
def batch_delete():
    payload = request.get_json(silent=True) or {}
    song_ids = payload.get("songIds")
    if not isinstance(song_ids, list) or not song_ids:
        return _error("Provide a list of song ids to delete.", 400)
    if not all(isinstance(i, int) and not isinstance(i, bool) for i in song_ids):
        return _error("Song ids must be integers.", 400)

    deleted = get_store().delete_songs(song_ids)
    return _ok(f"Deleted {deleted} songs", {"deleted": deleted, "total": len(song_ids)})


if __name__ == "__main__":
    logging.basicConfig(
        level=settings.log_level,
        format="[%(levelname)s] %(asctime)s %(name)s %(message)s",
    )
    app.run(host="127.0.0.1", port=5000, debug=True)
