"""
Core modules (line parser, import engine, report builder, SQLite store, OCR boundary).

Import submodules directly:
- `song_list.core.parser`
- `song_list.core.importer`
- `song_list.core.sources`
- `song_list.core.store`
- `song_list.core.ocr`
"""

__all__ = []
