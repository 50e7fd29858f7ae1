"""
Presentation storage.

Provides thread-safe presentation storage with SQLite metadata and file
system storage for presentation content (.deck JSON or .md text).
"""

import asyncio
import json
import re
import sqlite3
import threading
import uuid
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Optional, Union

import config
from errors import MalformedDocument, NotFound
from models import Deck, PresentationRecord, PresentationType

logger = logging.getLogger(__name__)

EXTENSIONS = {
    PresentationType.DECK: ".deck",
    PresentationType.MARKDOWN: ".md",
}
FILENAME_RE = re.compile(r"^[A-Za-z0-9_-]+\.(deck|md)$")


def presentation_type_for(filename: str) -> PresentationType:
    """Presentation type implied by a filename's extension."""
    return PresentationType.MARKDOWN if filename.endswith(".md") else PresentationType.DECK


def safe_filename(filename: str, presentation_type: PresentationType) -> str:
    """Strip anything but [A-Za-z0-9_-] from the stem and add the type's extension."""
    stem = filename or ""
    for extension in EXTENSIONS.values():
        if stem.endswith(extension):
            stem = stem[: -len(extension)]
            break
    stem = re.sub(r"[^a-zA-Z0-9_-]", "", stem)
    if not stem:
        raise ValueError("Missing filename")
    return stem + EXTENSIONS[presentation_type]


class PresentationStore:
    """File-backed presentation store with last-write-wins saves."""

    def __init__(
        self,
        presentations_dir: Optional[Path] = None,
        db_path: Optional[Path] = None,
    ):
        self._lock = threading.Lock()
        self.presentations_dir = Path(presentations_dir or config.PRESENTATIONS_DIR)
        self.presentations_dir.mkdir(parents=True, exist_ok=True)
        self.db_path = Path(db_path or config.DB_PATH)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _init_db(self):
        """Initialize SQLite database."""
        with sqlite3.connect(self.db_path) as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS presentations (
                    id TEXT PRIMARY KEY,
                    name TEXT,
                    filename TEXT UNIQUE,
                    type TEXT,
                    created_at TIMESTAMP,
                    updated_at TIMESTAMP
                )
            """)
            conn.commit()

    def list(self) -> list[PresentationRecord]:
        """All presentations, newest first, without content."""
        with self._lock:
            with sqlite3.connect(self.db_path) as conn:
                rows = conn.execute("""
                    SELECT id, name, filename, type, created_at, updated_at
                    FROM presentations
                    ORDER BY created_at DESC, rowid DESC
                """).fetchall()
        return [self._record(row) for row in rows]

    def get(self, filename: str) -> PresentationRecord:
        """Full record including parsed content."""
        if not FILENAME_RE.match(filename or ""):
            raise NotFound(filename)

        with self._lock:
            row = self._find_row(filename)
            path = self.presentations_dir / filename
            if row is None or not path.exists():
                raise NotFound(filename)
            with open(path, "r", encoding="utf-8") as f:
                text = f.read()

        record = self._record(row)
        if record.type == PresentationType.DECK:
            try:
                record.content = json.loads(text)
            except json.JSONDecodeError as e:
                logger.error(f"Invalid .deck JSON in {filename}: {e}")
                raise MalformedDocument(f"Invalid .deck JSON in {filename}") from e
        else:
            record.content = text
        return record

    def save(
        self,
        name: str,
        filename: str,
        presentation_type: Union[str, PresentationType],
        content: Any,
    ) -> PresentationRecord:
        """Insert or overwrite a presentation by filename."""
        presentation_type = PresentationType(presentation_type)
        filename = safe_filename(filename, presentation_type)

        if presentation_type == PresentationType.DECK:
            Deck.from_dict(content)
            text = json.dumps(content, indent=2, ensure_ascii=False)
        else:
            if not isinstance(content, str):
                raise MalformedDocument("Markdown content must be text")
            text = content

        now = datetime.now().isoformat()
        with self._lock:
            with open(self.presentations_dir / filename, "w", encoding="utf-8") as f:
                f.write(text)

            row = self._find_row(filename)
            with sqlite3.connect(self.db_path) as conn:
                if row:
                    conn.execute("""
                        UPDATE presentations SET name = ?, type = ?, updated_at = ?
                        WHERE filename = ?
                    """, (name, presentation_type.value, now, filename))
                    record_id, created_at = row[0], row[4]
                else:
                    record_id, created_at = str(uuid.uuid4()), now
                    conn.execute("""
                        INSERT INTO presentations
                        (id, name, filename, type, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """, (record_id, name, filename, presentation_type.value, created_at, now))
                conn.commit()

        logger.info(f"Saved presentation {filename}")
        return PresentationRecord(
            id=record_id,
            name=name,
            filename=filename,
            type=presentation_type,
            created_at=created_at,
            updated_at=now,
            content=content,
        )

    def delete(self, filename: str):
        """Remove a presentation. Raises NotFound if it does not exist."""
        if not FILENAME_RE.match(filename or ""):
            raise NotFound(filename)

        with self._lock:
            path = self.presentations_dir / filename
            row = self._find_row(filename)
            if row is None and not path.exists():
                raise NotFound(filename)

            if path.exists():
                path.unlink()
            with sqlite3.connect(self.db_path) as conn:
                conn.execute("DELETE FROM presentations WHERE filename = ?", (filename,))
                conn.commit()

        logger.info(f"Deleted presentation {filename}")

    def sync_from_disk(self) -> int:
        """Register presentation files that were copied into the directory by hand."""
        added = 0
        with self._lock:
            for path in sorted(self.presentations_dir.iterdir()):
                if not FILENAME_RE.match(path.name) or self._find_row(path.name):
                    continue
                created_at = datetime.fromtimestamp(path.stat().st_mtime).isoformat()
                with sqlite3.connect(self.db_path) as conn:
                    conn.execute("""
                        INSERT INTO presentations
                        (id, name, filename, type, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?)
                    """, (
                        str(uuid.uuid4()),
                        path.stem,
                        path.name,
                        presentation_type_for(path.name).value,
                        created_at,
                        created_at,
                    ))
                    conn.commit()
                added += 1

        if added:
            logger.info(f"Registered {added} presentations found on disk")
        return added

    # Async wrappers keep file I/O off the event loop

    async def alist(self) -> "list[PresentationRecord]":
        return await asyncio.to_thread(self.list)

    async def aget(self, filename: str) -> PresentationRecord:
        return await asyncio.to_thread(self.get, filename)

    async def asave(self, name, filename, presentation_type, content) -> PresentationRecord:
        return await asyncio.to_thread(self.save, name, filename, presentation_type, content)

    async def adelete(self, filename: str):
        await asyncio.to_thread(self.delete, filename)

    def _find_row(self, filename: str) -> Optional[tuple]:
        with sqlite3.connect(self.db_path) as conn:
            return conn.execute("""
                SELECT id, name, filename, type, created_at, updated_at
                FROM presentations WHERE filename = ?
            """, (filename,)).fetchone()

    @staticmethod
    def _record(row: tuple) -> PresentationRecord:
        return PresentationRecord(
            id=row[0],
            name=row[1],
            filename=row[2],
            type=PresentationType(row[3]),
            created_at=row[4],
            updated_at=row[5],
        )
