#!/usr/bin/env python3
"""
Relay Scribe - SQLite Store
SQLiteによるトランスクリプトと翻訳キャッシュの永続化
"""

import sqlite3
from collections.abc import Iterable, Iterator
from contextlib import contextmanager
from datetime import datetime
from pathlib import Path

from relay_scribe.domain import (
    PersistenceError,
    TranscriptSegment,
    TranslationCacheEntry,
    TranslationStatus,
)

from .store import CacheStats, PersistenceStore, check_transition

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS transcript_segments (
        seq INTEGER PRIMARY KEY AUTOINCREMENT,
        id TEXT NOT NULL UNIQUE,
        session_id TEXT NOT NULL,
        text TEXT NOT NULL,
        corrected_text TEXT,
        source_language TEXT NOT NULL,
        created_at TEXT NOT NULL,
        translation_status TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_segments_session
        ON transcript_segments (session_id, seq)
    """,
    """
    CREATE TABLE IF NOT EXISTS translation_cache (
        source_text_normalized TEXT NOT NULL,
        target_language TEXT NOT NULL,
        translated_text TEXT NOT NULL,
        engine TEXT NOT NULL,
        quality REAL NOT NULL,
        created_at TEXT NOT NULL,
        expires_at TEXT,
        PRIMARY KEY (source_text_normalized, target_language)
    )
    """,
)

_SEGMENT_COLUMNS = "id, session_id, text, corrected_text, source_language, created_at"
_CACHE_COLUMNS = (
    "source_text_normalized, target_language, translated_text, engine, quality, "
    "created_at, expires_at"
)


class SqliteStore(PersistenceStore):
    """
    SQLiteの永続化ストア

    呼び出しごとに接続を開くため、スレッド間で共有できる。
    sqlite3.Error はすべて PersistenceError に変換する。
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        """接続を開き、成功時はコミット、失敗時はロールバックして閉じる"""
        try:
            conn = sqlite3.connect(self.path, timeout=10.0)
        except sqlite3.Error as exc:
            raise PersistenceError(f"Failed to open database {self.path}: {exc}") from exc
        try:
            with conn:
                yield conn
        except sqlite3.Error as exc:
            raise PersistenceError(f"Database operation failed: {exc}") from exc
        finally:
            conn.close()

    def initialize(self) -> None:
        with self._connect() as conn:
            for statement in _SCHEMA:
                conn.execute(statement)

    # ========== トランスクリプト ==========

    def save_segment(
        self,
        segment: TranscriptSegment,
        status: TranslationStatus = TranslationStatus.PENDING,
    ) -> None:
        with self._connect() as conn:
            conn.execute(
                f"""
                INSERT INTO transcript_segments ({_SEGMENT_COLUMNS}, translation_status)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    segment.id,
                    segment.session_id,
                    segment.text,
                    segment.corrected_text,
                    segment.source_language,
                    segment.created_at.isoformat(),
                    status.value,
                ),
            )

    def fetch_segments(self, session_id: str) -> list[TranscriptSegment]:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_SEGMENT_COLUMNS} FROM transcript_segments "
                "WHERE session_id = ? ORDER BY seq",
                (session_id,),
            ).fetchall()
        return [self._row_to_segment(row) for row in rows]

    def get_segment(self, segment_id: str) -> TranscriptSegment | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_SEGMENT_COLUMNS} FROM transcript_segments WHERE id = ?",
                (segment_id,),
            ).fetchone()
        return self._row_to_segment(row) if row else None

    def set_corrected_text(self, segment_id: str, corrected_text: str) -> None:
        with self._connect() as conn:
            cursor = conn.execute(
                "UPDATE transcript_segments SET corrected_text = ? WHERE id = ?",
                (corrected_text, segment_id),
            )
            if cursor.rowcount == 0:
                raise PersistenceError(f"Segment not found: {segment_id}")

    # ========== 翻訳状態 ==========

    def get_translation_status(self, segment_id: str) -> TranslationStatus | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT translation_status FROM transcript_segments WHERE id = ?",
                (segment_id,),
            ).fetchone()
        return TranslationStatus(row[0]) if row else None

    def update_translation_status(
        self, segment_id: str, status: TranslationStatus
    ) -> None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT translation_status FROM transcript_segments WHERE id = ?",
                (segment_id,),
            ).fetchone()
            if row is None:
                raise PersistenceError(f"Segment not found: {segment_id}")
            check_transition(segment_id, TranslationStatus(row[0]), status)
            conn.execute(
                "UPDATE transcript_segments SET translation_status = ? WHERE id = ?",
                (status.value, segment_id),
            )

    def fetch_segments_by_status(
        self, statuses: Iterable[TranslationStatus], limit: int | None = None
    ) -> list[TranscriptSegment]:
        values = [status.value for status in statuses]
        if not values:
            return []
        placeholders = ", ".join("?" for _ in values)
        query = (
            f"SELECT {_SEGMENT_COLUMNS} FROM transcript_segments "
            f"WHERE translation_status IN ({placeholders}) ORDER BY seq"
        )
        params: list[object] = list(values)
        if limit is not None:
            query += " LIMIT ?"
            params.append(limit)
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        return [self._row_to_segment(row) for row in rows]

    # ========== 翻訳キャッシュ ==========

    def get_translation(
        self, source_text_normalized: str, target_language: str
    ) -> TranslationCacheEntry | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT {_CACHE_COLUMNS} FROM translation_cache "
                "WHERE source_text_normalized = ? AND target_language = ?",
                (source_text_normalized, target_language),
            ).fetchone()
        return self._row_to_entry(row) if row else None

    def insert_translation(self, entry: TranslationCacheEntry) -> TranslationCacheEntry:
        now = datetime.now().isoformat()
        with self._connect() as conn:
            # 既存の有効なエントリは残し、期限切れのみ置き換える
            conn.execute(
                f"""
                INSERT INTO translation_cache ({_CACHE_COLUMNS})
                VALUES (?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT (source_text_normalized, target_language) DO UPDATE SET
                    translated_text = excluded.translated_text,
                    engine = excluded.engine,
                    quality = excluded.quality,
                    created_at = excluded.created_at,
                    expires_at = excluded.expires_at
                WHERE translation_cache.expires_at IS NOT NULL
                    AND translation_cache.expires_at <= ?
                """,
                (
                    entry.source_text_normalized,
                    entry.target_language,
                    entry.translated_text,
                    entry.engine,
                    entry.quality,
                    entry.created_at.isoformat(),
                    entry.expires_at.isoformat() if entry.expires_at else None,
                    now,
                ),
            )
            row = conn.execute(
                f"SELECT {_CACHE_COLUMNS} FROM translation_cache "
                "WHERE source_text_normalized = ? AND target_language = ?",
                (entry.source_text_normalized, entry.target_language),
            ).fetchone()
        return self._row_to_entry(row)

    def translation_stats(self) -> CacheStats:
        with self._connect() as conn:
            rows = conn.execute(
                f"SELECT {_CACHE_COLUMNS} FROM translation_cache"
            ).fetchall()
        return CacheStats.from_entries(self._row_to_entry(row) for row in rows)

    # ========== 変換 ==========

    @staticmethod
    def _row_to_segment(row: tuple) -> TranscriptSegment:
        return TranscriptSegment(
            id=row[0],
            session_id=row[1],
            text=row[2],
            corrected_text=row[3],
            source_language=row[4],
            created_at=datetime.fromisoformat(row[5]),
        )

    @staticmethod
    def _row_to_entry(row: tuple) -> TranslationCacheEntry:
        return TranslationCacheEntry(
            source_text_normalized=row[0],
            target_language=row[1],
            translated_text=row[2],
            engine=row[3],
            quality=row[4],
            created_at=datetime.fromisoformat(row[5]),
            expires_at=datetime.fromisoformat(row[6]) if row[6] else None,
        )
