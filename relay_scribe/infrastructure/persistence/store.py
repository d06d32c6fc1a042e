#!/usr/bin/env python3
"""
Relay Scribe - Persistence Store
トランスクリプトと翻訳キャッシュの永続化インターフェースとメモリ実装
"""

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime

from relay_scribe.domain import (
    PersistenceError,
    TranscriptSegment,
    TranslationCacheEntry,
    TranslationStatus,
)


@dataclass(frozen=True)
class CacheStats:
    """翻訳キャッシュの統計"""

    total: int = 0
    by_engine: dict[str, int] = field(default_factory=dict)
    by_language: dict[str, int] = field(default_factory=dict)
    average_quality: float = 0.0

    @classmethod
    def from_entries(cls, entries: Iterable[TranslationCacheEntry]) -> "CacheStats":
        by_engine: dict[str, int] = {}
        by_language: dict[str, int] = {}
        qualities: list[float] = []
        for entry in entries:
            by_engine[entry.engine] = by_engine.get(entry.engine, 0) + 1
            by_language[entry.target_language] = by_language.get(entry.target_language, 0) + 1
            qualities.append(entry.quality)
        return cls(
            total=len(qualities),
            by_engine=by_engine,
            by_language=by_language,
            average_quality=sum(qualities) / len(qualities) if qualities else 0.0,
        )


def check_transition(
    segment_id: str, current: TranslationStatus, target: TranslationStatus
) -> None:
    """
    翻訳状態の遷移を検証

    Raises:
        ValueError: 許可されていない遷移の場合
    """
    if not current.can_transition_to(target):
        raise ValueError(
            f"Invalid translation status transition for segment {segment_id}: "
            f"{current} -> {target}"
        )


class PersistenceStore(ABC):
    """
    永続化ストアの抽象基底クラス

    契約:
    - トランスクリプトセグメントと翻訳キャッシュは追記のみ
      （後付けの corrected_text と翻訳状態を除き更新しない）
    - 書き込んだ内容は直後の読み込みで必ず見える
    - 翻訳キャッシュは (正規化テキスト, 翻訳先言語) で一意
    """

    # ========== トランスクリプト ==========

    @abstractmethod
    def save_segment(
        self,
        segment: TranscriptSegment,
        status: TranslationStatus = TranslationStatus.PENDING,
    ) -> None:
        """
        セグメントを追加

        Raises:
            PersistenceError: 書き込みに失敗した場合
        """

    @abstractmethod
    def fetch_segments(self, session_id: str) -> list[TranscriptSegment]:
        """セッションのセグメントを追加順に取得"""

    @abstractmethod
    def get_segment(self, segment_id: str) -> TranscriptSegment | None:
        """セグメントを取得"""

    @abstractmethod
    def set_corrected_text(self, segment_id: str, corrected_text: str) -> None:
        """
        文法補正済みテキストを記録（認識テキストは変更しない）

        Raises:
            PersistenceError: セグメントが存在しない場合
        """

    # ========== 翻訳状態 ==========

    @abstractmethod
    def get_translation_status(self, segment_id: str) -> TranslationStatus | None:
        """セグメントの翻訳状態"""

    @abstractmethod
    def update_translation_status(
        self, segment_id: str, status: TranslationStatus
    ) -> None:
        """
        翻訳状態を遷移

        Raises:
            ValueError: 許可されていない遷移の場合
            PersistenceError: セグメントが存在しない場合
        """

    @abstractmethod
    def fetch_segments_by_status(
        self, statuses: Iterable[TranslationStatus], limit: int | None = None
    ) -> list[TranscriptSegment]:
        """指定した翻訳状態のセグメントを古い順に取得"""

    # ========== 翻訳キャッシュ ==========

    @abstractmethod
    def get_translation(
        self, source_text_normalized: str, target_language: str
    ) -> TranslationCacheEntry | None:
        """キャッシュエントリを取得（期限切れも含めて返す）"""

    @abstractmethod
    def insert_translation(self, entry: TranslationCacheEntry) -> TranslationCacheEntry:
        """
        キャッシュエントリを追加

        同じキーの有効なエントリが既にあればそれを残して返す（先勝ち）。
        期限切れのエントリは置き換える。

        Returns:
            TranslationCacheEntry: ストアに残ったエントリ
        """

    @abstractmethod
    def translation_stats(self) -> CacheStats:
        """キャッシュ統計"""

    def close(self) -> None:
        """リソースを解放"""


class InMemoryStore(PersistenceStore):
    """
    プロセス内メモリの永続化ストア（テスト・単体実行用）

    すべての操作を1つのロックで直列化する。
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._segments: dict[str, TranscriptSegment] = {}
        self._statuses: dict[str, TranslationStatus] = {}
        self._translations: dict[tuple[str, str], TranslationCacheEntry] = {}

    def save_segment(
        self,
        segment: TranscriptSegment,
        status: TranslationStatus = TranslationStatus.PENDING,
    ) -> None:
        with self._lock:
            if segment.id in self._segments:
                raise PersistenceError(f"Segment already exists: {segment.id}")
            self._segments[segment.id] = segment
            self._statuses[segment.id] = status

    def fetch_segments(self, session_id: str) -> list[TranscriptSegment]:
        with self._lock:
            return [s for s in self._segments.values() if s.session_id == session_id]

    def get_segment(self, segment_id: str) -> TranscriptSegment | None:
        with self._lock:
            return self._segments.get(segment_id)

    def set_corrected_text(self, segment_id: str, corrected_text: str) -> None:
        with self._lock:
            segment = self._require(segment_id)
            self._segments[segment_id] = replace(segment, corrected_text=corrected_text)

    def get_translation_status(self, segment_id: str) -> TranslationStatus | None:
        with self._lock:
            return self._statuses.get(segment_id)

    def update_translation_status(
        self, segment_id: str, status: TranslationStatus
    ) -> None:
        with self._lock:
            self._require(segment_id)
            check_transition(segment_id, self._statuses[segment_id], status)
            self._statuses[segment_id] = status

    def fetch_segments_by_status(
        self, statuses: Iterable[TranslationStatus], limit: int | None = None
    ) -> list[TranscriptSegment]:
        wanted = set(statuses)
        with self._lock:
            matched = [
                segment
                for segment_id, segment in self._segments.items()
                if self._statuses[segment_id] in wanted
            ]
        return matched if limit is None else matched[:limit]

    def get_translation(
        self, source_text_normalized: str, target_language: str
    ) -> TranslationCacheEntry | None:
        with self._lock:
            return self._translations.get((source_text_normalized, target_language))

    def insert_translation(self, entry: TranslationCacheEntry) -> TranslationCacheEntry:
        with self._lock:
            existing = self._translations.get(entry.key)
            if existing is not None and not existing.is_expired(datetime.now()):
                return existing
            self._translations[entry.key] = entry
            return entry

    def translation_stats(self) -> CacheStats:
        with self._lock:
            entries = list(self._translations.values())
        return CacheStats.from_entries(entries)

    def _require(self, segment_id: str) -> TranscriptSegment:
        segment = self._segments.get(segment_id)
        if segment is None:
            raise PersistenceError(f"Segment not found: {segment_id}")
        return segment
