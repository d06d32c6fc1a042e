#!/usr/bin/env python3
"""
Relay Scribe - Translation Cache
(正規化テキスト, 翻訳先言語) をキーとする翻訳キャッシュ（同一キーの生成を1本化）
"""

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime

from relay_scribe.domain import TranslationCacheEntry
from relay_scribe.domain.constants import DEFAULT_ENGINE_QUALITY, ENGINE_QUALITY
from relay_scribe.infrastructure.persistence import CacheStats, PersistenceStore


@dataclass(frozen=True)
class GeneratedTranslation:
    """
    生成関数の戻り値

    cacheable=False の結果（タイムアウト時の原文フォールバック等）は保存しない。
    """

    text: str
    engine: str
    cacheable: bool = True


@dataclass(frozen=True)
class CacheResult:
    """キャッシュ参照・生成の結果"""

    entry: TranslationCacheEntry
    from_cache: bool
    degraded: bool = False


@dataclass
class _Flight:
    """実行中の生成（同じキーの後続呼び出しはこれを待つ）"""

    done: threading.Event = field(default_factory=threading.Event)
    result: CacheResult | None = None
    error: BaseException | None = None


class TranslationCache:
    """
    翻訳キャッシュ

    責務:
    - 永続化ストア上のキャッシュエントリの参照（期限切れは未ヒット扱い）
    - キーごとに同時に1つだけ生成を実行（single-flight）
    - エンジン別の品質スコア・保持期間の付与

    Note:
    - ストアへの挿入は先勝ち。同時に生成された場合もストアに残った値に収束する
    """

    def __init__(
        self,
        store: PersistenceStore,
        ttl_days: dict[str, int] | None = None,
        clock: Callable[[], datetime] = datetime.now,
    ) -> None:
        """
        Args:
            store: 永続化ストア
            ttl_days: エンジン別の保持日数（未指定のエンジンは無期限）
            clock: 期限判定に使う時計関数
        """
        self.store = store
        self.ttl_days = dict(ttl_days or {})
        self._clock = clock
        self._lock = threading.Lock()
        self._in_flight: dict[tuple[str, str], _Flight] = {}

    def lookup(self, key: str, target_language: str) -> TranslationCacheEntry | None:
        """
        有効なエントリを取得

        Raises:
            PersistenceError: ストアの読み込みに失敗した場合
        """
        entry = self.store.get_translation(key, target_language)
        if entry is None or entry.is_expired(self._clock()):
            return None
        return entry

    def get_or_generate(
        self,
        key: str,
        target_language: str,
        generate: Callable[[], GeneratedTranslation],
    ) -> CacheResult:
        """
        キャッシュを参照し、なければ生成して保存

        同じキーの生成が実行中であれば、その完了を待って同じ結果を返す。

        Args:
            key: 正規化済みの原文
            target_language: 翻訳先の言語コード
            generate: 翻訳を生成する関数

        Returns:
            CacheResult: エントリとキャッシュヒットかどうか

        Raises:
            ProviderError: 生成に失敗した場合（待機していた呼び出しにも同じ例外）
            PersistenceError: ストアへのアクセスに失敗した場合
        """
        if entry := self.lookup(key, target_language):
            return CacheResult(entry=entry, from_cache=True)

        flight_key = (key, target_language)
        with self._lock:
            flight = self._in_flight.get(flight_key)
            is_owner = flight is None
            if flight is None:
                flight = _Flight()
                self._in_flight[flight_key] = flight

        if not is_owner:
            flight.done.wait()
            if flight.error is not None:
                raise flight.error
            assert flight.result is not None
            return flight.result

        try:
            flight.result = self._generate_and_store(key, target_language, generate)
            return flight.result
        except BaseException as exc:
            flight.error = exc
            raise
        finally:
            with self._lock:
                self._in_flight.pop(flight_key, None)
            flight.done.set()

    def stats(self) -> CacheStats:
        """キャッシュ統計（エンジン別・言語別件数、平均品質）"""
        return self.store.translation_stats()

    def _generate_and_store(
        self,
        key: str,
        target_language: str,
        generate: Callable[[], GeneratedTranslation],
    ) -> CacheResult:
        # 直前に別の呼び出しが保存を終えている場合
        if entry := self.lookup(key, target_language):
            return CacheResult(entry=entry, from_cache=True)

        generated = generate()
        entry = TranslationCacheEntry.create(
            source_text_normalized=key,
            target_language=target_language,
            translated_text=generated.text,
            engine=generated.engine,
            quality=ENGINE_QUALITY.get(generated.engine, DEFAULT_ENGINE_QUALITY),
            ttl_days=self.ttl_days.get(generated.engine),
        )
        if not generated.cacheable:
            return CacheResult(entry=entry, from_cache=False, degraded=True)

        stored = self.store.insert_translation(entry)
        return CacheResult(entry=stored, from_cache=False)
