#!/usr/bin/env python3
"""
Relay Scribe - Translation Fan-out
受理セグメントを複数言語へ並列に翻訳するモジュール
"""

import time
from collections.abc import Callable, Iterable
from concurrent.futures import Future, ThreadPoolExecutor

from relay_scribe.domain import (
    FanoutResult,
    MessageLevel,
    ProviderError,
    RelayScribeError,
    TranslationLookup,
    TranslationSettings,
    post_message,
)
from relay_scribe.domain.constants import (
    SUPPORTED_LANGUAGES,
    TRANSLATION_PLACEHOLDER_PATTERN,
)
from relay_scribe.infrastructure.providers import RetryPolicy, Translator, retry_with_backoff
from relay_scribe.infrastructure.text import normalize_cache_key

from .cache import CacheResult, GeneratedTranslation, TranslationCache

# 失敗理由
REASON_UNSUPPORTED = "unsupported language"
REASON_NO_PROVIDER = "translation provider not configured"


def is_placeholder(text: str) -> bool:
    """プロバイダが返した「処理中」の仮テキストかどうか"""
    return not text.strip() or TRANSLATION_PLACEHOLDER_PATTERN.match(text) is not None


class TranslationFanoutCache:
    """
    翻訳ファンアウト

    処理の流れ:
    1. 原文をキャッシュキーに正規化（前後の空白のみ除去）
    2. 言語ごとにキャッシュを参照（ヒットはプロバイダを呼ばない）
    3. 未ヒットの言語を max_parallel 件ずつ並列に生成
    4. 一部の言語の失敗は他の言語に影響しない（失敗はメタデータとして報告）

    処理中プレースホルダが続く場合は再試行し、総時間予算を超えたら原文を返す
    （この結果はキャッシュしない）。
    """

    def __init__(
        self,
        translator: Translator | None,
        cache: TranslationCache,
        settings: TranslationSettings,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        Args:
            translator: 翻訳プロバイダ（Noneの場合はキャッシュ参照のみ）
            cache: 翻訳キャッシュ
            settings: 翻訳設定（並列数・再試行）
            sleep: 再試行の待機関数
        """
        self.translator = translator
        self.cache = cache
        self.settings = settings
        self.retry_policy = RetryPolicy(
            max_attempts=settings.max_attempts,
            base_delay_sec=settings.base_delay_sec,
            max_delay_sec=settings.max_delay_sec,
            jitter_sec=settings.jitter_sec,
            total_budget_sec=settings.total_budget_sec,
        )
        self._sleep = sleep

    def translate(
        self,
        text: str,
        source_language: str | None,
        target_languages: Iterable[str],
    ) -> FanoutResult:
        """
        全翻訳先言語への翻訳

        Args:
            text: 受理済みテキスト
            source_language: 原文の言語コード（翻訳先から除外される）
            target_languages: 翻訳先の言語コード

        Returns:
            FanoutResult: 成功した翻訳と言語ごとの成否（例外は送出しない）
        """
        result = FanoutResult()
        key = normalize_cache_key(text)
        if not key:
            return result

        pending: list[str] = []
        for language in dict.fromkeys(target_languages):
            if language == source_language:
                continue
            if language not in SUPPORTED_LANGUAGES:
                result.failed[language] = REASON_UNSUPPORTED
                continue
            try:
                entry = self.cache.lookup(key, language)
            except RelayScribeError as exc:
                # 参照失敗は未ヒットとして生成に回す
                post_message(self, f"Cache lookup failed ({language}): {exc}", MessageLevel.WARNING)
                entry = None
            if entry is not None:
                result.translations[language] = entry.translated_text
                result.cached.append(language)
            else:
                pending.append(language)

        if not pending:
            return result

        if self.translator is None:
            for language in pending:
                result.failed[language] = REASON_NO_PROVIDER
            return result

        max_workers = max(1, min(self.settings.max_parallel, len(pending)))
        with ThreadPoolExecutor(
            max_workers=max_workers, thread_name_prefix="TranslationFanout"
        ) as executor:
            futures: dict[str, Future[CacheResult]] = {
                language: executor.submit(self._translate_one, key, source_language, language)
                for language in pending
            }

        for language, future in futures.items():
            try:
                outcome = future.result()
            except RelayScribeError as exc:
                result.failed[language] = str(exc)
                post_message(
                    self, f"Translation failed ({language}): {exc}", MessageLevel.WARNING
                )
                continue
            except Exception as exc:
                # 想定外の例外も1言語の失敗として扱う
                result.failed[language] = f"{type(exc).__name__}: {exc}"
                post_message(
                    self,
                    f"Unexpected translation error ({language}): {type(exc).__name__}: {exc}",
                    MessageLevel.ERROR,
                )
                continue

            result.translations[language] = outcome.entry.translated_text
            if outcome.degraded:
                result.degraded.append(language)
            elif outcome.from_cache:
                result.cached.append(language)
            else:
                result.generated.append(language)

        return result

    def get_translation(
        self, text: str, target_language: str, source_language: str | None = None
    ) -> TranslationLookup:
        """
        単発の翻訳（キャッシュ優先、未ヒットは生成）

        Returns:
            TranslationLookup: 翻訳文またはエラー（例外は送出しない）
        """
        key = normalize_cache_key(text)
        if not key:
            return TranslationLookup(
                text=text,
                target_language=target_language,
                translated_text=None,
                from_cache=False,
                error="empty text",
            )
        if target_language not in SUPPORTED_LANGUAGES:
            return TranslationLookup(
                text=text,
                target_language=target_language,
                translated_text=None,
                from_cache=False,
                error=REASON_UNSUPPORTED,
            )

        try:
            if self.translator is None:
                entry = self.cache.lookup(key, target_language)
                if entry is None:
                    raise ProviderError("translation", REASON_NO_PROVIDER)
                outcome = CacheResult(entry=entry, from_cache=True)
            else:
                outcome = self._translate_one(key, source_language, target_language)
        except RelayScribeError as exc:
            post_message(
                self, f"Translation failed ({target_language}): {exc}", MessageLevel.WARNING
            )
            return TranslationLookup(
                text=text,
                target_language=target_language,
                translated_text=None,
                from_cache=False,
                error=str(exc),
            )

        return TranslationLookup(
            text=text,
            target_language=target_language,
            translated_text=outcome.entry.translated_text,
            from_cache=outcome.from_cache,
        )

    def _translate_one(
        self, key: str, source_language: str | None, target_language: str
    ) -> CacheResult:
        """1言語分のキャッシュ参照と生成（同一キーの生成は1本化）"""
        return self.cache.get_or_generate(
            key,
            target_language,
            lambda: self._generate(key, source_language, target_language),
        )

    def _generate(
        self, key: str, source_language: str | None, target_language: str
    ) -> GeneratedTranslation:
        """
        プロバイダで翻訳を生成

        一時的な失敗・処理中プレースホルダは再試行し、
        予算切れの場合は原文をキャッシュ不可の結果として返す。
        """
        assert self.translator is not None
        translator = self.translator
        outcome = retry_with_backoff(
            lambda: translator.translate(key, source_language, target_language),
            self.retry_policy,
            is_pending=is_placeholder,
            description=f"Translation to {target_language}",
            sleep=self._sleep,
        )
        if outcome.timed_out or outcome.value is None:
            return GeneratedTranslation(text=key, engine=translator.engine, cacheable=False)
        return GeneratedTranslation(text=outcome.value, engine=translator.engine)
