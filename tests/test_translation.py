"""翻訳キャッシュとファンアウトのテスト"""

import threading
from collections import Counter
from datetime import datetime, timedelta

import pytest

from relay_scribe.domain import ProviderError, TranslationSettings, TranslationStatus
from relay_scribe.infrastructure.persistence import InMemoryStore
from relay_scribe.infrastructure.providers import Translator
from relay_scribe.infrastructure.translation import (
    GeneratedTranslation,
    TranslationCache,
    TranslationFanoutCache,
    is_placeholder,
)
from relay_scribe.infrastructure.translation.fanout import (
    REASON_NO_PROVIDER,
    REASON_UNSUPPORTED,
)


class FakeTranslator(Translator):
    """言語ごとに応答を差し替えられる翻訳プロバイダ"""

    engine = "gpt"

    def __init__(
        self,
        failing: set[str] | None = None,
        placeholder: set[str] | None = None,
        delay_event: threading.Event | None = None,
    ) -> None:
        self.failing = failing or set()
        self.placeholder = placeholder or set()
        self.delay_event = delay_event
        self.calls: Counter[tuple[str, str]] = Counter()
        self._lock = threading.Lock()

    def translate(self, text: str, source_language: str | None, target_language: str) -> str:
        with self._lock:
            self.calls[(text, target_language)] += 1
        if self.delay_event is not None:
            self.delay_event.wait(timeout=2.0)
        if target_language in self.failing:
            raise ProviderError("fake", "service unavailable")
        if target_language in self.placeholder:
            return "[Translating…]"
        return f"{target_language}:{text}"


def no_sleep(_seconds: float) -> None:
    pass


def make_fanout(
    translator: Translator | None, store: InMemoryStore | None = None, **overrides: object
) -> TranslationFanoutCache:
    settings = TranslationSettings(**overrides)  # type: ignore[arg-type]
    cache = TranslationCache(store or InMemoryStore(), ttl_days=settings.cache_ttl_days)
    return TranslationFanoutCache(translator, cache, settings, sleep=no_sleep)


class TestPlaceholder:
    @pytest.mark.parametrize("text", ["[Translating…]", "[AI 번역 중...]", "...", "…", "  "])
    def test_placeholders(self, text: str) -> None:
        assert is_placeholder(text)

    @pytest.mark.parametrize("text", ["Hello...", "안녕하세요", "[note] real text"])
    def test_real_text(self, text: str) -> None:
        assert not is_placeholder(text)


class TestTranslationCache:
    """single-flight と期限切れのテスト"""

    def test_generate_then_hit(self) -> None:
        cache = TranslationCache(InMemoryStore())
        calls = []

        def generate() -> GeneratedTranslation:
            calls.append(1)
            return GeneratedTranslation(text="안녕", engine="gpt")

        first = cache.get_or_generate("hello", "ko", generate)
        second = cache.get_or_generate("hello", "ko", generate)

        assert not first.from_cache
        assert second.from_cache
        assert second.entry.translated_text == "안녕"
        assert first.entry.quality == pytest.approx(0.95)
        assert len(calls) == 1

    def test_uncacheable_result_not_stored(self) -> None:
        store = InMemoryStore()
        cache = TranslationCache(store)

        result = cache.get_or_generate(
            "hello", "ko", lambda: GeneratedTranslation("hello", "gpt", cacheable=False)
        )

        assert result.degraded
        assert store.get_translation("hello", "ko") is None

    def test_expired_entry_is_miss(self) -> None:
        now = [datetime(2026, 1, 1)]
        cache = TranslationCache(InMemoryStore(), ttl_days={"google": 14}, clock=lambda: now[0])
        cache.get_or_generate("hello", "ko", lambda: GeneratedTranslation("안녕", "google"))

        assert cache.lookup("hello", "ko") is not None
        now[0] = datetime.now() + timedelta(days=15)
        assert cache.lookup("hello", "ko") is None

    def test_generation_error_shared_with_waiters(self) -> None:
        cache = TranslationCache(InMemoryStore())
        release = threading.Event()
        errors: list[BaseException] = []

        def generate() -> GeneratedTranslation:
            release.wait(timeout=2.0)
            raise ProviderError("fake", "boom")

        def call() -> None:
            try:
                cache.get_or_generate("hello", "ko", generate)
            except ProviderError as exc:
                errors.append(exc)

        threads = [threading.Thread(target=call) for _ in range(3)]
        for t in threads:
            t.start()
        release.set()
        for t in threads:
            t.join()

        assert len(errors) == 3


class TestFanout:
    """多言語ファンアウトのテスト"""

    def test_partial_failure_isolated(self) -> None:
        fanout = make_fanout(FakeTranslator(failing={"zh"}))

        result = fanout.translate("Good morning", "en", ["ko", "zh", "hi"])

        assert result.translations == {"ko": "ko:Good morning", "hi": "hi:Good morning"}
        assert set(result.failed) == {"zh"}
        assert sorted(result.generated) == ["hi", "ko"]
        assert result.status is TranslationStatus.COMPLETED

    def test_all_failed(self) -> None:
        fanout = make_fanout(FakeTranslator(failing={"ko", "zh"}))

        result = fanout.translate("Good morning", "en", ["ko", "zh"])

        assert result.translations == {}
        assert result.status is TranslationStatus.FAILED

    def test_cache_hit_skips_provider(self) -> None:
        translator = FakeTranslator()
        fanout = make_fanout(translator)

        fanout.translate("Good morning", "en", ["ko"])
        result = fanout.translate("  Good morning ", "en", ["ko"])

        assert result.cached == ["ko"]
        assert translator.calls[("Good morning", "ko")] == 1

    def test_source_language_excluded(self) -> None:
        translator = FakeTranslator()
        fanout = make_fanout(translator)

        result = fanout.translate("Bonjour", "fr", ["fr", "ko"])

        assert list(result.translations) == ["ko"]
        assert "fr" not in result.failed

    def test_unsupported_language(self) -> None:
        result = make_fanout(FakeTranslator()).translate("Hello", "en", ["xx", "ko"])

        assert result.failed == {"xx": REASON_UNSUPPORTED}
        assert "ko" in result.translations

    def test_no_provider(self) -> None:
        result = make_fanout(None).translate("Hello", "en", ["ko"])

        assert result.failed == {"ko": REASON_NO_PROVIDER}
        assert result.status is TranslationStatus.FAILED

    def test_placeholder_timeout_degrades_without_caching(self) -> None:
        store = InMemoryStore()
        translator = FakeTranslator(placeholder={"ko"})
        fanout = make_fanout(translator, store=store, max_attempts=3)

        result = fanout.translate("Hello there", "en", ["ko"])

        assert result.translations == {"ko": "Hello there"}
        assert result.degraded == ["ko"]
        assert translator.calls[("Hello there", "ko")] == 3
        assert store.get_translation("Hello there", "ko") is None

    def test_concurrent_fanouts_converge(self) -> None:
        store = InMemoryStore()
        release = threading.Event()
        translator = FakeTranslator(delay_event=release)
        fanout = make_fanout(translator, store=store)
        results = []
        lock = threading.Lock()

        def run() -> None:
            outcome = fanout.translate("Welcome everyone", "en", ["ko", "zh"])
            with lock:
                results.append(outcome)

        threads = [threading.Thread(target=run) for _ in range(4)]
        for t in threads:
            t.start()
        release.set()
        for t in threads:
            t.join()

        assert len(results) == 4
        assert all(r.translations["ko"] == "ko:Welcome everyone" for r in results)
        assert translator.calls[("Welcome everyone", "ko")] == 1
        assert translator.calls[("Welcome everyone", "zh")] == 1
        assert store.translation_stats().total == 2

    def test_empty_text(self) -> None:
        result = make_fanout(FakeTranslator()).translate("   ", "en", ["ko"])
        assert result.translations == {} and result.failed == {}


class TestGetTranslation:
    def test_lookup_generates_and_caches(self) -> None:
        fanout = make_fanout(FakeTranslator())

        first = fanout.get_translation("Hello", "ko")
        second = fanout.get_translation("Hello", "ko")

        assert first.translated_text == "ko:Hello"
        assert not first.from_cache
        assert second.from_cache

    def test_error_reported(self) -> None:
        lookup = make_fanout(FakeTranslator(failing={"ko"})).get_translation("Hello", "ko")

        assert lookup.translated_text is None
        assert lookup.error is not None and "service unavailable" in lookup.error

    def test_no_provider_miss(self) -> None:
        lookup = make_fanout(None).get_translation("Hello", "ko")
        assert lookup.error is not None and REASON_NO_PROVIDER in lookup.error
