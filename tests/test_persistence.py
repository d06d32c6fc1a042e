"""永続化ストア（メモリ・SQLite）とJSON出力のテスト"""

import json
import threading
from datetime import datetime, timedelta
from pathlib import Path

import pytest

from relay_scribe.domain import (
    PersistenceBackend,
    PersistenceError,
    PersistenceSettings,
    Session,
    SessionStats,
    TranscriptSegment,
    TranslationCacheEntry,
    TranslationStatus,
)
from relay_scribe.infrastructure.persistence import (
    InMemoryStore,
    PersistenceStore,
    SessionJsonExporter,
    SqliteStore,
    create_store,
)


def make_segment(segment_id: str, session_id: str = "s1", text: str = "hello") -> TranscriptSegment:
    return TranscriptSegment(
        id=segment_id,
        session_id=session_id,
        text=text,
        created_at=datetime(2026, 1, 1, 12, 0, 0),
        source_language="en",
    )


def make_entry(
    text: str = "hello", language: str = "ko", translated: str = "안녕", **kwargs: object
) -> TranslationCacheEntry:
    return TranslationCacheEntry(
        source_text_normalized=text,
        target_language=language,
        translated_text=translated,
        engine=str(kwargs.get("engine", "gpt")),
        quality=float(kwargs.get("quality", 0.95)),  # type: ignore[arg-type]
        expires_at=kwargs.get("expires_at"),  # type: ignore[arg-type]
    )


@pytest.fixture(params=["memory", "sqlite"])
def store(request: pytest.FixtureRequest, tmp_path: Path) -> PersistenceStore:
    if request.param == "memory":
        return InMemoryStore()
    sqlite_store = SqliteStore(tmp_path / "relay.db")
    sqlite_store.initialize()
    return sqlite_store


class TestSegments:
    """セグメントの保存・取得テスト"""

    def test_segments_returned_in_insert_order(self, store: PersistenceStore) -> None:
        for i in range(5):
            store.save_segment(make_segment(f"seg{i}", text=f"text {i}"))
        store.save_segment(make_segment("other", session_id="s2"))

        segments = store.fetch_segments("s1")

        assert [s.id for s in segments] == [f"seg{i}" for i in range(5)]
        assert segments[0].created_at == datetime(2026, 1, 1, 12, 0, 0)

    def test_write_visible_to_next_read(self, store: PersistenceStore) -> None:
        store.save_segment(make_segment("seg1"))
        assert store.get_segment("seg1") == make_segment("seg1")

    def test_duplicate_id_rejected(self, store: PersistenceStore) -> None:
        store.save_segment(make_segment("seg1"))
        with pytest.raises(PersistenceError):
            store.save_segment(make_segment("seg1"))

    def test_corrected_text_kept_separately(self, store: PersistenceStore) -> None:
        store.save_segment(make_segment("seg1", text="ah we start now"))
        store.set_corrected_text("seg1", "We start now.")

        segment = store.get_segment("seg1")
        assert segment is not None
        assert segment.text == "ah we start now"
        assert segment.corrected_text == "We start now."

    def test_corrected_text_unknown_segment(self, store: PersistenceStore) -> None:
        with pytest.raises(PersistenceError):
            store.set_corrected_text("missing", "text")


class TestTranslationStatus:
    """翻訳状態の遷移テスト"""

    def test_happy_path(self, store: PersistenceStore) -> None:
        store.save_segment(make_segment("seg1"))
        assert store.get_translation_status("seg1") is TranslationStatus.PENDING

        store.update_translation_status("seg1", TranslationStatus.PROCESSING)
        store.update_translation_status("seg1", TranslationStatus.COMPLETED)
        assert store.get_translation_status("seg1") is TranslationStatus.COMPLETED

    def test_failed_can_be_retried(self, store: PersistenceStore) -> None:
        store.save_segment(make_segment("seg1"), TranslationStatus.PROCESSING)
        store.update_translation_status("seg1", TranslationStatus.FAILED)
        store.update_translation_status("seg1", TranslationStatus.PENDING)
        assert store.get_translation_status("seg1") is TranslationStatus.PENDING

    @pytest.mark.parametrize(
        ("start", "target"),
        [
            (TranslationStatus.PENDING, TranslationStatus.COMPLETED),
            (TranslationStatus.COMPLETED, TranslationStatus.PENDING),
            (TranslationStatus.PROCESSING, TranslationStatus.PROCESSING),
        ],
    )
    def test_invalid_transitions(
        self, store: PersistenceStore, start: TranslationStatus, target: TranslationStatus
    ) -> None:
        store.save_segment(make_segment("seg1"), start)
        with pytest.raises(ValueError):
            store.update_translation_status("seg1", target)
        assert store.get_translation_status("seg1") is start

    def test_fetch_by_status(self, store: PersistenceStore) -> None:
        store.save_segment(make_segment("a"), TranslationStatus.PENDING)
        store.save_segment(make_segment("b"), TranslationStatus.COMPLETED)
        store.save_segment(make_segment("c"), TranslationStatus.FAILED)
        store.save_segment(make_segment("d"), TranslationStatus.PENDING)

        matched = store.fetch_segments_by_status(
            [TranslationStatus.PENDING, TranslationStatus.FAILED], limit=2
        )
        assert [s.id for s in matched] == ["a", "c"]


class TestTranslationCache:
    """翻訳キャッシュのテスト"""

    def test_roundtrip(self, store: PersistenceStore) -> None:
        stored = store.insert_translation(make_entry())
        assert stored.translated_text == "안녕"

        fetched = store.get_translation("hello", "ko")
        assert fetched is not None
        assert fetched.engine == "gpt"
        assert store.get_translation("hello", "zh") is None

    def test_first_writer_wins(self, store: PersistenceStore) -> None:
        store.insert_translation(make_entry(translated="first"))
        stored = store.insert_translation(make_entry(translated="second"))

        assert stored.translated_text == "first"
        fetched = store.get_translation("hello", "ko")
        assert fetched is not None and fetched.translated_text == "first"

    def test_expired_entry_replaced(self, store: PersistenceStore) -> None:
        store.insert_translation(
            make_entry(translated="old", expires_at=datetime.now() - timedelta(days=1))
        )
        stored = store.insert_translation(make_entry(translated="new"))
        assert stored.translated_text == "new"

    def test_concurrent_inserts_converge(self, store: PersistenceStore) -> None:
        results: list[str] = []
        lock = threading.Lock()

        def insert(n: int) -> None:
            stored = store.insert_translation(make_entry(translated=f"writer {n}"))
            with lock:
                results.append(stored.translated_text)

        threads = [threading.Thread(target=insert, args=(n,)) for n in range(8)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert len(set(results)) == 1
        assert store.translation_stats().total == 1

    def test_stats(self, store: PersistenceStore) -> None:
        store.insert_translation(make_entry(language="ko", engine="gpt", quality=0.95))
        store.insert_translation(make_entry(language="zh", engine="google", quality=0.75))
        store.insert_translation(make_entry(text="bye", language="ko", engine="gpt", quality=0.95))

        stats = store.translation_stats()

        assert stats.total == 3
        assert stats.by_engine == {"gpt": 2, "google": 1}
        assert stats.by_language == {"ko": 2, "zh": 1}
        assert stats.average_quality == pytest.approx((0.95 * 2 + 0.75) / 3)


class TestCreateStore:
    def test_memory(self) -> None:
        assert isinstance(create_store(PersistenceSettings()), InMemoryStore)

    def test_sqlite_initialized(self, tmp_path: Path) -> None:
        settings = PersistenceSettings(
            backend=PersistenceBackend.SQLITE, database_path=tmp_path / "nested" / "db.sqlite"
        )
        store = create_store(settings)
        assert isinstance(store, SqliteStore)
        assert store.fetch_segments("any") == []


class TestSessionJsonExporter:
    """JSON出力のテスト"""

    def test_save_to_file(self, tmp_path: Path) -> None:
        session = Session(
            id="abc",
            primary_language="en",
            target_languages=["ko", "zh"],
            started_at=datetime(2026, 1, 1, 9, 30, 0),
            ended_at=datetime(2026, 1, 1, 10, 0, 0),
        )
        segment = TranscriptSegment(
            id="seg1",
            session_id="abc",
            text="hello",
            created_at=datetime(2026, 1, 1, 9, 31, 0),
            source_language="en",
            corrected_text="Hello.",
        )

        path = SessionJsonExporter.save_to_file(
            session,
            [segment],
            {"seg1": {"ko": "안녕"}},
            stats=SessionStats(segment_count=1, hash_set_size=2, transcript_length=5),
            output_dir=tmp_path / "exports",
        )

        assert path.name == "session_abc_20260101_093000.json"
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["total_segments"] == 1
        assert data["segments"][0]["translations"] == {"ko": "안녕"}
        assert data["segments"][0]["corrected_text"] == "Hello."
        assert data["stats"]["hash_set_size"] == 2
        assert data["session_end"] == "2026-01-01T10:00:00"
