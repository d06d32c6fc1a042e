#!/usr/bin/env python3
"""
Relay Scribe - Core Application
プレゼンテーション層：RelayScribeAppコアロジック（CLI/API共通の入口）
"""

import threading
import time
import uuid
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime

from relay_scribe.domain import (
    AudioChunk,
    AudioFlushedEvent,
    EndResult,
    FanoutResult,
    InputRejected,
    MessageLevel,
    PartialTextReceivedEvent,
    PersistenceError,
    ProviderError,
    SegmentAcceptedEvent,
    SegmentRejectedEvent,
    Session,
    SessionEndedEvent,
    SessionNotFound,
    SessionStats,
    SessionStatus,
    Settings,
    SubmitResult,
    SubmitStatus,
    TranscriptSegment,
    TranslationLookup,
    TranslationStatus,
    TranslationsCompletedEvent,
    VadMode,
    audio_flushed,
    partial_text_received,
    post_message,
    segment_accepted,
    segment_rejected,
    session_ended,
    translations_completed,
)
from relay_scribe.infrastructure.audio import FlushedAudio, VoiceActivitySegmenter
from relay_scribe.infrastructure.persistence import (
    CacheStats,
    PersistenceStore,
    SessionJsonExporter,
    create_store,
)
from relay_scribe.infrastructure.providers import (
    GrammarReviewer,
    OpenAIRecognizer,
    Recognizer,
    RetryPolicy,
    Translator,
    create_llm_client,
    create_translator,
    retry_with_backoff,
)
from relay_scribe.infrastructure.session import (
    CommitTicket,
    OrderedCommitGate,
    SessionReaper,
    SessionStateStore,
)
from relay_scribe.infrastructure.text import SpeechSegmentDeduper, normalize_cache_key
from relay_scribe.infrastructure.translation import TranslationCache, TranslationFanoutCache


@dataclass
class _SessionRuntime:
    """セッションごとの実行時状態（音声バッファと直列化用ロック）"""

    session: Session
    segmenter: VoiceActivitySegmenter
    segmenter_lock: threading.Lock = field(default_factory=threading.Lock)


class RelayScribeApp:
    """
    Relay Scribe共通コアアプリケーション（CLI/API共通）

    責務:
    - コンポーネントの初期化と依存性注入
    - セッションのライフサイクル管理（開始・終了・アイドル回収）
    - 音声 → 認識 → 重複判定 → 永続化 → 翻訳ファンアウト の制御

    Note:
    - 入口のメソッドは例外を送出せず、結果オブジェクトで状況を返す
    - 同一セッションの追加は SessionStateStore のロックで直列化される
    - 各段階の結果は blinker のシグナルで通知する（UI層がsubscribeする）
    """

    def __init__(
        self,
        settings: Settings,
        translator: Translator | None = None,
        recognizer: Recognizer | None = None,
        reviewer: GrammarReviewer | None = None,
        store: PersistenceStore | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """
        RelayScribeAppの初期化

        Args:
            settings: アプリケーション設定
            translator: 翻訳プロバイダ（Noneの場合はキャッシュ参照のみ）
            recognizer: 音声認識プロバイダ（Noneの場合は音声入力を破棄）
            reviewer: 文法レビュー（Noneの場合は無効）
            store: 永続化ストア（Noneの場合は設定から生成）
            clock: セッション状態の経過時間計算に使う時計関数
            sleep: 再試行の待機関数
        """
        self.settings = settings
        self.recognizer = recognizer
        self.reviewer = reviewer
        self._sleep = sleep

        # 1. 永続化ストア
        self.store = store if store is not None else create_store(settings.persistence)

        # 2. セッション状態・重複判定・確定順序
        self.state_store = SessionStateStore(settings.session, clock=clock)
        self.deduper = SpeechSegmentDeduper(
            settings.dedup, state_store=self.state_store, clock=clock
        )
        self.commit_gate = OrderedCommitGate()

        # 3. 翻訳キャッシュ・ファンアウト
        self.translation_cache = TranslationCache(
            self.store, ttl_days=settings.translation.cache_ttl_days
        )
        self.fanout = TranslationFanoutCache(
            translator, self.translation_cache, settings.translation, sleep=sleep
        )

        # 4. 音声認識の再試行ポリシー
        self.recognition_retry = RetryPolicy(
            max_attempts=settings.recognition.max_attempts,
            base_delay_sec=settings.translation.base_delay_sec,
            max_delay_sec=settings.translation.max_delay_sec,
            jitter_sec=settings.translation.jitter_sec,
            total_budget_sec=settings.recognition.timeout_sec,
        )
        # 文法レビューは翻訳と同じ再試行設定を使う
        self.review_retry = RetryPolicy(
            max_attempts=settings.translation.max_attempts,
            base_delay_sec=settings.translation.base_delay_sec,
            max_delay_sec=settings.translation.max_delay_sec,
            jitter_sec=settings.translation.jitter_sec,
            total_budget_sec=settings.translation.total_budget_sec,
        )

        # 5. アイドル回収
        self.reaper = SessionReaper(
            self.state_store,
            on_idle=lambda session_id: self.end_session(session_id, reason="idle"),
            interval_sec=settings.session.reaper_interval_sec,
            idle_timeout_sec=settings.session.idle_timeout_sec,
        )

        self._sessions: dict[str, _SessionRuntime] = {}
        self._sessions_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Settings) -> "RelayScribeApp":
        """
        設定からプロバイダを生成してアプリを構築

        Raises:
            ProviderError: 有効化されたプロバイダの認証情報が不足している場合
        """
        translator = (
            create_translator(settings.translation)
            if settings.translation.enabled
            else None
        )
        recognizer = (
            OpenAIRecognizer(
                settings.recognition,
                audio_format="pcm16" if settings.vad.mode is VadMode.ENERGY else "webm",
                sample_rate=settings.vad.sample_rate,
            )
            if settings.recognition.enabled
            else None
        )
        reviewer = (
            GrammarReviewer(
                create_llm_client(settings.review.backend, settings.translation),
                settings.review,
            )
            if settings.review.enabled
            else None
        )
        return cls(
            settings, translator=translator, recognizer=recognizer, reviewer=reviewer
        )

    # ========== ライフサイクル ==========

    def start(self) -> None:
        """アイドル回収スレッドを起動"""
        self.reaper.start()

    def shutdown(self) -> None:
        """全セッションを終了し、回収スレッドとストアを停止"""
        self.reaper.stop()
        for session_id in self.active_session_ids():
            self.end_session(session_id)
        self.store.close()

    def active_session_ids(self) -> list[str]:
        with self._sessions_lock:
            return list(self._sessions)

    def get_session(self, session_id: str) -> Session | None:
        runtime = self._get_runtime(session_id)
        return runtime.session if runtime else None

    # ========== 入口: StartSession ==========

    def start_session(
        self,
        session_id: str,
        primary_language: str,
        target_languages: Iterable[str] | None = None,
    ) -> bool:
        """
        セッションを開始（既に存在する場合は作業状態をリセット）

        Args:
            session_id: セッションID
            primary_language: 話者の言語コード
            target_languages: 翻訳先の言語コード（省略時は設定の既定値）

        Returns:
            bool: 既存のセッションをリセットした場合True
        """
        targets = list(
            target_languages
            if target_languages is not None
            else self.settings.translation.default_target_languages
        )
        runtime = _SessionRuntime(
            session=Session(
                id=session_id,
                primary_language=primary_language,
                target_languages=targets,
            ),
            segmenter=VoiceActivitySegmenter(self.settings.vad),
        )

        with self._sessions_lock:
            self._sessions[session_id] = runtime
        self.commit_gate.open(session_id)
        was_active = self.state_store.start(session_id)

        post_message(
            self,
            f"Session {'reset' if was_active else 'started'}: {session_id} "
            f"({primary_language} -> {', '.join(targets) or 'none'})",
            MessageLevel.INFO,
        )
        return was_active

    # ========== 入口: SubmitAudioChunk ==========

    def submit_audio_chunk(
        self,
        session_id: str,
        audio: bytes,
        captured_at: float | None = None,
        duration_sec: float = 0.0,
    ) -> SubmitResult:
        """
        音声チャンクを追加（フラッシュ条件を満たせば認識して追加）

        Args:
            session_id: セッションID
            audio: 音声データ（blob_size モードは圧縮チャンク、energy モードはPCM16）
            captured_at: キャプチャ時刻（秒、省略時は現在時刻）
            duration_sec: チャンクの公称長（0の場合は推定）

        Returns:
            SubmitResult: BUFFERED（未フラッシュ）、DROPPED（認識失敗・無音）、
                または認識テキストの判定結果
        """
        runtime = self._get_runtime(session_id)
        if runtime is None:
            return self._session_not_found(session_id)

        chunk = AudioChunk(
            data=audio,
            captured_at=time.time() if captured_at is None else captured_at,
            duration_sec=duration_sec,
        )
        with runtime.segmenter_lock:
            flushed = runtime.segmenter.push(chunk)
            # 順番札は捕捉順に払い出す
            ticket = self.commit_gate.issue(session_id) if flushed else None

        if flushed is None:
            return SubmitResult(status=SubmitStatus.BUFFERED)
        return self._process_flush(runtime, flushed, ticket)

    def _process_flush(
        self, runtime: _SessionRuntime, flushed: FlushedAudio, ticket: CommitTicket | None
    ) -> SubmitResult:
        """
        フラッシュされた音声を認識し、捕捉順に重複判定へ渡す

        順番札は成否にかかわらず完了させる。フラッシュ後にセッションが
        リセット・終了された場合、結果は新しいセッションに追加しない。
        """
        session = runtime.session
        sequence = ticket.sequence if ticket else -1
        audio_flushed.send(
            self,
            event=AudioFlushedEvent(
                session_id=session.id,
                audio=flushed.audio,
                sequence=sequence,
                reason=flushed.reason.value,
                duration_sec=flushed.duration_sec,
            ),
        )

        try:
            try:
                text = self._recognize(flushed.audio, session.primary_language)
            except (InputRejected, ProviderError) as exc:
                post_message(
                    self,
                    f"Audio dropped ({session.id}, seq={sequence}): {exc}",
                    MessageLevel.WARNING
                    if isinstance(exc, ProviderError)
                    else MessageLevel.INFO,
                )
                return SubmitResult(status=SubmitStatus.DROPPED, reason=str(exc))
            except Exception as exc:
                # 想定外の例外も破棄されたチャンクとして扱う
                post_message(
                    self,
                    f"Unexpected recognition error ({session.id}, seq={sequence}): "
                    f"{type(exc).__name__}: {exc}",
                    MessageLevel.ERROR,
                )
                return SubmitResult(
                    status=SubmitStatus.DROPPED, reason=f"{type(exc).__name__}: {exc}"
                )

            if not self.commit_gate.wait_turn(
                ticket, self.settings.session.commit_wait_timeout_sec
            ):
                post_message(
                    self,
                    f"Timed out waiting for earlier audio ({session.id}, seq={sequence})",
                    MessageLevel.WARNING,
                )
            return self._submit_final(session.id, text, origin=runtime)
        finally:
            self.commit_gate.complete(ticket)

    def _recognize(self, audio: bytes, language_hint: str) -> str:
        """
        音声サイズの検証と認識（一時的な失敗は再試行）

        Raises:
            InputRejected: 音声が小さすぎる・大きすぎる・認識結果が空の場合
            ProviderError: 認識に失敗した場合
        """
        vad = self.settings.vad
        if len(audio) < vad.min_audio_bytes:
            raise InputRejected(f"audio too small ({len(audio)} bytes), treated as silence")
        if len(audio) > vad.max_audio_bytes:
            raise InputRejected(f"audio too large ({len(audio)} bytes)")
        if self.recognizer is None:
            raise ProviderError("recognition", "recognition provider not configured")

        recognizer = self.recognizer
        outcome = retry_with_backoff(
            lambda: recognizer.transcribe(audio, language_hint),
            self.recognition_retry,
            description="Recognition",
            sleep=self._sleep,
        )
        candidate = outcome.value
        if candidate is None or not candidate.text.strip():
            raise InputRejected("empty recognition result")
        return candidate.text

    # ========== 入口: SubmitRecognizedText ==========

    def submit_recognized_text(
        self, session_id: str, raw_text: str, is_partial: bool = False
    ) -> SubmitResult:
        """
        認識済みテキストを追加

        Args:
            session_id: セッションID
            raw_text: 認識テキスト
            is_partial: 途中経過（UI表示専用、重複判定・永続化しない）

        Returns:
            SubmitResult: 受理・棄却・途中経過・セッション不明
        """
        if is_partial:
            if self._get_runtime(session_id) is None:
                return self._session_not_found(session_id)
            partial_text_received.send(
                self, event=PartialTextReceivedEvent(session_id=session_id, text=raw_text)
            )
            return SubmitResult(status=SubmitStatus.PARTIAL, cleaned_text=raw_text)

        return self._submit_final(session_id, raw_text)

    def _submit_final(
        self,
        session_id: str,
        raw_text: str,
        origin: _SessionRuntime | None = None,
    ) -> SubmitResult:
        """
        重複判定 → 追加 → 永続化 → 文法レビュー → 翻訳

        Args:
            origin: 音声を捕捉したセッション実行状態。リセット・終了により
                現在の実行状態と異なる場合は追加しない
        """
        runtime = self._get_runtime(session_id)
        if runtime is None or (origin is not None and runtime is not origin):
            return self._session_not_found(session_id)
        session = runtime.session

        try:
            # 判定と追加を同じセッションロックの下で行う
            with self.state_store.locked(session_id) as state:
                # ロック待ちの間にリセットされた場合
                if self._get_runtime(session_id) is not runtime:
                    raise SessionNotFound(session_id)
                decision = self.deduper.evaluate_state(state, raw_text)
                segment = None
                persisted = False
                if decision.accepted:
                    extra_hashes = (decision.candidate_hash,) if decision.candidate_hash else ()
                    self.state_store.append_accepted(
                        session_id, decision.cleaned_text, extra_hashes=extra_hashes
                    )
                    segment = TranscriptSegment(
                        id=uuid.uuid4().hex,
                        session_id=session_id,
                        text=decision.cleaned_text,
                        created_at=datetime.now(),
                        source_language=session.primary_language,
                    )
                    persisted = self._persist_segment(segment)
        except SessionNotFound:
            return self._session_not_found(session_id)

        if segment is None:
            assert decision.reason is not None
            post_message(
                self,
                f"Segment rejected ({decision.reason.value}): {self._preview(raw_text)}",
                MessageLevel.INFO,
            )
            segment_rejected.send(
                self,
                event=SegmentRejectedEvent(
                    session_id=session_id, text=raw_text, reason=decision.reason
                ),
            )
            return SubmitResult(
                status=SubmitStatus.REJECTED, reason=decision.reason.value
            )

        post_message(self, f"Segment accepted: {self._preview(segment.text)}", MessageLevel.INFO)
        segment_accepted.send(
            self,
            event=SegmentAcceptedEvent(
                segment=segment, trimmed_overlap=decision.trimmed_overlap
            ),
        )

        if self.reviewer is not None:
            segment = self._review(segment, persisted)

        fanout = self._run_fanout(segment, session.target_languages, persisted)
        return SubmitResult(
            status=SubmitStatus.ACCEPTED,
            cleaned_text=segment.text,
            translations=dict(fanout.translations),
            segment=segment,
            fanout=fanout,
        )

    def _persist_segment(self, segment: TranscriptSegment) -> bool:
        """
        セグメントを永続化

        失敗しても追加は取り消さない（ライブのトランスクリプトの連続性を優先）。
        """
        try:
            self.store.save_segment(segment, TranslationStatus.PENDING)
            return True
        except PersistenceError as exc:
            post_message(
                self,
                f"Failed to persist segment {segment.id} ({segment.session_id}): {exc}",
                MessageLevel.ERROR,
            )
            return False

    def _review(self, segment: TranscriptSegment, persisted: bool) -> TranscriptSegment:
        """文法レビュー（一時的な失敗は再試行、失敗時は corrected_text なしのまま）"""
        assert self.reviewer is not None
        reviewer = self.reviewer
        try:
            outcome = retry_with_backoff(
                lambda: reviewer.review(segment.text, segment.source_language),
                self.review_retry,
                description="Grammar review",
                sleep=self._sleep,
            )
            if outcome.value is None:
                return segment
            corrected = outcome.value
            if persisted:
                self.store.set_corrected_text(segment.id, corrected)
        except (ProviderError, PersistenceError) as exc:
            post_message(self, f"Grammar review failed: {exc}", MessageLevel.WARNING)
            return segment
        return replace(segment, corrected_text=corrected)

    def _run_fanout(
        self,
        segment: TranscriptSegment,
        target_languages: Iterable[str],
        persisted: bool,
    ) -> FanoutResult:
        """翻訳ファンアウトと翻訳状態の遷移"""
        if persisted:
            self._update_status(segment.id, TranslationStatus.PROCESSING)

        result = self.fanout.translate(
            segment.text, segment.source_language, target_languages
        )

        if persisted:
            self._update_status(segment.id, result.status)
        translations_completed.send(
            self, event=TranslationsCompletedEvent(segment=segment, result=result)
        )
        return result

    def _update_status(self, segment_id: str, status: TranslationStatus) -> bool:
        try:
            self.store.update_translation_status(segment_id, status)
            return True
        except (PersistenceError, ValueError) as exc:
            post_message(
                self,
                f"Failed to update translation status of {segment_id}: {exc}",
                MessageLevel.WARNING,
            )
            return False

    # ========== 入口: EndSession ==========

    def end_session(self, session_id: str, reason: str = "ended") -> EndResult:
        """
        セッションを終了

        残っている音声バッファは終了前に認識・追加する。
        終了後に完了した認識・翻訳の結果はトランスクリプトに追加されない。

        Args:
            session_id: セッションID
            reason: 終了理由（ended / idle）

        Returns:
            EndResult: 最終統計（存在しない場合は found=False）
        """
        runtime = self._get_runtime(session_id)
        if runtime is None:
            return EndResult(session_id=session_id, found=False)

        # 残りの音声をフラッシュ
        if self.recognizer is not None:
            with runtime.segmenter_lock:
                flushed = runtime.segmenter.flush()
                ticket = self.commit_gate.issue(session_id) if flushed else None
            if flushed is not None:
                self._process_flush(runtime, flushed, ticket)

        with self._sessions_lock:
            if self._sessions.get(session_id) is runtime:
                del self._sessions[session_id]
        self.commit_gate.close(session_id)

        try:
            stats = self.state_store.end(session_id)
        except SessionNotFound:
            return EndResult(session_id=session_id, found=False)

        session = runtime.session
        session.status = SessionStatus.ENDED
        session.ended_at = datetime.now()

        if self.settings.app.save_json:
            self._export_session(session, stats)

        session_ended.send(
            self, event=SessionEndedEvent(session_id=session_id, stats=stats, reason=reason)
        )
        post_message(
            self,
            f"Session {reason}: {session_id} "
            f"(segments={stats.segment_count}, chars={stats.transcript_length})",
            MessageLevel.SUCCESS,
        )
        return EndResult(session_id=session_id, found=True, stats=stats)

    def _export_session(self, session: Session, stats: SessionStats) -> None:
        """セッションをJSONに保存（失敗はログのみ）"""
        try:
            segments = self.store.fetch_segments(session.id)
            translations = {
                segment.id: self._cached_translations(segment, session.target_languages)
                for segment in segments
            }
            path = SessionJsonExporter.save_to_file(
                session,
                segments,
                translations,
                stats=stats,
                output_dir=self.settings.app.export_dir,
            )
        except (PersistenceError, OSError) as exc:
            post_message(self, f"Failed to export session {session.id}: {exc}", MessageLevel.ERROR)
            return
        post_message(self, f"Session saved to: {path}", MessageLevel.SUCCESS)

    def _cached_translations(
        self, segment: TranscriptSegment, target_languages: Iterable[str]
    ) -> dict[str, str]:
        key = normalize_cache_key(segment.text)
        translations: dict[str, str] = {}
        for language in target_languages:
            entry = self.translation_cache.lookup(key, language)
            if entry is not None:
                translations[language] = entry.translated_text
        return translations

    # ========== 入口: GetTranslation ==========

    def get_translation(
        self, text: str, target_language: str, source_language: str | None = None
    ) -> TranslationLookup:
        """
        単発の翻訳（キャッシュ優先、未ヒットは生成）

        ライブストリーム外の補完・バックフィル用。
        """
        return self.fanout.get_translation(text, target_language, source_language)

    def cache_stats(self) -> CacheStats:
        """翻訳キャッシュの統計"""
        return self.translation_cache.stats()

    # ========== バックフィル ==========

    def process_pending_translations(self, limit: int = 10) -> dict[str, FanoutResult]:
        """
        未翻訳・失敗したセグメントの翻訳を再実行

        Args:
            limit: 1回に処理する最大セグメント数

        Returns:
            dict[str, FanoutResult]: セグメントID → ファンアウト結果
        """
        try:
            segments = self.store.fetch_segments_by_status(
                [TranslationStatus.PENDING, TranslationStatus.FAILED], limit=limit
            )
        except PersistenceError as exc:
            post_message(self, f"Failed to fetch pending segments: {exc}", MessageLevel.ERROR)
            return {}

        results: dict[str, FanoutResult] = {}
        for segment in segments:
            if not self._claim_for_translation(segment.id):
                continue
            runtime = self._get_runtime(segment.session_id)
            targets = (
                runtime.session.target_languages
                if runtime
                else self.settings.translation.default_target_languages
            )
            result = self.fanout.translate(segment.text, segment.source_language, targets)
            self._update_status(segment.id, result.status)
            translations_completed.send(
                self, event=TranslationsCompletedEvent(segment=segment, result=result)
            )
            results[segment.id] = result

        if results:
            post_message(
                self,
                f"Processed {len(results)} pending translation(s)",
                MessageLevel.INFO,
            )
        return results

    def _claim_for_translation(self, segment_id: str) -> bool:
        """
        セグメントを processing に遷移（failed は pending を経由）

        他の処理が先に遷移させていた場合はFalse。
        """
        try:
            if self.store.get_translation_status(segment_id) is TranslationStatus.FAILED:
                self.store.update_translation_status(segment_id, TranslationStatus.PENDING)
            self.store.update_translation_status(segment_id, TranslationStatus.PROCESSING)
        except (PersistenceError, ValueError) as exc:
            post_message(
                self, f"Skipped segment {segment_id}: {exc}", MessageLevel.INFO
            )
            return False
        return True

    # ========== 内部処理 ==========

    def _get_runtime(self, session_id: str) -> _SessionRuntime | None:
        with self._sessions_lock:
            return self._sessions.get(session_id)

    def _preview(self, text: str) -> str:
        """ログ用にテキストを切り詰め"""
        limit = self.settings.app.max_log_text_length
        return text if len(text) <= limit else text[:limit] + "..."

    def _session_not_found(self, session_id: str) -> SubmitResult:
        post_message(self, f"Session not found: {session_id}", MessageLevel.WARNING)
        return SubmitResult(
            status=SubmitStatus.SESSION_NOT_FOUND, reason=f"session not found: {session_id}"
        )
