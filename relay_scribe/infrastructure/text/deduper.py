#!/usr/bin/env python3
"""
Relay Scribe - Speech Segment Deduper
認識テキストの重複・重なり・低品質を判定するモジュール
"""

import time
from collections.abc import Callable
from typing import TYPE_CHECKING

from relay_scribe.domain import (
    DedupDecision,
    DedupSettings,
    RecentSegment,
    RejectReason,
    WindowPolicy,
)

from .normalization import NormalizedText, normalize_for_dedup, text_hash, tokenize_words
from .similarity import get_similarity_function, is_contained_duplicate, longest_overlap

if TYPE_CHECKING:
    from relay_scribe.infrastructure.session.state_store import (
        SessionStateStore,
        SessionWorkingState,
    )


class SpeechSegmentDeduper:
    """
    確定テキストの重複判定

    判定順序（最初に該当したルールで棄却）:
    1. 正規化後が短すぎる
    2. 既出ハッシュと完全一致
    3. 直前セグメント末尾との重なりを先頭から除去（全て重なる場合は棄却）
    4. 直近ウィンドウとの類似度・包含
    5. 単語の繰り返し（低品質）

    受理時の追加（AppendAccepted）は呼び出し側の責務。
    """

    def __init__(
        self,
        settings: DedupSettings,
        state_store: "SessionStateStore | None" = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            settings: 重複判定設定
            state_store: evaluate() で参照するセッション状態ストア
            clock: 直近ウィンドウの経過時間判定に使う時計関数
                （状態ストアと同じ時計を渡すこと）
        """
        self.settings = settings
        self.state_store = state_store
        self._clock = clock
        self._similarity = get_similarity_function(settings.similarity_metric)

    def evaluate(self, session_id: str, raw_text: str) -> DedupDecision:
        """
        セッションの状態を参照して判定

        Raises:
            SessionNotFound: セッションが存在しない場合
        """
        if self.state_store is None:
            raise RuntimeError("SpeechSegmentDeduper.evaluate requires a state store")
        with self.state_store.locked(session_id) as state:
            return self.evaluate_state(state, raw_text)

    def evaluate_state(
        self, state: "SessionWorkingState", raw_text: str, now: float | None = None
    ) -> DedupDecision:
        """
        作業状態に対して判定（呼び出し側がセッションロックを保持していること）

        Args:
            state: セッション作業状態
            raw_text: 認識プロバイダから返されたテキスト
            now: 現在時刻（省略時は時計関数）

        Returns:
            DedupDecision: 判定結果
        """
        now = self._clock() if now is None else now
        normalized = normalize_for_dedup(raw_text)

        if len(normalized) < self.settings.min_normalized_length:
            return DedupDecision.reject(RejectReason.TOO_SHORT)

        candidate_hash = text_hash(normalized.text)
        if candidate_hash in state.seen_hashes:
            return DedupDecision.reject(RejectReason.EXACT_DUPLICATE, candidate_hash)

        overlap = self._find_overlap(state.last_segment, normalized)
        remaining = normalized.text[overlap:].strip()
        if not remaining:
            return DedupDecision.reject(RejectReason.COMPLETE_OVERLAP, candidate_hash)

        if reason := self._check_near_duplicate(state, remaining, now):
            return DedupDecision.reject(reason, candidate_hash)

        if reason := self._check_repetition(remaining):
            return DedupDecision.reject(reason, candidate_hash)

        return DedupDecision.accept(
            cleaned_text=normalized.raw_suffix_after(overlap),
            candidate_hash=candidate_hash,
            trimmed_overlap=overlap,
        )

    def _find_overlap(
        self, previous: RecentSegment | None, candidate: NormalizedText
    ) -> int:
        """直前セグメント末尾と一致する先頭部分の長さ（正規化後）"""
        if previous is None:
            return 0
        return longest_overlap(
            previous.normalized, candidate.text, self.settings.min_overlap_chars
        )

    def _comparison_window(
        self, state: "SessionWorkingState", now: float
    ) -> list[RecentSegment]:
        """類似度比較の対象となる直近セグメント"""
        segments = list(state.recent_segments)
        if self.settings.window_policy is WindowPolicy.RECENT:
            segments = [
                segment
                for segment in segments
                if now - segment.accepted_at <= self.settings.recent_window_sec
            ]
        return segments[-self.settings.similarity_window :]

    def _check_near_duplicate(
        self, state: "SessionWorkingState", text: str, now: float
    ) -> RejectReason | None:
        """
        直近ウィンドウとの類似度チェック

        閾値ちょうどの類似度は受理する（閾値を「超えた」場合のみ棄却）。
        """
        for segment in self._comparison_window(state, now):
            if self._similarity(text, segment.normalized) > self.settings.similarity_threshold:
                return RejectReason.NEAR_DUPLICATE
            if is_contained_duplicate(
                text, segment.normalized, self.settings.substring_min_length
            ):
                return RejectReason.NEAR_DUPLICATE
        return None

    def _check_repetition(self, text: str) -> RejectReason | None:
        """
        単語の繰り返し検出

        短いテキストは比率が意味をなさないため対象外。
        例: "yeah yeah yeah yeah yeah yeah"
        """
        words = tokenize_words(text)
        if len(words) <= self.settings.repetition_min_words:
            return None
        if len(set(words)) / len(words) < self.settings.min_unique_word_ratio:
            return RejectReason.LOW_QUALITY
        return None
