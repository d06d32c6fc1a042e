"""SpeechSegmentDeduperのテスト"""

import pytest

from relay_scribe.domain import (
    DedupDecision,
    DedupSettings,
    RejectReason,
    SessionNotFound,
    SessionSettings,
    SimilarityMetric,
    WindowPolicy,
)
from relay_scribe.infrastructure.session import SessionStateStore
from relay_scribe.infrastructure.text import SpeechSegmentDeduper

from conftest import FakeClock

SESSION = "s1"


class Pipeline:
    """判定と追加をまとめて行うヘルパー"""

    def __init__(self, clock: FakeClock, **dedup_overrides: object) -> None:
        self.store = SessionStateStore(SessionSettings(), clock=clock)
        self.deduper = SpeechSegmentDeduper(
            DedupSettings(**dedup_overrides), state_store=self.store, clock=clock
        )
        self.store.start(SESSION)

    def submit(self, text: str) -> DedupDecision:
        with self.store.locked(SESSION) as state:
            decision = self.deduper.evaluate_state(state, text)
            if decision.accepted:
                assert decision.candidate_hash is not None
                self.store.append_accepted(
                    SESSION, decision.cleaned_text, extra_hashes=(decision.candidate_hash,)
                )
        return decision

    @property
    def transcript(self) -> str:
        return self.store.get_or_fail(SESSION).full_transcript


@pytest.fixture
def pipeline(clock: FakeClock) -> Pipeline:
    return Pipeline(clock)


class TestExactDuplicate:
    """完全一致のテスト"""

    def test_same_text_twice_is_rejected(self, pipeline: Pipeline) -> None:
        assert pipeline.submit("hello world").accepted
        decision = pipeline.submit("hello world")

        assert decision.reason is RejectReason.EXACT_DUPLICATE
        assert pipeline.transcript == "hello world"

    def test_case_and_punctuation_ignored(self, pipeline: Pipeline) -> None:
        pipeline.submit("hello world")
        assert pipeline.submit("Hello, World!").reason is RejectReason.EXACT_DUPLICATE

    def test_raw_text_of_trimmed_segment_is_remembered(self, pipeline: Pipeline) -> None:
        """重なり除去後に受理された入力を再送しても重複になる"""
        pipeline.submit("the quick brown")
        assert pipeline.submit("brown fox jumps").accepted

        assert pipeline.submit("brown fox jumps").reason is RejectReason.EXACT_DUPLICATE


class TestOverlap:
    """先頭の重なり除去のテスト"""

    def test_leading_overlap_is_trimmed(self, pipeline: Pipeline) -> None:
        pipeline.submit("the quick brown")
        decision = pipeline.submit("brown fox jumps")

        assert decision.accepted
        assert decision.cleaned_text == "fox jumps"
        assert decision.trimmed_overlap == len("brown")
        assert pipeline.transcript == "the quick brown fox jumps"

    def test_original_casing_kept_after_trim(self, pipeline: Pipeline) -> None:
        pipeline.submit("We met in Paris")
        decision = pipeline.submit("in Paris, France was lovely")
        assert decision.cleaned_text == "France was lovely"

    def test_complete_overlap_is_rejected(self, pipeline: Pipeline) -> None:
        pipeline.submit("the quick brown fox")
        decision = pipeline.submit("brown fox")

        assert decision.reason is RejectReason.COMPLETE_OVERLAP
        assert pipeline.transcript == "the quick brown fox"

    def test_short_overlap_is_not_trimmed(self, pipeline: Pipeline) -> None:
        pipeline.submit("look at")
        decision = pipeline.submit("at home now")
        assert decision.cleaned_text == "at home now"
        assert decision.trimmed_overlap == 0


class TestNearDuplicate:
    """類似度による近似重複のテスト"""

    def test_similarity_equal_to_threshold_is_accepted(self, pipeline: Pipeline) -> None:
        """Jaccard 0.8 ちょうどは閾値を超えないため受理"""
        pipeline.submit("alpha beta gamma delta epsilon")
        assert pipeline.submit("delta gamma beta alpha").accepted

    def test_similarity_above_threshold_is_rejected(self, pipeline: Pipeline) -> None:
        pipeline.submit("alpha beta gamma delta epsilon")
        decision = pipeline.submit("gamma alpha beta delta epsilon")
        assert decision.reason is RejectReason.NEAR_DUPLICATE

    def test_contained_text_is_rejected(self, pipeline: Pipeline) -> None:
        pipeline.submit("the quick brown fox jumps over")
        decision = pipeline.submit("quick brown fox jumps")
        assert decision.reason is RejectReason.NEAR_DUPLICATE

    def test_levenshtein_metric(self, clock: FakeClock) -> None:
        pipeline = Pipeline(clock, similarity_metric=SimilarityMetric.LEVENSHTEIN)
        pipeline.submit("hello there world")
        assert pipeline.submit("hello their world").reason is RejectReason.NEAR_DUPLICATE

    def test_recent_policy_ignores_old_segments(self, clock: FakeClock) -> None:
        pipeline = Pipeline(clock, window_policy=WindowPolicy.RECENT, recent_window_sec=10.0)
        pipeline.submit("red green blue yellow")
        clock.advance(11.0)
        assert pipeline.submit("green red yellow blue").accepted

    def test_all_policy_keeps_old_segments(self, clock: FakeClock) -> None:
        pipeline = Pipeline(clock, window_policy=WindowPolicy.ALL)
        pipeline.submit("red green blue yellow")
        clock.advance(11.0)
        assert pipeline.submit("green red yellow blue").reason is RejectReason.NEAR_DUPLICATE


class TestQuality:
    """短すぎ・繰り返しのテスト"""

    @pytest.mark.parametrize("text", ["a", "", "?!", "   "])
    def test_too_short(self, pipeline: Pipeline, text: str) -> None:
        assert pipeline.submit(text).reason is RejectReason.TOO_SHORT

    def test_repetitive_text_is_low_quality(self, pipeline: Pipeline) -> None:
        decision = pipeline.submit("yeah yeah yeah yeah yeah yeah")
        assert decision.reason is RejectReason.LOW_QUALITY

    def test_short_repetition_is_allowed(self, pipeline: Pipeline) -> None:
        assert pipeline.submit("yeah yeah").accepted


class TestEvaluate:
    """セッションIDによる判定のテスト"""

    def test_evaluate_uses_state_store(self, pipeline: Pipeline) -> None:
        pipeline.submit("hello world")
        decision = pipeline.deduper.evaluate(SESSION, "hello world")
        assert decision.reason is RejectReason.EXACT_DUPLICATE

    def test_evaluate_does_not_append(self, pipeline: Pipeline) -> None:
        pipeline.deduper.evaluate(SESSION, "hello world")
        assert pipeline.transcript == ""

    def test_unknown_session(self, pipeline: Pipeline) -> None:
        with pytest.raises(SessionNotFound):
            pipeline.deduper.evaluate("missing", "hello world")
