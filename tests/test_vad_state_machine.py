"""VadStateMachineのテスト"""

import pytest

from relay_scribe.domain import VADSettings
from relay_scribe.infrastructure.audio.vad_state_machine import (
    VadAction,
    VadStateMachine,
)

START_THRESHOLD = 0.5
END_THRESHOLD = 0.35
MIN_SPEECH_SEC = 0.2
SILENCE_DURATION_SEC = 1.0
STEP_SEC = 0.1


@pytest.fixture
def state_machine() -> VadStateMachine:
    """新しいVadStateMachineインスタンスを作成"""
    return VadStateMachine(
        start_threshold=START_THRESHOLD,
        end_threshold=END_THRESHOLD,
        min_speech_sec=MIN_SPEECH_SEC,
        silence_duration_sec=SILENCE_DURATION_SEC,
    )


def start_speech(state_machine: VadStateMachine) -> None:
    """発話開始状態にする"""
    for _ in range(2):
        state_machine.process(START_THRESHOLD + 0.1, STEP_SEC)
    assert state_machine.is_speaking is True


class TestInitialState:
    """初期状態のテスト"""

    def test_initial_state_not_speaking(self, state_machine: VadStateMachine) -> None:
        """初期状態では発話していない"""
        assert state_machine.is_speaking is False

    def test_initial_counters_zero(self, state_machine: VadStateMachine) -> None:
        """初期状態では累積時間がゼロ"""
        assert state_machine.speech_sec == 0.0
        assert state_machine.silence_sec == 0.0


class TestHysteresisThresholds:
    """ヒステリシス閾値の動作テスト"""

    def test_uses_high_threshold_when_idle(self, state_machine: VadStateMachine) -> None:
        """待機中は高い閾値を使用"""
        state_machine.process(START_THRESHOLD - 0.01, STEP_SEC)
        assert state_machine.speech_sec == 0.0

        state_machine.process(START_THRESHOLD, STEP_SEC)
        assert state_machine.speech_sec == pytest.approx(STEP_SEC)

    def test_uses_low_threshold_when_speaking(self, state_machine: VadStateMachine) -> None:
        """発話中は低い閾値を使用"""
        start_speech(state_machine)

        level_between = (END_THRESHOLD + START_THRESHOLD) / 2
        state_machine.process(level_between, STEP_SEC)
        assert state_machine.silence_sec == 0.0

    def test_below_end_threshold_counts_silence(self, state_machine: VadStateMachine) -> None:
        """発話中、終了閾値未満は無音としてカウント"""
        start_speech(state_machine)

        state_machine.process(END_THRESHOLD - 0.01, STEP_SEC)
        assert state_machine.silence_sec == pytest.approx(STEP_SEC)

    def test_gate_false_counts_as_silence(self, state_machine: VadStateMachine) -> None:
        """gate=False の場合はレベルに関係なく無音扱い"""
        start_speech(state_machine)

        state_machine.process(1.0, STEP_SEC, gate=False)
        assert state_machine.silence_sec == pytest.approx(STEP_SEC)


class TestSpeechStart:
    """発話開始のテスト"""

    def test_requires_min_speech_duration(self, state_machine: VadStateMachine) -> None:
        """最小発話時間に達するまで開始しない"""
        assert state_machine.process(1.0, STEP_SEC) is VadAction.NONE
        assert state_machine.process(1.0, STEP_SEC) is VadAction.SPEECH_STARTED

    def test_interrupted_speech_resets_counter(self, state_machine: VadStateMachine) -> None:
        """途中で無音を挟むと累積がリセットされる"""
        state_machine.process(1.0, STEP_SEC)
        state_machine.process(0.0, STEP_SEC)
        assert state_machine.process(1.0, STEP_SEC) is VadAction.NONE
        assert state_machine.is_speaking is False

    def test_started_only_once(self, state_machine: VadStateMachine) -> None:
        """発話中の音声は NONE を返す"""
        start_speech(state_machine)
        assert state_machine.process(1.0, STEP_SEC) is VadAction.NONE


class TestSpeechEnd:
    """発話終了のテスト"""

    def test_ends_after_silence_duration(self, state_machine: VadStateMachine) -> None:
        """連続無音が silence_duration_sec に達すると終了"""
        start_speech(state_machine)

        actions = [state_machine.process(0.0, 0.25) for _ in range(4)]
        assert actions == [
            VadAction.NONE,
            VadAction.NONE,
            VadAction.NONE,
            VadAction.SPEECH_ENDED,
        ]
        assert state_machine.is_speaking is False

    def test_short_pause_does_not_end(self, state_machine: VadStateMachine) -> None:
        """短い息継ぎでは終了しない"""
        start_speech(state_machine)

        state_machine.process(0.0, 0.5)
        state_machine.process(1.0, STEP_SEC)
        assert state_machine.process(0.0, 0.5) is VadAction.NONE
        assert state_machine.is_speaking is True

    def test_silence_while_idle_is_noop(self, state_machine: VadStateMachine) -> None:
        """待機中の無音は何も起きない"""
        for _ in range(20):
            assert state_machine.process(0.0, STEP_SEC) is VadAction.NONE
        assert state_machine.silence_sec == 0.0

    def test_state_reset_after_end(self, state_machine: VadStateMachine) -> None:
        """終了後は初期状態に戻る"""
        start_speech(state_machine)
        state_machine.process(0.0, SILENCE_DURATION_SEC)

        assert state_machine.speech_sec == 0.0
        assert state_machine.silence_sec == 0.0


class TestFactories:
    """設定からの生成テスト"""

    def test_for_energy_uses_rms_thresholds(self) -> None:
        settings = VADSettings(rms_start_threshold=0.05, rms_end_threshold=0.03)
        state_machine = VadStateMachine.for_energy(settings)
        assert state_machine.start_threshold == 0.05
        assert state_machine.end_threshold == 0.03

    def test_for_blob_size_end_is_80_percent(self) -> None:
        settings = VADSettings(min_blob_size=1000)
        state_machine = VadStateMachine.for_blob_size(settings)
        assert state_machine.start_threshold == 1000.0
        assert state_machine.end_threshold == pytest.approx(800.0)
