#!/usr/bin/env python3
"""
Relay Scribe - VAD State Machine Module
VAD（音声活動検出）の状態遷移ロジックを管理するモジュール
"""

from enum import Enum, auto

from relay_scribe.domain import VADSettings


class VadAction(Enum):
    """VAD状態遷移によって発生するアクション"""

    NONE = auto()
    SPEECH_STARTED = auto()
    SPEECH_ENDED = auto()


class VadStateMachine:
    """
    VAD状態遷移を管理するステートマシン

    ヒステリシス制御により発話区間を安定検出:
    - 発話開始: 高い閾値 (start_threshold) で誤検知防止
    - 発話終了: 低い閾値 (end_threshold) を silence_duration_sec 連続で下回った場合のみ
      （短い息継ぎで発話を切らない）

    信号レベルは呼び出し側が決める（PCMのRMS、または圧縮チャンクサイズの移動平均）。
    """

    def __init__(
        self,
        start_threshold: float,
        end_threshold: float,
        min_speech_sec: float,
        silence_duration_sec: float,
    ) -> None:
        self.start_threshold = start_threshold
        self.end_threshold = end_threshold
        self.min_speech_sec = min_speech_sec
        self.silence_duration_sec = silence_duration_sec

        self.is_speaking = False
        self.speech_sec = 0.0
        self.silence_sec = 0.0

    @classmethod
    def for_energy(cls, settings: VADSettings) -> "VadStateMachine":
        """RMSレベル用のステートマシンを生成"""
        return cls(
            start_threshold=settings.rms_start_threshold,
            end_threshold=settings.rms_end_threshold,
            min_speech_sec=settings.min_speech_sec,
            silence_duration_sec=settings.silence_duration_sec,
        )

    @classmethod
    def for_blob_size(cls, settings: VADSettings) -> "VadStateMachine":
        """チャンクサイズ移動平均用のステートマシンを生成（終了閾値は開始の8割）"""
        return cls(
            start_threshold=float(settings.min_blob_size),
            end_threshold=settings.min_blob_size * 0.8,
            min_speech_sec=settings.min_speech_sec,
            silence_duration_sec=settings.silence_duration_sec,
        )

    def process(self, level: float, duration_sec: float, gate: bool = True) -> VadAction:
        """
        信号レベルを処理し、状態遷移に基づくアクションを返す

        Args:
            level: 信号レベル（RMS or 平均チャンクサイズ）
            duration_sec: この観測が表す時間（秒）
            gate: 追加の音声判定（ゼロ交差率など）。Falseなら無音扱い

        Returns:
            VadAction: 実行すべきアクション
        """
        is_speech = gate and self._evaluate_threshold(level)
        if is_speech:
            return self._handle_speech(duration_sec)
        else:
            return self._handle_silence(duration_sec)

    def _evaluate_threshold(self, level: float) -> bool:
        """ヒステリシス制御で閾値を切り替え"""
        if self.is_speaking:
            # 発話中は低い閾値（語尾保護）
            return level >= self.end_threshold
        # 待機中は高い閾値（ノイズ対策）
        return level >= self.start_threshold

    def _handle_speech(self, duration_sec: float) -> VadAction:
        """音声検出時の処理"""
        self.silence_sec = 0.0
        self.speech_sec += duration_sec

        if not self.is_speaking and self.speech_sec >= self.min_speech_sec:
            self.is_speaking = True
            return VadAction.SPEECH_STARTED

        return VadAction.NONE

    def _handle_silence(self, duration_sec: float) -> VadAction:
        """無音検出時の処理"""
        self.speech_sec = 0.0

        if self.is_speaking:
            self.silence_sec += duration_sec
            if self.silence_sec >= self.silence_duration_sec:
                self.reset()
                return VadAction.SPEECH_ENDED

        return VadAction.NONE

    def reset(self) -> None:
        """発話状態をリセット"""
        self.is_speaking = False
        self.silence_sec = 0.0
        self.speech_sec = 0.0
