#!/usr/bin/env python3
"""
Relay Scribe - Voice Activity Segmenter
音声チャンクをバッファリングし、認識に送るタイミング（フラッシュ）を決めるモジュール
"""

from dataclasses import dataclass
from enum import StrEnum

from relay_scribe.domain import AudioChunk, VADSettings, VadMode

from .analyzers import BlobSizeDetector, FrameEnergyAnalyzer
from .vad_state_machine import VadAction, VadStateMachine


class FlushReason(StrEnum):
    """フラッシュ理由"""

    SILENCE = "silence"  # 発話後の無音が続いた
    MAX_BUFFER = "max_buffer"  # バッファ上限（時間・サイズ）
    INTERVAL = "interval"  # 定期フラッシュ（息継ぎのない長文）
    END = "end"  # セッション終了時の残り


@dataclass(frozen=True)
class FlushedAudio:
    """認識に送る連結済み音声"""

    audio: bytes
    reason: FlushReason
    duration_sec: float
    chunk_count: int
    started_at: float  # 先頭チャンクのキャプチャ時刻


@dataclass(frozen=True)
class _BufferedChunk:
    data: bytes
    duration_sec: float
    captured_at: float


class VoiceActivitySegmenter:
    """
    音声区間検出とフラッシュ判定（1セッションにつき1インスタンス）

    機能:
    - エネルギー方式（PCMのRMS + ゼロ交差率）とチャンクサイズ方式の切り替え
    - 発話前の音声をプリロールとして overlap_sec 分だけ保持
    - 無音・バッファ上限・定期間隔の3条件でフラッシュ
    - 発話途中のフラッシュでは末尾 overlap_sec 分を次のバッファに持ち越す
      （持ち越しで生じるテキストの重なりは SpeechSegmentDeduper が除去する）

    Note:
    - スレッドセーフではない。呼び出し側がセッション単位で直列化すること
    """

    def __init__(self, settings: VADSettings) -> None:
        self.settings = settings

        if settings.mode is VadMode.ENERGY:
            self.state_machine = VadStateMachine.for_energy(settings)
        else:
            self.state_machine = VadStateMachine.for_blob_size(settings)
        self.energy_analyzer = FrameEnergyAnalyzer(settings)
        self.blob_detector = BlobSizeDetector(settings.blob_smoothing_window)

        self._buffer: list[_BufferedChunk] = []
        self._has_speech = False

    # ========== 状態 ==========

    @property
    def is_speaking(self) -> bool:
        return self.state_machine.is_speaking

    @property
    def buffered_sec(self) -> float:
        return sum(chunk.duration_sec for chunk in self._buffer)

    @property
    def buffered_bytes(self) -> int:
        return sum(len(chunk.data) for chunk in self._buffer)

    # ========== 入力 ==========

    def push(self, chunk: AudioChunk) -> FlushedAudio | None:
        """
        チャンクを追加し、フラッシュ条件を満たせば連結済み音声を返す

        Args:
            chunk: キャプチャされた音声チャンク

        Returns:
            FlushedAudio | None: フラッシュした場合は連結済み音声
        """
        duration = self._chunk_duration(chunk)
        action = self._detect(chunk.data, duration)

        self._buffer.append(
            _BufferedChunk(
                data=chunk.data, duration_sec=duration, captured_at=chunk.captured_at
            )
        )
        if self.state_machine.is_speaking or action is VadAction.SPEECH_ENDED:
            self._has_speech = True

        if action is VadAction.SPEECH_ENDED:
            return self._flush(FlushReason.SILENCE, keep_overlap=False)

        if not self._has_speech:
            # 発話前はプリロール分だけ保持
            self._buffer = self._overlap_tail()
            return None

        if (
            self.buffered_sec >= self.settings.max_buffer_sec
            or self.buffered_bytes >= self.settings.max_buffer_bytes
        ):
            return self._flush(FlushReason.MAX_BUFFER, keep_overlap=True)

        elapsed = chunk.captured_at + duration - self._buffer[0].captured_at
        if (
            elapsed >= self.settings.flush_interval_sec
            and self.buffered_sec >= self.settings.min_flush_sec
        ):
            return self._flush(FlushReason.INTERVAL, keep_overlap=True)

        return None

    def flush(self) -> FlushedAudio | None:
        """
        残りのバッファを強制的にフラッシュ（セッション終了時）

        発話を含まないバッファは破棄してNoneを返す。
        """
        result = None
        if self._has_speech or self.state_machine.is_speaking:
            result = self._flush(FlushReason.END, keep_overlap=False)
        self.reset()
        return result

    def reset(self) -> None:
        """全状態をリセット"""
        self._buffer = []
        self._has_speech = False
        self.state_machine.reset()
        self.energy_analyzer.reset()
        self.blob_detector.reset()

    # ========== 内部処理 ==========

    def _chunk_duration(self, chunk: AudioChunk) -> float:
        """チャンクの長さ（公称値がなければPCMサイズ or 既定値から推定）"""
        if chunk.duration_sec > 0:
            return chunk.duration_sec
        if self.settings.mode is VadMode.ENERGY:
            return len(chunk.data) / 2 / self.settings.sample_rate
        return self.settings.blob_chunk_sec

    def _detect(self, data: bytes, duration: float) -> VadAction:
        """
        信号レベルをステートマシンに入力

        1チャンク内で複数の遷移が起きた場合は発話終了を優先する。
        """
        if self.settings.mode is VadMode.BLOB_SIZE:
            level = self.blob_detector.update(len(data))
            return self.state_machine.process(level, duration)

        actions = [
            self.state_machine.process(
                features.rms,
                features.duration_sec,
                gate=self.energy_analyzer.is_voiced(features),
            )
            for features in self.energy_analyzer.analyze(data)
        ]
        if VadAction.SPEECH_ENDED in actions:
            return VadAction.SPEECH_ENDED
        if VadAction.SPEECH_STARTED in actions:
            return VadAction.SPEECH_STARTED
        return VadAction.NONE

    def _flush(self, reason: FlushReason, keep_overlap: bool) -> FlushedAudio | None:
        """バッファを連結して返し、必要なら末尾を持ち越す"""
        if not self._buffer:
            return None

        result = FlushedAudio(
            audio=b"".join(chunk.data for chunk in self._buffer),
            reason=reason,
            duration_sec=self.buffered_sec,
            chunk_count=len(self._buffer),
            started_at=self._buffer[0].captured_at,
        )
        self._buffer = self._overlap_tail() if keep_overlap else []
        self._has_speech = False
        return result

    def _overlap_tail(self) -> list[_BufferedChunk]:
        """末尾から overlap_sec 分のチャンク（境界をまたぐチャンクは含める）"""
        if self.settings.overlap_sec <= 0:
            return []

        tail: list[_BufferedChunk] = []
        total = 0.0
        for chunk in reversed(self._buffer):
            if total >= self.settings.overlap_sec:
                break
            tail.append(chunk)
            total += chunk.duration_sec
        tail.reverse()
        return tail
