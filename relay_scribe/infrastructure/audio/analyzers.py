#!/usr/bin/env python3
"""
Relay Scribe - Audio Analyzers
音声チャンクの特徴量（RMS・ゼロ交差率・チャンクサイズ）を計算するモジュール
"""

from collections import deque
from dataclasses import dataclass

import numpy as np

from relay_scribe.domain import VADSettings


@dataclass(frozen=True)
class FrameFeatures:
    """1フレーム分の特徴量"""

    rms: float  # 振幅の二乗平均平方根（-1.0〜1.0スケール）
    zcr: float  # ゼロ交差率（隣接サンプル間の符号変化の割合）
    duration_sec: float


def decode_pcm16(data: bytes) -> np.ndarray:
    """16bit リトルエンディアン PCM を float32（-1.0〜1.0）に変換"""
    usable = len(data) - len(data) % 2
    samples = np.frombuffer(data[:usable], dtype="<i2")
    return samples.astype(np.float32) / 32768.0


def compute_rms(frame: np.ndarray) -> float:
    if frame.size == 0:
        return 0.0
    return float(np.sqrt(np.mean(np.square(frame, dtype=np.float64))))


def compute_zcr(frame: np.ndarray) -> float:
    if frame.size < 2:
        return 0.0
    signs = np.signbit(frame).astype(np.int8)
    return float(np.count_nonzero(np.diff(signs))) / (frame.size - 1)


class FrameEnergyAnalyzer:
    """
    PCMチャンクをフレームに分割して特徴量を計算

    フレーム長に満たない端数サンプルは次のチャンクに持ち越す。
    """

    def __init__(self, settings: VADSettings) -> None:
        self.settings = settings
        self.frame_size = settings.frame_size
        self._frame_duration = self.frame_size / settings.sample_rate
        self._pending = np.empty(0, dtype=np.float32)

    def analyze(self, data: bytes) -> list[FrameFeatures]:
        """
        チャンクを解析

        Args:
            data: 16bit PCM

        Returns:
            list[FrameFeatures]: 完結したフレームの特徴量
        """
        samples = np.concatenate([self._pending, decode_pcm16(data)])
        frame_count = samples.size // self.frame_size
        usable = frame_count * self.frame_size
        self._pending = samples[usable:]
        if frame_count == 0:
            return []

        return [
            FrameFeatures(
                rms=compute_rms(frame),
                zcr=compute_zcr(frame),
                duration_sec=self._frame_duration,
            )
            for frame in np.split(samples[:usable], frame_count)
        ]

    def is_voiced(self, features: FrameFeatures) -> bool:
        """
        ゼロ交差率による音声/ノイズ判別

        音声のZCRは [zcr_min, zcr_max] に収まる。白色ノイズは高く、低周波ハムは低い。
        """
        if not self.settings.use_zcr:
            return True
        return self.settings.zcr_min <= features.zcr <= self.settings.zcr_max

    def reset(self) -> None:
        self._pending = np.empty(0, dtype=np.float32)


class BlobSizeDetector:
    """
    圧縮チャンクのサイズによる簡易VAD

    無音の圧縮データは小さく、音声は大きい。直近のサイズの移動平均を信号レベルとする。
    """

    def __init__(self, smoothing_window: int) -> None:
        self._sizes: deque[int] = deque(maxlen=max(1, smoothing_window))

    def update(self, size: int) -> float:
        """
        チャンクサイズを追加して移動平均を返す

        Args:
            size: チャンクのバイト数

        Returns:
            float: 直近 smoothing_window 件の平均サイズ
        """
        self._sizes.append(size)
        return sum(self._sizes) / len(self._sizes)

    @property
    def average(self) -> float:
        if not self._sizes:
            return 0.0
        return sum(self._sizes) / len(self._sizes)

    def reset(self) -> None:
        self._sizes.clear()
