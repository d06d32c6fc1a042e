#!/usr/bin/env python3
"""
Relay Scribe - Audio Infrastructure
音声区間検出とフラッシュ判定
"""

# 特徴量
from .analyzers import BlobSizeDetector, FrameEnergyAnalyzer, FrameFeatures

# VADコンポーネント
from .vad_state_machine import VadAction, VadStateMachine

# セグメンタ
from .segmenter import FlushedAudio, FlushReason, VoiceActivitySegmenter

__all__ = [
    # 特徴量
    "BlobSizeDetector",
    "FrameEnergyAnalyzer",
    "FrameFeatures",
    # VAD
    "VadAction",
    "VadStateMachine",
    # セグメンタ
    "FlushedAudio",
    "FlushReason",
    "VoiceActivitySegmenter",
]
