#!/usr/bin/env python3
"""
Relay Scribe - Events (Pub/Sub)
ドメイン層: イベント駆動アーキテクチャの中核
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from blinker import Signal

from .models import FanoutResult, RejectReason, SessionStats, TranscriptSegment

# ========================================
# イベント名定数
# ========================================
EVENT_AUDIO_FLUSHED = "audio_flushed"
EVENT_PARTIAL_TEXT_RECEIVED = "partial_text_received"
EVENT_SEGMENT_ACCEPTED = "segment_accepted"
EVENT_SEGMENT_REJECTED = "segment_rejected"
EVENT_TRANSLATIONS_COMPLETED = "translations_completed"
EVENT_SESSION_ENDED = "session_ended"
EVENT_MESSAGE_POSTED = "message_posted"


# ========================================
# イベント型定義
# ========================================


class MessageLevel(str, Enum):
    """メッセージレベル"""

    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


@dataclass(frozen=True)
class AudioFlushedEvent:
    """
    音声バッファ確定イベント

    VoiceActivitySegmenter がフラッシュ条件を満たした際に発行される。
    """

    session_id: str
    audio: bytes  # 連結済み音声データ
    sequence: int  # セッション内のフラッシュ通し番号
    reason: str  # フラッシュ理由（silence / max_buffer / interval / end）
    duration_sec: float


@dataclass(frozen=True)
class PartialTextReceivedEvent:
    """
    途中経過テキストイベント

    isPartial=true の認識結果。UIの「入力中」表示専用で、重複判定・永続化はしない。
    """

    session_id: str
    text: str


@dataclass(frozen=True)
class SegmentAcceptedEvent:
    """セグメント受理イベント"""

    segment: TranscriptSegment
    trimmed_overlap: int  # 先頭から除去した重なり（正規化後の文字数）


@dataclass(frozen=True)
class SegmentRejectedEvent:
    """セグメント棄却イベント"""

    session_id: str
    text: str
    reason: RejectReason


@dataclass(frozen=True)
class TranslationsCompletedEvent:
    """翻訳ファンアウト完了イベント"""

    segment: TranscriptSegment
    result: FanoutResult


@dataclass(frozen=True)
class SessionEndedEvent:
    """セッション終了イベント"""

    session_id: str
    stats: SessionStats
    reason: str = "ended"  # ended / idle


@dataclass(frozen=True)
class MessagePostedEvent:
    """
    メッセージ投稿イベント

    システム状態の変化や運用上の通知を発行する。
    timestampは省略時に自動的に現在時刻が設定される。
    """

    message: str  # 表示するメッセージ
    level: MessageLevel  # メッセージレベル（INFO/SUCCESS/WARNING/ERROR）
    timestamp: datetime = field(
        default_factory=datetime.now
    )  # メッセージタイムスタンプ（省略時は自動設定）


# イベント型のユニオン（型チェック用）
Event = (
    AudioFlushedEvent
    | PartialTextReceivedEvent
    | SegmentAcceptedEvent
    | SegmentRejectedEvent
    | TranslationsCompletedEvent
    | SessionEndedEvent
    | MessagePostedEvent
)


def post_message(sender: object, message: str, level: MessageLevel) -> None:
    """message_posted への送信ショートカット"""
    message_posted.send(sender, event=MessagePostedEvent(message=message, level=level))


# ========================================
# グローバルシグナル定義
# ========================================

# blinkerのSignalはスレッドセーフ
audio_flushed = Signal(EVENT_AUDIO_FLUSHED)  # AudioFlushedEvent
partial_text_received = Signal(EVENT_PARTIAL_TEXT_RECEIVED)  # PartialTextReceivedEvent
segment_accepted = Signal(EVENT_SEGMENT_ACCEPTED)  # SegmentAcceptedEvent
segment_rejected = Signal(EVENT_SEGMENT_REJECTED)  # SegmentRejectedEvent
translations_completed = Signal(EVENT_TRANSLATIONS_COMPLETED)  # TranslationsCompletedEvent
session_ended = Signal(EVENT_SESSION_ENDED)  # SessionEndedEvent
message_posted = Signal(EVENT_MESSAGE_POSTED)  # MessagePostedEvent
