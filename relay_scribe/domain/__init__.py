#!/usr/bin/env python3
"""
Relay Scribe - Domain Layer
ドメイン層：エンティティ、エラー分類、イベント、設定
"""

# モデルとデータ構造
from .models import (
    AudioChunk,
    CandidateSegment,
    DedupDecision,
    EndResult,
    FanoutResult,
    RecentSegment,
    RejectReason,
    Session,
    SessionStats,
    SessionStatus,
    SubmitResult,
    SubmitStatus,
    TranscriptSegment,
    TranslationCacheEntry,
    TranslationLookup,
    TranslationStatus,
)

# エラー分類
from .errors import (
    InputRejected,
    PersistenceError,
    ProviderError,
    RelayScribeError,
    SessionNotFound,
)

# イベント（Pub/Sub）
from .events import (
    AudioFlushedEvent,
    MessageLevel,
    MessagePostedEvent,
    PartialTextReceivedEvent,
    SegmentAcceptedEvent,
    SegmentRejectedEvent,
    SessionEndedEvent,
    TranslationsCompletedEvent,
    audio_flushed,
    message_posted,
    partial_text_received,
    post_message,
    segment_accepted,
    segment_rejected,
    session_ended,
    translations_completed,
)

# 設定スキーマ（Pydantic）
from .settings import (
    AppSettings,
    DedupSettings,
    LLMBackend,
    PersistenceBackend,
    PersistenceSettings,
    RecognitionSettings,
    ReviewSettings,
    SessionSettings,
    Settings,
    SimilarityMetric,
    TranslationBackend,
    TranslationSettings,
    VADSettings,
    VadMode,
    WindowPolicy,
)

__all__ = [
    # モデル
    "AudioChunk",
    "CandidateSegment",
    "DedupDecision",
    "EndResult",
    "FanoutResult",
    "RecentSegment",
    "RejectReason",
    "Session",
    "SessionStats",
    "SessionStatus",
    "SubmitResult",
    "SubmitStatus",
    "TranscriptSegment",
    "TranslationCacheEntry",
    "TranslationLookup",
    "TranslationStatus",
    # エラー
    "InputRejected",
    "PersistenceError",
    "ProviderError",
    "RelayScribeError",
    "SessionNotFound",
    # イベント
    "AudioFlushedEvent",
    "MessageLevel",
    "MessagePostedEvent",
    "PartialTextReceivedEvent",
    "SegmentAcceptedEvent",
    "SegmentRejectedEvent",
    "SessionEndedEvent",
    "TranslationsCompletedEvent",
    "audio_flushed",
    "message_posted",
    "partial_text_received",
    "post_message",
    "segment_accepted",
    "segment_rejected",
    "session_ended",
    "translations_completed",
    # 設定
    "AppSettings",
    "DedupSettings",
    "LLMBackend",
    "PersistenceBackend",
    "PersistenceSettings",
    "RecognitionSettings",
    "ReviewSettings",
    "SessionSettings",
    "Settings",
    "SimilarityMetric",
    "TranslationBackend",
    "TranslationSettings",
    "VADSettings",
    "VadMode",
    "WindowPolicy",
]
