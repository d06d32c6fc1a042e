#!/usr/bin/env python3
"""
Relay Scribe - Domain Models
ドメイン層：ビジネスエンティティとルール（外部依存なし）
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum, StrEnum


class SessionStatus(StrEnum):
    """セッションのライフサイクル状態"""

    ACTIVE = "active"
    ENDED = "ended"


@dataclass
class Session:
    """
    ライブセッション（話者1人・聴衆多数）

    永続的な属性（タイトル、タイムスタンプ等）は外部ストアの責務。
    """

    id: str
    primary_language: str
    target_languages: list[str]
    status: SessionStatus = SessionStatus.ACTIVE
    started_at: datetime = field(default_factory=datetime.now)
    ended_at: datetime | None = None


@dataclass(frozen=True)
class RecentSegment:
    """直近に受理されたセグメント（重複判定用ウィンドウの要素）"""

    text: str
    normalized: str
    normalized_hash: str
    accepted_at: float  # 時計関数の値（秒）


@dataclass(frozen=True)
class SessionStats:
    """セッション終了時の統計"""

    segment_count: int
    hash_set_size: int
    transcript_length: int


@dataclass(frozen=True)
class AudioChunk:
    """
    キャプチャされた音声の断片（永続化しない）

    data はエンコード済みブロブ（blob_sizeモード）または
    16bit リトルエンディアン PCM（energyモード）。
    """

    data: bytes
    captured_at: float  # キャプチャ時刻（秒）
    duration_sec: float  # 公称の長さ（秒）


@dataclass(frozen=True)
class CandidateSegment:
    """認識プロバイダから返された、重複判定前のテキスト"""

    text: str
    confidence: float | None = None
    language: str | None = None


@dataclass(frozen=True)
class TranscriptSegment:
    """
    受理済みのトランスクリプト単位（不変）

    文法補正などの後付け情報は corrected_text として別属性で保持し、
    認識されたテキスト自体は変更しない。
    """

    id: str
    session_id: str
    text: str
    created_at: datetime
    source_language: str
    corrected_text: str | None = None


class TranslationStatus(StrEnum):
    """セグメント単位の翻訳リクエスト状態"""

    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    def can_transition_to(self, target: "TranslationStatus") -> bool:
        """状態遷移が許可されているか"""
        return target in _TRANSLATION_TRANSITIONS[self]


_TRANSLATION_TRANSITIONS: dict[TranslationStatus, frozenset[TranslationStatus]] = {
    TranslationStatus.PENDING: frozenset({TranslationStatus.PROCESSING}),
    TranslationStatus.PROCESSING: frozenset(
        {TranslationStatus.COMPLETED, TranslationStatus.FAILED}
    ),
    TranslationStatus.COMPLETED: frozenset(),
    # 失敗したリクエストはpendingに戻して再試行できる
    TranslationStatus.FAILED: frozenset({TranslationStatus.PENDING}),
}


@dataclass(frozen=True)
class TranslationCacheEntry:
    """
    翻訳キャッシュの1行（挿入のみ、更新しない）

    一意キー: (source_text_normalized, target_language)
    """

    source_text_normalized: str
    target_language: str
    translated_text: str
    engine: str
    quality: float
    created_at: datetime = field(default_factory=datetime.now)
    expires_at: datetime | None = None

    @property
    def key(self) -> tuple[str, str]:
        """キャッシュキー"""
        return (self.source_text_normalized, self.target_language)

    def is_expired(self, now: datetime | None = None) -> bool:
        """有効期限切れかどうか"""
        if self.expires_at is None:
            return False
        return (now or datetime.now()) >= self.expires_at

    @classmethod
    def create(
        cls,
        source_text_normalized: str,
        target_language: str,
        translated_text: str,
        engine: str,
        quality: float,
        ttl_days: int | None = None,
    ) -> "TranslationCacheEntry":
        """TTLから有効期限を計算してエントリを生成"""
        created_at = datetime.now()
        expires_at = created_at + timedelta(days=ttl_days) if ttl_days else None
        return cls(
            source_text_normalized=source_text_normalized,
            target_language=target_language,
            translated_text=translated_text,
            engine=engine,
            quality=quality,
            created_at=created_at,
            expires_at=expires_at,
        )


class RejectReason(StrEnum):
    """重複判定での棄却理由"""

    TOO_SHORT = "too short"
    EXACT_DUPLICATE = "exact duplicate"
    COMPLETE_OVERLAP = "complete overlap"
    NEAR_DUPLICATE = "near-duplicate"
    LOW_QUALITY = "low quality / repetitive"


@dataclass(frozen=True)
class DedupDecision:
    """
    SpeechSegmentDeduper の判定結果

    Attributes:
        accepted: 受理されたか
        cleaned_text: 受理時の整形済みテキスト（先頭の重なりを除去済み）
        reason: 棄却理由（棄却時のみ）
        candidate_hash: 入力テキスト（正規化後）のハッシュ
        trimmed_overlap: 除去した重なりの文字数（正規化後）
    """

    accepted: bool
    cleaned_text: str = ""
    reason: RejectReason | None = None
    candidate_hash: str | None = None
    trimmed_overlap: int = 0

    @classmethod
    def accept(
        cls, cleaned_text: str, candidate_hash: str, trimmed_overlap: int = 0
    ) -> "DedupDecision":
        return cls(
            accepted=True,
            cleaned_text=cleaned_text,
            candidate_hash=candidate_hash,
            trimmed_overlap=trimmed_overlap,
        )

    @classmethod
    def reject(
        cls, reason: RejectReason, candidate_hash: str | None = None
    ) -> "DedupDecision":
        return cls(accepted=False, reason=reason, candidate_hash=candidate_hash)


@dataclass
class FanoutResult:
    """
    翻訳ファンアウトの結果

    失敗した言語は translations に含めず、メタデータとしてのみ報告する。
    """

    translations: dict[str, str] = field(default_factory=dict)
    cached: list[str] = field(default_factory=list)
    generated: list[str] = field(default_factory=list)
    degraded: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    @property
    def status(self) -> TranslationStatus:
        """セグメント単位の最終状態"""
        if self.failed and not self.translations:
            return TranslationStatus.FAILED
        return TranslationStatus.COMPLETED


class SubmitStatus(Enum):
    """SubmitRecognizedText / SubmitAudioChunk の結果種別"""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PARTIAL = "partial"
    BUFFERED = "buffered"
    DROPPED = "dropped"
    SESSION_NOT_FOUND = "session_not_found"


@dataclass
class SubmitResult:
    """パイプライン入口の戻り値"""

    status: SubmitStatus
    cleaned_text: str = ""
    translations: dict[str, str] = field(default_factory=dict)
    reason: str | None = None
    segment: TranscriptSegment | None = None
    fanout: FanoutResult | None = None

    @property
    def accepted(self) -> bool:
        return self.status is SubmitStatus.ACCEPTED


@dataclass(frozen=True)
class EndResult:
    """EndSession の戻り値（見つからない場合 stats は None）"""

    session_id: str
    found: bool
    stats: SessionStats | None = None


@dataclass(frozen=True)
class TranslationLookup:
    """GetTranslation の戻り値"""

    text: str
    target_language: str
    translated_text: str | None
    from_cache: bool
    error: str | None = None
