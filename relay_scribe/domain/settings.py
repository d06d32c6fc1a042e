#!/usr/bin/env python3
"""
Relay Scribe - Settings Schema
設定のスキーマ定義（Pydanticモデル）
"""

from enum import StrEnum
from pathlib import Path

from pydantic import Field, computed_field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing_extensions import Self


# ========================================
# Session Configuration
# ========================================
class SessionSettings(BaseSettings):
    """セッション作業状態の上限とライフサイクル設定"""

    max_recent_segments: int = Field(
        default=50,
        description="直近セグメントウィンドウの最大件数",
    )
    max_segment_age_sec: float = Field(
        default=300.0,
        description="直近セグメントウィンドウの最大保持時間（秒） - 5分",
    )
    max_seen_hashes: int = Field(
        default=200,
        description="既出ハッシュ集合の最大サイズ（超過時は古い順に削除）",
    )
    idle_timeout_sec: float = Field(
        default=1800.0,
        description="アイドルセッションを自動終了するまでの時間（秒）",
    )
    reaper_interval_sec: float = Field(
        default=60.0,
        description="アイドルセッション回収スレッドの実行間隔（秒）",
    )
    commit_wait_timeout_sec: float = Field(
        default=60.0,
        description="先行フラッシュの確定を待つ最大時間（秒）",
    )


# ========================================
# Dedup Configuration
# ========================================
class SimilarityMetric(StrEnum):
    """類似度指標"""

    JACCARD = "jaccard"
    LEVENSHTEIN = "levenshtein"


class WindowPolicy(StrEnum):
    """類似度比較ウィンドウの絞り込み方針"""

    ALL = "all"  # 直近N件すべて（緩い方針）
    RECENT = "recent"  # 直近N件のうち recent_window_sec 以内のみ（厳しい方針）


class DedupSettings(BaseSettings):
    """重複・重なり判定設定"""

    min_normalized_length: int = Field(
        default=2,
        description="正規化後の最小文字数（未満は too short）",
    )
    min_overlap_chars: int = Field(
        default=3,
        description="先頭の重なりとみなす最小文字数",
    )
    similarity_metric: SimilarityMetric = Field(
        default=SimilarityMetric.JACCARD,
        description="類似度指標 - jaccard（単語集合）または levenshtein（編集距離比）",
    )
    similarity_threshold: float = Field(
        default=0.8,
        description="類似度閾値 - この値を超えた場合のみ near-duplicate（等しい場合は受理）",
    )
    similarity_window: int = Field(
        default=10,
        description="類似度を比較する直近セグメント数",
    )
    window_policy: WindowPolicy = Field(
        default=WindowPolicy.ALL,
        description="比較ウィンドウの方針 - all または recent",
    )
    recent_window_sec: float = Field(
        default=10.0,
        description="recent方針で比較対象とする経過時間（秒）",
    )
    substring_min_length: int = Field(
        default=10,
        description="部分文字列判定で短い側がこの長さを超える場合に near-duplicate",
    )
    min_unique_word_ratio: float = Field(
        default=0.3,
        description="ユニーク単語比率の下限（未満は low quality）",
    )
    repetition_min_words: int = Field(
        default=5,
        description="繰り返し判定を行う単語数（この数を超える場合のみ判定）",
    )


# ========================================
# VAD Configuration
# ========================================
class VadMode(StrEnum):
    """VADの信号源"""

    ENERGY = "energy"  # PCMフレームのRMS/ZCR
    BLOB_SIZE = "blob_size"  # 圧縮チャンクのサイズ


class VADSettings(BaseSettings):
    """音声区間検出とフラッシュ条件の設定"""

    mode: VadMode = Field(
        default=VadMode.BLOB_SIZE,
        description="VADモード - energy（PCM）または blob_size（MediaRecorder等の圧縮チャンク）",
    )
    sample_rate: int = Field(
        default=16000,
        description="PCMサンプルレート（Hz）",
    )
    frame_ms: int = Field(
        default=32,
        description="エネルギー解析フレーム長（ミリ秒）",
    )
    rms_start_threshold: float = Field(
        default=0.02,
        description="発話開始とみなすRMS（高め=誤検知防止）",
    )
    rms_end_threshold: float = Field(
        default=0.015,
        description="発話継続とみなすRMS（低め=語尾切れ防止）",
    )
    use_zcr: bool = Field(
        default=True,
        description="ゼロ交差率で音声/ノイズを判別するか",
    )
    zcr_min: float = Field(
        default=0.01,
        description="音声とみなすゼロ交差率の下限",
    )
    zcr_max: float = Field(
        default=0.3,
        description="音声とみなすゼロ交差率の上限",
    )
    min_speech_sec: float = Field(
        default=0.1,
        description="発話開始と判定するまでの最小連続音声時間（秒）",
    )
    silence_duration_sec: float = Field(
        default=1.5,
        description="発話終了と判定する連続無音時間（秒）",
    )
    blob_smoothing_window: int = Field(
        default=5,
        description="チャンクサイズ移動平均の窓幅",
    )
    min_blob_size: int = Field(
        default=1000,
        description="音声とみなす平均チャンクサイズ（バイト）",
    )
    blob_chunk_sec: float = Field(
        default=0.5,
        description="チャンクの公称長（秒） - 長さ不明のチャンクに適用",
    )
    max_buffer_sec: float = Field(
        default=15.0,
        description="バッファの最大長（秒） - 超過時は無音を待たずにフラッシュ",
    )
    max_buffer_bytes: int = Field(
        default=2_000_000,
        description="バッファの最大サイズ（バイト）",
    )
    flush_interval_sec: float = Field(
        default=8.0,
        description="定期フラッシュ間隔（秒） - 息継ぎのない長文対策",
    )
    min_flush_sec: float = Field(
        default=1.0,
        description="定期フラッシュに必要な最小バッファ長（秒）",
    )
    overlap_sec: float = Field(
        default=1.0,
        description="次のバッファに持ち越す音声の長さ（秒） - 境界の単語欠落対策",
    )
    min_audio_bytes: int = Field(
        default=2000,
        description="認識に送る最小音声サイズ（バイト） - 未満は無音とみなす",
    )
    max_audio_bytes: int = Field(
        default=25 * 1024 * 1024,
        description="認識に送る最大音声サイズ（バイト）",
    )

    @computed_field  # type: ignore[prop-decorator]
    @property
    def frame_size(self) -> int:
        """フレームサイズ（サンプル数）"""
        return int(self.sample_rate * self.frame_ms / 1000)


# ========================================
# Provider Configuration
# ========================================
class LLMBackend(StrEnum):
    """LLMバックエンドの種類"""

    CLAUDE = "claude"
    OPENAI = "openai"


class TranslationBackend(StrEnum):
    """翻訳バックエンドの種類"""

    CLAUDE = "claude"
    OPENAI = "openai"
    GOOGLE = "google"


class RecognitionSettings(BaseSettings):
    """音声認識プロバイダ設定"""

    enabled: bool = Field(
        default=False,
        description="音声認識の有効/無効（無効時は SubmitRecognizedText のみ使用）",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI APIキー",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="OpenAI互換サーバのベースURL",
    )
    model: str = Field(
        default="whisper-1",
        description="音声認識モデル名",
    )
    timeout_sec: float = Field(
        default=30.0,
        description="1回の呼び出しのタイムアウト（秒）",
    )
    max_attempts: int = Field(
        default=3,
        description="一時的な失敗時の最大試行回数",
    )

    @model_validator(mode="after")
    def validate_credentials(self) -> Self:
        """有効時にAPIキーを要求"""
        if self.enabled and not self.openai_api_key:
            raise ValueError("recognition.openai_api_key is required when enabled")
        return self


class TranslationSettings(BaseSettings):
    """翻訳ファンアウト設定"""

    enabled: bool = Field(
        default=False,
        description="翻訳プロバイダを設定から生成するか",
    )
    backend: TranslationBackend = Field(
        default=TranslationBackend.OPENAI,
        description="翻訳バックエンド - claude / openai / google",
    )
    anthropic_api_key: str | None = Field(
        default=None,
        description="Anthropic APIキー - backend='claude' の場合に必要",
    )
    claude_model: str = Field(
        default="claude-haiku-4-5-20251001",
        description="Claude APIモデル名",
    )
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI APIキー - backend='openai' の場合に必要（base_url指定時は任意）",
    )
    openai_base_url: str | None = Field(
        default=None,
        description="OpenAI互換サーバのベースURL（例: http://localhost:8000/v1）",
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI互換APIのモデル名",
    )
    google_api_key: str | None = Field(
        default=None,
        description="Google Translate APIキー - backend='google' の場合に必要",
    )
    google_endpoint: str = Field(
        default="https://translation.googleapis.com/language/translate/v2",
        description="Google Translate v2 エンドポイント",
    )
    timeout_sec: float = Field(
        default=20.0,
        description="1回の呼び出しのタイムアウト（秒）",
    )
    max_parallel: int = Field(
        default=3,
        description="同時に生成する言語数の上限（レート制限対策）",
    )
    temperature: float = Field(
        default=0.3,
        description="LLM翻訳の温度",
    )
    max_tokens: int = Field(
        default=500,
        description="LLM翻訳の最大トークン数",
    )
    max_attempts: int = Field(
        default=4,
        description="処理中プレースホルダ・一時的失敗の最大試行回数",
    )
    base_delay_sec: float = Field(
        default=0.5,
        description="再試行の初回待機（秒）",
    )
    max_delay_sec: float = Field(
        default=4.0,
        description="再試行待機の上限（秒）",
    )
    jitter_sec: float = Field(
        default=0.1,
        description="再試行待機に加えるジッタの上限（秒）",
    )
    total_budget_sec: float = Field(
        default=8.0,
        description="1言語あたりの再試行を含む総時間予算（秒）",
    )
    default_target_languages: list[str] = Field(
        default=["ko", "zh", "hi"],
        description="セッション開始時に指定がない場合の翻訳先言語",
    )
    cache_ttl_days: dict[str, int] = Field(
        default={"gpt": 30, "claude": 30, "google": 14},
        description="エンジン別キャッシュ保持日数",
    )

    @model_validator(mode="after")
    def validate_backend_config(self) -> Self:
        """バックエンド固有の必須設定を検証"""
        if not self.enabled:
            return self

        if self.backend == TranslationBackend.CLAUDE:
            if not self.anthropic_api_key:
                raise ValueError(
                    "translation.anthropic_api_key is required when backend='claude'"
                )
        elif self.backend == TranslationBackend.OPENAI:
            if not self.openai_api_key and not self.openai_base_url:
                raise ValueError(
                    "translation.openai_api_key or translation.openai_base_url "
                    "is required when backend='openai'"
                )
        elif self.backend == TranslationBackend.GOOGLE:
            if not self.google_api_key:
                raise ValueError(
                    "translation.google_api_key is required when backend='google'"
                )

        return self


class ReviewSettings(BaseSettings):
    """受理セグメントの文法レビュー設定"""

    enabled: bool = Field(
        default=False,
        description="文法レビューの有効/無効",
    )
    backend: LLMBackend = Field(
        default=LLMBackend.OPENAI,
        description="レビューに使うLLMバックエンド",
    )
    temperature: float = Field(
        default=0.1,
        description="レビューの温度（低め=一貫性重視）",
    )
    max_tokens: int = Field(
        default=1000,
        description="レビューの最大トークン数",
    )


# ========================================
# Persistence Configuration
# ========================================
class PersistenceBackend(StrEnum):
    """永続化バックエンドの種類"""

    MEMORY = "memory"
    SQLITE = "sqlite"


class PersistenceSettings(BaseSettings):
    """永続化設定"""

    backend: PersistenceBackend = Field(
        default=PersistenceBackend.MEMORY,
        description="永続化バックエンド - memory または sqlite",
    )
    database_path: Path = Field(
        default=Path("relay_scribe.db"),
        description="SQLiteデータベースのパス",
    )


# ========================================
# Application Configuration
# ========================================
class AppSettings(BaseSettings):
    """アプリケーション全体設定"""

    save_json: bool = Field(
        default=False,
        description="セッション終了時にJSON形式で保存するかどうか",
    )
    export_dir: Path = Field(
        default=Path("."),
        description="JSON出力先ディレクトリ",
    )
    log_level: str = Field(
        default="INFO",
        description="ログレベル",
    )
    max_log_text_length: int = Field(
        default=50,
        description="ログに出すテキストの最大文字数",
    )


# ========================================
# Main Settings Class
# ========================================
class Settings(BaseSettings):
    """
    Relay Scribe全体設定

    設定の読み込み優先順位（後勝ち）:
    1. デフォルト値（各Settingsクラス内）
    2. 環境変数（RELAY_SCRIBE_ 接頭辞、ネストは __ 区切り）
    3. config.toml / config.local.toml（プロジェクトルート、初期化引数として渡す）
    """

    model_config = SettingsConfigDict(
        env_prefix="RELAY_SCRIBE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    session: SessionSettings = Field(default_factory=SessionSettings)
    dedup: DedupSettings = Field(default_factory=DedupSettings)
    vad: VADSettings = Field(default_factory=VADSettings)
    recognition: RecognitionSettings = Field(default_factory=RecognitionSettings)
    translation: TranslationSettings = Field(default_factory=TranslationSettings)
    review: ReviewSettings = Field(default_factory=ReviewSettings)
    persistence: PersistenceSettings = Field(default_factory=PersistenceSettings)
    app: AppSettings = Field(default_factory=AppSettings)
