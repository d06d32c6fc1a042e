#!/usr/bin/env python3
"""
Relay Scribe - Speech Recognition Providers
音声認識プロバイダの抽象化とレスポンスの正規デコード
"""

import io
import math
import wave
from abc import ABC, abstractmethod
from typing import Any

from openai import OpenAI
from pydantic import BaseModel, ConfigDict, ValidationError

from relay_scribe.domain import (
    CandidateSegment,
    MessageLevel,
    ProviderError,
    RecognitionSettings,
    post_message,
)

from .retry import to_provider_error


# ========================================
# レスポンス形式（既知の形のみ）
# ========================================
class WhisperSegmentPayload(BaseModel):
    """Whisper verbose_json のセグメント"""

    model_config = ConfigDict(extra="ignore")

    text: str = ""
    avg_logprob: float | None = None


class WhisperVerbosePayload(BaseModel):
    """Whisper verbose_json 形式"""

    model_config = ConfigDict(extra="ignore")

    text: str
    language: str | None = None
    segments: list[WhisperSegmentPayload]


class TranscriptPayload(BaseModel):
    """{transcript, confidence} 形式（Google STT 等）"""

    model_config = ConfigDict(extra="ignore")

    transcript: str
    confidence: float | None = None
    language: str | None = None


class PlainTextPayload(BaseModel):
    """{text} のみの形式（response_format=json）"""

    model_config = ConfigDict(extra="ignore")

    text: str
    language: str | None = None


def _to_mapping(payload: Any) -> dict[str, Any] | None:
    """SDKオブジェクト・辞書を辞書に揃える"""
    if isinstance(payload, dict):
        return payload
    if hasattr(payload, "model_dump"):
        dumped = payload.model_dump()
        if isinstance(dumped, dict):
            return dumped
    return None


def decode_recognition_response(payload: Any, provider: str = "recognition") -> CandidateSegment:
    """
    認識プロバイダのレスポンスを CandidateSegment にデコード

    既知の形を順に試し、最初に検証を通ったものを採用する。
    Whisper形式の信頼度はセグメントの avg_logprob 平均の exp とする。

    Args:
        payload: SDKオブジェクト・辞書・文字列（response_format=text）
        provider: エラーに記録するプロバイダ名

    Returns:
        CandidateSegment: 認識テキストと信頼度

    Raises:
        ProviderError: 未知の形の場合
    """
    if isinstance(payload, str):
        return CandidateSegment(text=payload.strip())

    data = _to_mapping(payload)
    if data is None:
        raise _unrecognized(provider, payload)

    try:
        verbose = WhisperVerbosePayload.model_validate(data)
    except ValidationError:
        pass
    else:
        logprobs = [s.avg_logprob for s in verbose.segments if s.avg_logprob is not None]
        confidence = math.exp(sum(logprobs) / len(logprobs)) if logprobs else None
        return CandidateSegment(
            text=verbose.text.strip(), confidence=confidence, language=verbose.language
        )

    try:
        transcript = TranscriptPayload.model_validate(data)
    except ValidationError:
        pass
    else:
        return CandidateSegment(
            text=transcript.transcript.strip(),
            confidence=transcript.confidence,
            language=transcript.language,
        )

    try:
        plain = PlainTextPayload.model_validate(data)
    except ValidationError:
        raise _unrecognized(provider, payload) from None
    return CandidateSegment(text=plain.text.strip(), language=plain.language)


def _unrecognized(provider: str, payload: Any) -> ProviderError:
    post_message(
        None,
        f"Unrecognized recognition response: {str(payload)[:200]}",
        MessageLevel.ERROR,
    )
    return ProviderError(provider, f"unrecognized response shape: {type(payload).__name__}")


def pcm16_to_wav(data: bytes, sample_rate: int) -> bytes:
    """16bit モノラル PCM を WAV コンテナに包む"""
    buffer = io.BytesIO()
    with wave.open(buffer, "wb") as wav_file:
        wav_file.setnchannels(1)
        wav_file.setsampwidth(2)
        wav_file.setframerate(sample_rate)
        wav_file.writeframes(data)
    return buffer.getvalue()


class Recognizer(ABC):
    """
    音声認識プロバイダの抽象基底クラス

    音声を送り、認識テキストを受け取る（1回の要求・応答）。
    """

    @abstractmethod
    def transcribe(self, audio: bytes, language_hint: str | None = None) -> CandidateSegment:
        """
        音声を認識

        Args:
            audio: 連結済み音声データ
            language_hint: 話者の言語コード

        Returns:
            CandidateSegment: 認識テキストと信頼度

        Raises:
            ProviderError: クォータ・形式・タイムアウト等で失敗した場合
        """
        pass


class OpenAIRecognizer(Recognizer):
    """
    OpenAI Audio Transcriptions API（Whisper）による音声認識

    責務:
    - 音声をファイルとしてアップロード（PCMはWAVに包む）
    - verbose_json レスポンスの正規デコード
    - SDK例外の ProviderError への変換
    """

    provider = "whisper"

    def __init__(
        self,
        settings: RecognitionSettings,
        audio_format: str = "webm",
        sample_rate: int = 16000,
        client: Any | None = None,
    ) -> None:
        """
        Args:
            settings: 音声認識設定
            audio_format: 入力音声の形式（"pcm16" の場合はWAVに変換して送信）
            sample_rate: PCMのサンプルレート
            client: 注入するSDKクライアント（テスト用）
        """
        self.settings = settings
        self.audio_format = audio_format
        self.sample_rate = sample_rate
        if client is None:
            client = OpenAI(
                api_key=settings.openai_api_key,
                base_url=settings.openai_base_url,
                timeout=settings.timeout_sec,
            )
        self.client = client

    def transcribe(self, audio: bytes, language_hint: str | None = None) -> CandidateSegment:
        if self.audio_format == "pcm16":
            upload = io.BytesIO(pcm16_to_wav(audio, self.sample_rate))
            upload.name = "audio.wav"
        else:
            upload = io.BytesIO(audio)
            upload.name = f"audio.{self.audio_format}"

        kwargs: dict[str, Any] = {
            "model": self.settings.model,
            "file": upload,
            "response_format": "verbose_json",
        }
        if language_hint:
            kwargs["language"] = language_hint

        try:
            response = self.client.audio.transcriptions.create(**kwargs)
        except Exception as exc:
            raise to_provider_error(self.provider, exc) from exc

        return decode_recognition_response(response, provider=self.provider)
