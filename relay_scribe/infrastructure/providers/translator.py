#!/usr/bin/env python3
"""
Relay Scribe - Translation Providers
テキスト翻訳プロバイダ（LLM / Google Translate）の抽象化
"""

import html
from abc import ABC, abstractmethod
from typing import Any

import requests

from relay_scribe.domain import (
    LLMBackend,
    ProviderError,
    TranslationBackend,
    TranslationSettings,
)
from relay_scribe.domain.constants import GOOGLE_LANGUAGE_CODES

from .llm_client import LLMClient, create_llm_client
from .prompts import TranslationPromptStrategy
from .retry import to_provider_error


class Translator(ABC):
    """
    翻訳プロバイダの抽象基底クラス

    1回の呼び出しで1言語を翻訳する。失敗時は ProviderError を送出する。
    """

    # エンジン名（キャッシュエントリの engine 列・品質スコアの参照に使う）
    engine: str = "unknown"

    @abstractmethod
    def translate(self, text: str, source_language: str | None, target_language: str) -> str:
        """
        テキストを翻訳

        Args:
            text: 原文
            source_language: 原文の言語コード（不明な場合はNone）
            target_language: 翻訳先の言語コード

        Returns:
            str: 翻訳文（プロバイダが処理中の場合はプレースホルダのこともある）

        Raises:
            ProviderError: 翻訳に失敗した場合
        """
        pass


class LLMTranslator(Translator):
    """LLMクライアントによる翻訳"""

    def __init__(
        self,
        llm_client: LLMClient,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> None:
        self.llm_client = llm_client
        self.engine = llm_client.engine
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.prompt_strategy = TranslationPromptStrategy()

    def translate(self, text: str, source_language: str | None, target_language: str) -> str:
        result = self.llm_client(
            system_prompt=self.prompt_strategy.system_prompt,
            user_prompt=self.prompt_strategy.build_user_prompt(
                text, source_language, target_language
            ),
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        if not result:
            raise ProviderError(self.engine, "empty translation response")
        return result


class GoogleTranslator(Translator):
    """
    Google Cloud Translation API (v2) による翻訳

    責務:
    - REST API へのリクエスト送信（requests）
    - HTMLエスケープされた結果の復元
    - HTTP例外の ProviderError への変換
    """

    engine = "google"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        timeout_sec: float,
        session: requests.Session | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.timeout_sec = timeout_sec
        self.session = session or requests.Session()

    def translate(self, text: str, source_language: str | None, target_language: str) -> str:
        payload = {
            "q": text,
            "target": GOOGLE_LANGUAGE_CODES.get(target_language, target_language),
            "format": "text",
        }
        if source_language:
            payload["source"] = GOOGLE_LANGUAGE_CODES.get(source_language, source_language)
        try:
            response = self.session.post(
                self.endpoint,
                params={"key": self.api_key},
                json=payload,
                timeout=self.timeout_sec,
            )
            response.raise_for_status()
            body: Any = response.json()
        except requests.RequestException as exc:
            raise to_provider_error(self.engine, exc) from exc
        except ValueError as exc:
            raise ProviderError(self.engine, f"invalid JSON response: {exc}") from exc

        try:
            translated = body["data"]["translations"][0]["translatedText"]
        except (KeyError, IndexError, TypeError) as exc:
            raise ProviderError(
                self.engine, f"unrecognized response shape: {str(body)[:200]}"
            ) from exc
        return html.unescape(str(translated))


# ========================================
# Factory Function
# ========================================
def create_translator(settings: TranslationSettings) -> Translator:
    """
    設定に基づいて翻訳プロバイダを生成

    Args:
        settings: 翻訳設定

    Returns:
        Translator: 設定されたバックエンドの翻訳プロバイダ

    Raises:
        ProviderError: 必要な認証情報が設定されていない場合
    """
    match settings.backend:
        case TranslationBackend.CLAUDE:
            return LLMTranslator(
                create_llm_client(LLMBackend.CLAUDE, settings),
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
            )
        case TranslationBackend.OPENAI:
            return LLMTranslator(
                create_llm_client(LLMBackend.OPENAI, settings),
                temperature=settings.temperature,
                max_tokens=settings.max_tokens,
            )
        case TranslationBackend.GOOGLE:
            if not settings.google_api_key:
                raise ProviderError("google", "google_api_key is not configured")
            return GoogleTranslator(
                api_key=settings.google_api_key,
                endpoint=settings.google_endpoint,
                timeout_sec=settings.timeout_sec,
            )
        case _:
            raise ValueError(f"Invalid translation.backend: '{settings.backend}'")
