#!/usr/bin/env python3
"""
Relay Scribe - LLM Clients Module
LLMクライアントの抽象化とアダプタパターンを提供するモジュール
"""

import re
from abc import ABC, abstractmethod
from typing import Any

from anthropic import Anthropic
from anthropic.types import TextBlock
from openai import OpenAI

from relay_scribe.domain import LLMBackend, ProviderError, TranslationSettings

from .retry import to_provider_error

# <think>...</think> タグ削除用の事前コンパイル済み正規表現
_THINK_TAG_PATTERN = re.compile(r"<think>.*?</think>", re.DOTALL | re.IGNORECASE)
# 全体を囲む引用符
_QUOTE_PAIRS = (('"', '"'), ("'", "'"), ("“", "”"), ("「", "」"))


def clean_llm_output(text: str) -> str:
    """
    LLM出力から思考過程と囲み引用符を除去

    Examples:
        >>> clean_llm_output('<think>hmm</think>\\n"안녕하세요"')
        '안녕하세요'
    """
    cleaned = _THINK_TAG_PATTERN.sub("", text).strip()
    for opening, closing in _QUOTE_PAIRS:
        if len(cleaned) >= 2 and cleaned.startswith(opening) and cleaned.endswith(closing):
            return cleaned[len(opening) : -len(closing)].strip()
    return cleaned


class LLMClient(ABC):
    """
    LLMクライアントの抽象基底クラス

    テキスト生成APIへのインターフェースを統一し、
    異なるLLMプロバイダ（Claude、OpenAIなど）を
    同じインターフェースで扱えるようにする。
    """

    # エンジン名（キャッシュエントリの engine 列に記録）
    engine: str = "llm"

    @abstractmethod
    def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str | None:
        """
        LLM APIでテキストを生成

        Args:
            system_prompt: システムプロンプト
            user_prompt: ユーザープロンプト
            temperature: 生成の確率性（0.0=決定論的、1.0=最大ランダム性）
                Noneの場合は指定しない（各LLMのデフォルト値を使用）
            max_tokens: 最大トークン数

        Returns:
            str | None: 生成されたテキスト（思考過程除去済み） or None

        Raises:
            ProviderError: API呼び出しエラー
        """
        pass

    @abstractmethod
    def get_backend_info(self) -> str:
        """
        使用しているLLMバックエンドの情報を返す

        Returns:
            str: バックエンド情報（例: "Claude (claude-haiku-4-5-20251001)"）
        """
        pass


class ClaudeClient(LLMClient):
    """
    Claude APIクライアント

    責務:
    - Claude APIへのリクエスト送信
    - レスポンスのパース
    - SDK例外の ProviderError への変換
    """

    engine = "claude"

    def __init__(self, settings: TranslationSettings, client: Any | None = None) -> None:
        """
        Args:
            settings: 翻訳設定（APIキー、モデル名、最大トークン数など）
            client: 注入するSDKクライアント（テスト用）
        """
        self.settings = settings
        if client is None:
            # 設定検証済みのため、anthropic_api_keyは必ず存在する
            assert settings.anthropic_api_key is not None
            client = Anthropic(
                api_key=settings.anthropic_api_key, timeout=settings.timeout_sec
            )
        self.client = client

    def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str | None:
        # API呼び出しパラメータを構築（Noneは除外）
        kwargs: dict[str, Any] = {
            "model": self.settings.claude_model,
            "max_tokens": max_tokens or self.settings.max_tokens,
            "system": system_prompt,
            "messages": [{"role": "user", "content": user_prompt}],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            message = self.client.messages.create(**kwargs)
        except Exception as exc:
            raise to_provider_error(self.engine, exc) from exc

        # TextBlockの場合のみtextを取得
        if message.content and (first_block := message.content[0]):
            if isinstance(first_block, TextBlock):
                return clean_llm_output(first_block.text)
        return None

    def get_backend_info(self) -> str:
        return f"Claude ({self.settings.claude_model})"


class OpenAIClient(LLMClient):
    """
    OpenAI（および互換サーバ）APIクライアント

    責務:
    - Chat Completions APIへのリクエスト送信
    - レスポンスのパース（<think>タグ等の思考過程を除外）
    - SDK例外の ProviderError への変換
    """

    engine = "gpt"

    def __init__(self, settings: TranslationSettings, client: Any | None = None) -> None:
        """
        Args:
            settings: 翻訳設定（APIキー、ベースURL、モデル名など）
            client: 注入するSDKクライアント（テスト用）
        """
        self.settings = settings
        if client is None:
            client = OpenAI(
                api_key=settings.openai_api_key or "EMPTY",
                base_url=settings.openai_base_url,
                timeout=settings.timeout_sec,
            )
        self.client = client

    def __call__(
        self,
        system_prompt: str,
        user_prompt: str,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> str | None:
        kwargs: dict[str, Any] = {
            "model": self.settings.openai_model,
            "max_tokens": max_tokens or self.settings.max_tokens,
            "messages": [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature

        try:
            response = self.client.chat.completions.create(**kwargs)
        except Exception as exc:
            raise to_provider_error(self.engine, exc) from exc

        if response.choices and (content := response.choices[0].message.content):
            return clean_llm_output(content)
        return None

    def get_backend_info(self) -> str:
        if self.settings.openai_base_url:
            return f"OpenAI ({self.settings.openai_model} @ {self.settings.openai_base_url})"
        return f"OpenAI ({self.settings.openai_model})"


# ========================================
# Factory Function
# ========================================
def create_llm_client(backend: LLMBackend, settings: TranslationSettings) -> LLMClient:
    """
    設定に基づいてLLMクライアントを生成

    Args:
        backend: LLMバックエンド
        settings: 翻訳設定（認証情報はレビューと共用）

    Returns:
        LLMClient: 設定されたバックエンドのクライアント

    Raises:
        ProviderError: 必要な認証情報が設定されていない場合
    """
    match backend:
        case LLMBackend.CLAUDE:
            if not settings.anthropic_api_key:
                raise ProviderError("claude", "anthropic_api_key is not configured")
            return ClaudeClient(settings=settings)
        case LLMBackend.OPENAI:
            if not settings.openai_api_key and not settings.openai_base_url:
                raise ProviderError("gpt", "openai_api_key is not configured")
            return OpenAIClient(settings=settings)
        case _:
            raise ValueError(
                f"Invalid LLM backend: '{backend}'. "
                f"Must be '{LLMBackend.CLAUDE}' or '{LLMBackend.OPENAI}'"
            )
