#!/usr/bin/env python3
"""
Relay Scribe - Grammar Reviewer
受理済みセグメントの文法補正（結果は corrected_text として別に保持）
"""

from relay_scribe.domain import ProviderError, ReviewSettings

from .llm_client import LLMClient
from .prompts import ReviewPromptStrategy


class GrammarReviewer:
    """
    LLMによる文法レビュー

    責務:
    - フィラー除去・句読点付与・文法修正の依頼
    - 空応答の ProviderError 化
    """

    def __init__(self, llm_client: LLMClient, settings: ReviewSettings) -> None:
        """
        Args:
            llm_client: LLMクライアント（翻訳と認証情報を共用）
            settings: レビュー設定
        """
        self.llm_client = llm_client
        self.settings = settings
        self.prompt_strategy = ReviewPromptStrategy()

    def review(self, text: str, source_language: str) -> str:
        """
        テキストを補正

        Args:
            text: 受理済みの認識テキスト
            source_language: 話者の言語コード

        Returns:
            str: 補正済みテキスト

        Raises:
            ProviderError: LLM呼び出しに失敗した、または空応答の場合
        """
        result = self.llm_client(
            system_prompt=self.prompt_strategy.system_prompt,
            user_prompt=self.prompt_strategy.build_user_prompt(text, source_language),
            temperature=self.settings.temperature,
            max_tokens=self.settings.max_tokens,
        )
        if not result:
            raise ProviderError(self.llm_client.engine, "empty review response")
        return result
