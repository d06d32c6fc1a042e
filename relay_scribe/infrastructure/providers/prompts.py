#!/usr/bin/env python3
"""
Relay Scribe - Prompt Templates
LLM API用のプロンプトテンプレートを管理するモジュール
"""

from typing import Protocol

from relay_scribe.domain.constants import LANGUAGE_NAMES


def language_name(code: str | None) -> str | None:
    """言語コードを英語名に変換（未知のコードはそのまま）"""
    if code is None:
        return None
    return LANGUAGE_NAMES.get(code, code)


class PromptStrategy(Protocol):
    """
    プロンプト構築戦略の抽象インターフェース

    責務:
    - システムプロンプトの提供
    - ユーザープロンプトの構築
    """

    @property
    def system_prompt(self) -> str:
        """システムプロンプトを取得"""
        ...

    def build_user_prompt(self, text: str, source_language: str | None, **kwargs: str) -> str:
        """ユーザープロンプトを構築"""
        ...


class TranslationPromptStrategy:
    """
    ライブ講演の逐次翻訳用プロンプト戦略

    責務:
    - 翻訳者としてのシステムプロンプト提供
    - 原文と言語指定を含むユーザープロンプト構築
    """

    @property
    def system_prompt(self) -> str:
        return (
            "You are a professional translator specializing in live lecture and "
            "presentation content. Provide natural, accurate translations that keep "
            "technical terms intact. Return only the translation, without "
            "explanations, notes, or quotation marks."
        )

    def build_user_prompt(
        self, text: str, source_language: str | None, target_language: str = "en"
    ) -> str:
        """
        翻訳用のユーザープロンプトを構築

        Args:
            text: 原文
            source_language: 原文の言語コード（不明な場合はNone）
            target_language: 翻訳先の言語コード

        Returns:
            str: 構築されたユーザープロンプト
        """
        source = language_name(source_language)
        described = f"{source} text" if source else "text"
        return (
            f"Translate the following {described} to "
            f"{language_name(target_language)}.\n\n{text}"
        )


class ReviewPromptStrategy:
    """
    音声認識結果の文法レビュー用プロンプト戦略

    フィラー除去・句読点付与・文法修正のみを行い、内容は変えない。
    """

    @property
    def system_prompt(self) -> str:
        return (
            "You clean up raw speech-to-text output. Fix grammar, remove filler "
            "words and recognition noise such as 'ah' or 'emmm', and add punctuation "
            "so the text is clear and easy to read. Do not add, drop, or reinterpret "
            "content. Return only the corrected text."
        )

    def build_user_prompt(self, text: str, source_language: str) -> str:
        return (
            f"Here is the raw text straight from STT in "
            f"{language_name(source_language)}:\n\n{text}"
        )
