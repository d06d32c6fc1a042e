#!/usr/bin/env python3
"""
Relay Scribe - Provider Infrastructure
外部プロバイダ（LLM・翻訳・音声認識）への接続と再試行
"""

# LLMクライアント
from .llm_client import (
    ClaudeClient,
    LLMClient,
    OpenAIClient,
    clean_llm_output,
    create_llm_client,
)

# プロンプト
from .prompts import ReviewPromptStrategy, TranslationPromptStrategy

# 翻訳
from .translator import GoogleTranslator, LLMTranslator, Translator, create_translator

# 音声認識
from .recognizer import OpenAIRecognizer, Recognizer, decode_recognition_response

# 文法レビュー
from .reviewer import GrammarReviewer

# 再試行
from .retry import (
    RetryOutcome,
    RetryPolicy,
    is_retryable_exception,
    retry_with_backoff,
    to_provider_error,
)

__all__ = [
    # LLM
    "ClaudeClient",
    "LLMClient",
    "OpenAIClient",
    "clean_llm_output",
    "create_llm_client",
    # プロンプト
    "ReviewPromptStrategy",
    "TranslationPromptStrategy",
    # 翻訳
    "GoogleTranslator",
    "LLMTranslator",
    "Translator",
    "create_translator",
    # 音声認識
    "OpenAIRecognizer",
    "Recognizer",
    "decode_recognition_response",
    # 文法レビュー
    "GrammarReviewer",
    # 再試行
    "RetryOutcome",
    "RetryPolicy",
    "is_retryable_exception",
    "retry_with_backoff",
    "to_provider_error",
]
