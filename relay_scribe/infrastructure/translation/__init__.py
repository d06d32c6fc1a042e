#!/usr/bin/env python3
"""
Relay Scribe - Translation Infrastructure
翻訳キャッシュと多言語ファンアウト
"""

# キャッシュ
from .cache import CacheResult, GeneratedTranslation, TranslationCache

# ファンアウト
from .fanout import TranslationFanoutCache, is_placeholder

__all__ = [
    # キャッシュ
    "CacheResult",
    "GeneratedTranslation",
    "TranslationCache",
    # ファンアウト
    "TranslationFanoutCache",
    "is_placeholder",
]
