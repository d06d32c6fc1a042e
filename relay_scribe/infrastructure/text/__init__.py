#!/usr/bin/env python3
"""
Relay Scribe - Text Infrastructure
テキスト処理：正規化、類似度、重複判定
"""

# 正規化
from .normalization import (
    NormalizedText,
    normalize_cache_key,
    normalize_for_dedup,
    text_hash,
)

# 類似度
from .similarity import (
    get_similarity_function,
    jaccard_similarity,
    levenshtein_similarity,
    longest_overlap,
)

# 重複判定
from .deduper import SpeechSegmentDeduper

__all__ = [
    # 正規化
    "NormalizedText",
    "normalize_cache_key",
    "normalize_for_dedup",
    "text_hash",
    # 類似度
    "get_similarity_function",
    "jaccard_similarity",
    "levenshtein_similarity",
    "longest_overlap",
    # 重複判定
    "SpeechSegmentDeduper",
]
