#!/usr/bin/env python3
"""
Relay Scribe - Similarity Metrics
文字列類似度と重なり検出（いずれも対称・同一文字列で1.0）
"""

from collections.abc import Callable

from relay_scribe.domain import SimilarityMetric

from .normalization import tokenize_words


def jaccard_similarity(a: str, b: str) -> float:
    """
    単語集合のJaccard係数（共通部分 / 和集合）

    Args:
        a: 正規化済みテキスト
        b: 正規化済みテキスト

    Returns:
        float: 0.0（共通なし）〜 1.0（同一集合）
    """
    words_a = set(tokenize_words(a))
    words_b = set(tokenize_words(b))
    if not words_a and not words_b:
        return 1.0
    union = words_a | words_b
    return len(words_a & words_b) / len(union)


def levenshtein_distance(a: str, b: str) -> int:
    """編集距離（2行DP、O(len(a) * len(b))）"""
    if len(a) < len(b):
        a, b = b, a
    if not b:
        return len(a)

    previous = list(range(len(b) + 1))
    for i, char_a in enumerate(a, start=1):
        current = [i]
        for j, char_b in enumerate(b, start=1):
            cost = 0 if char_a == char_b else 1
            current.append(
                min(
                    previous[j] + 1,  # 削除
                    current[j - 1] + 1,  # 挿入
                    previous[j - 1] + cost,  # 置換
                )
            )
        previous = current
    return previous[-1]


def levenshtein_similarity(a: str, b: str) -> float:
    """正規化編集距離による類似度（1 - 距離 / 長い方の長さ）"""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - levenshtein_distance(a, b) / longest


def get_similarity_function(metric: SimilarityMetric) -> Callable[[str, str], float]:
    """設定された指標に対応する関数を返す"""
    match metric:
        case SimilarityMetric.JACCARD:
            return jaccard_similarity
        case SimilarityMetric.LEVENSHTEIN:
            return levenshtein_similarity
        case _:
            raise ValueError(f"Unknown similarity metric: '{metric}'")


def longest_overlap(previous: str, candidate: str, min_length: int) -> int:
    """
    previous の末尾と candidate の先頭が一致する最長の長さ

    min_length 以上の一致がなければ 0 を返す。

    Examples:
        >>> longest_overlap("the quick brown", "brown fox jumps", 3)
        5
    """
    for length in range(min(len(previous), len(candidate)), min_length - 1, -1):
        if previous.endswith(candidate[:length]):
            return length
    return 0


def is_contained_duplicate(a: str, b: str, min_length: int) -> bool:
    """一方が他方の部分文字列で、短い側が min_length 文字を超えるか"""
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    return len(shorter) > min_length and shorter in longer
