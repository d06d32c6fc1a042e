#!/usr/bin/env python3
"""
Relay Scribe - Text Normalization
重複判定・キャッシュキー用のテキスト正規化
"""

import hashlib
import unicodedata
from dataclasses import dataclass

# 区切り文字とみなすUnicodeカテゴリの先頭文字（空白・句読点・記号・制御文字）
# 結合文字（M*）は単語の一部として残す（デーヴァナーガリー等の母音記号）
_SEPARATOR_CATEGORIES = frozenset("ZPSC")


def is_separator(char: str) -> bool:
    """空白・句読点・記号なら True"""
    return unicodedata.category(char)[0] in _SEPARATOR_CATEGORIES


@dataclass(frozen=True)
class NormalizedText:
    """
    正規化済みテキストと元テキストへの位置対応

    Attributes:
        raw: 元のテキスト
        text: 正規化後のテキスト
        positions: text[i] が由来する raw のインデックス
    """

    raw: str
    text: str
    positions: tuple[int, ...]

    def __len__(self) -> int:
        return len(self.text)

    def raw_suffix_after(self, length: int) -> str:
        """
        正規化後の先頭 length 文字に対応する部分を元テキストから除いた残り

        内部のテキストは変更せず、先頭の区切り文字だけを取り除く。
        """
        if length <= 0:
            return self.raw.strip()
        if length >= len(self.text):
            return ""
        return strip_leading_separators(self.raw[self.positions[length] :]).rstrip()


def normalize_for_dedup(text: str) -> NormalizedText:
    """
    重複判定用の正規化

    小文字化し、空白・句読点の連続を1つの空白にまとめ、前後を除去する。

    Args:
        text: 元のテキスト

    Returns:
        NormalizedText: 正規化結果（位置対応付き）
    """
    chars: list[str] = []
    positions: list[int] = []

    for index, char in enumerate(text):
        if is_separator(char):
            # 連続する区切りは1つの空白にまとめる（先頭の区切りは捨てる）
            if chars and chars[-1] != " ":
                chars.append(" ")
                positions.append(index)
            continue

        for lowered in char.lower():
            chars.append(lowered)
            positions.append(index)

    # 末尾の空白を除去
    if chars and chars[-1] == " ":
        chars.pop()
        positions.pop()

    return NormalizedText(raw=text, text="".join(chars), positions=tuple(positions))


def strip_leading_separators(text: str) -> str:
    """先頭の空白・句読点を除去"""
    for index, char in enumerate(text):
        if not is_separator(char):
            return text[index:]
    return ""


def text_hash(normalized: str) -> str:
    """
    正規化済みテキストの安定ハッシュ

    暗号強度は不要。プロセスをまたいで同じ値になることだけを保証する。
    """
    return hashlib.blake2b(normalized.encode("utf-8"), digest_size=8).hexdigest()


def normalize_cache_key(text: str) -> str:
    """
    翻訳キャッシュキー用の正規化

    前後の空白のみ除去し、大文字小文字は保持する（翻訳の意味が変わりうるため）。
    """
    return text.strip()


def tokenize_words(normalized: str) -> list[str]:
    """空白区切りで単語に分割"""
    return normalized.split()
