#!/usr/bin/env python3
"""
Relay Scribe - Constants
言語表・エンジン品質など、設定で変えない定数を管理するモジュール
"""

import re

# ========================================
# 言語
# ========================================
# プロンプト構築用の言語名（コード → 英語名）
LANGUAGE_NAMES: dict[str, str] = {
    "ko": "Korean",
    "ja": "Japanese",
    "zh": "Chinese",
    "es": "Spanish",
    "fr": "French",
    "de": "German",
    "pt": "Portuguese",
    "ru": "Russian",
    "it": "Italian",
    "pl": "Polish",
    "nl": "Dutch",
    "da": "Danish",
    "sv": "Swedish",
    "no": "Norwegian",
    "fi": "Finnish",
    "cs": "Czech",
    "sk": "Slovak",
    "sl": "Slovenian",
    "et": "Estonian",
    "lv": "Latvian",
    "lt": "Lithuanian",
    "hu": "Hungarian",
    "bg": "Bulgarian",
    "ro": "Romanian",
    "el": "Greek",
    "tr": "Turkish",
    "ar": "Arabic",
    "id": "Indonesian",
    "uk": "Ukrainian",
    "hi": "Hindi",
    "en": "English",
}

SUPPORTED_LANGUAGES = frozenset(LANGUAGE_NAMES)

# Google Translate の言語コード（異なるもののみ上書き）
GOOGLE_LANGUAGE_CODES: dict[str, str] = {
    **{code: code for code in LANGUAGE_NAMES},
    "zh": "zh-CN",
}

# ========================================
# 翻訳エンジン
# ========================================
# エンジン別の品質スコア
ENGINE_QUALITY: dict[str, float] = {
    "gpt": 0.95,
    "claude": 0.95,
    "google": 0.75,
}
DEFAULT_ENGINE_QUALITY = 0.5

# 「処理中」プレースホルダとみなす翻訳結果
# プロバイダが本番結果の前に仮テキストを返す場合がある
TRANSLATION_PLACEHOLDER_PATTERN = re.compile(
    r"^\s*(\[(AI 번역 중|Translating|Processing)[^\]]*\]|\.{3}|…)",
    re.IGNORECASE,
)
