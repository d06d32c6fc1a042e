#!/usr/bin/env python3
"""
Relay Scribe - Configuration Loader
設定の読み込み（TOML + 環境変数）
"""

import tomllib
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from relay_scribe.domain import Settings

# 既定の設定ファイル置き場（プロジェクトルート）
PROJECT_ROOT = Path(__file__).parent.parent.parent


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """
    2つの辞書を深くマージする（overrideが優先）

    Args:
        base: ベースとなる辞書
        override: 上書きする辞書

    Returns:
        マージされた辞書
    """
    result = base.copy()
    for key, value in override.items():
        if (
            key in result
            and isinstance(result[key], Mapping)
            and isinstance(value, Mapping)
        ):
            result[key] = _deep_merge(dict(result[key]), dict(value))
        else:
            result[key] = value
    return result


def load_settings(config_dir: Path | None = None) -> Settings:
    """
    TOMLファイルと環境変数から設定を読み込む

    読み込み順序（後勝ち）:
    1. デフォルト値（domain/settings.py内）
    2. 環境変数（RELAY_SCRIBE_ 接頭辞、例: RELAY_SCRIBE_DEDUP__SIMILARITY_THRESHOLD）
    3. {config_dir}/config.toml（存在する場合）
    4. {config_dir}/config.local.toml（存在する場合）

    Args:
        config_dir: 設定ファイルのディレクトリ（省略時はプロジェクトルート）

    Returns:
        Settingsインスタンス
    """
    config_dir = config_dir or PROJECT_ROOT
    config_path = config_dir / "config.toml"
    local_config_path = config_dir / "config.local.toml"

    # config.tomlを読み込み
    config_data: dict[str, Any] = {}
    if config_path.exists():
        with config_path.open("rb") as f:
            config_data = tomllib.load(f)

    # config.local.tomlを読み込んでマージ（存在する場合）
    if local_config_path.exists():
        with local_config_path.open("rb") as f:
            config_data = _deep_merge(config_data, tomllib.load(f))

    # 初期化引数は環境変数より優先される
    return Settings(**config_data) if config_data else Settings()
