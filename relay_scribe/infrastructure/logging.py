#!/usr/bin/env python3
"""
Relay Scribe - Logging
logging の初期化と message_posted シグナルからのブリッジ
"""

import logging
from typing import Any

from relay_scribe.domain import MessageLevel, MessagePostedEvent, message_posted

LOGGER_NAME = "relay_scribe"

# MessageLevel → logging レベル
_LEVEL_MAP: dict[MessageLevel, int] = {
    MessageLevel.INFO: logging.INFO,
    MessageLevel.SUCCESS: logging.INFO,
    MessageLevel.WARNING: logging.WARNING,
    MessageLevel.ERROR: logging.ERROR,
}

_LOGGER_CONFIGURED = False


def get_logger(name: str | None = None) -> logging.Logger:
    """relay_scribe 配下のロガーを取得"""
    return logging.getLogger(f"{LOGGER_NAME}.{name}" if name else LOGGER_NAME)


def _forward_message(sender: Any, event: MessagePostedEvent, **kwargs: Any) -> None:
    """message_posted を logging に転送"""
    source = type(sender).__name__ if sender is not None else None
    get_logger(source).log(_LEVEL_MAP.get(event.level, logging.INFO), event.message)


def configure_logging(level: int | str = logging.INFO) -> None:
    """
    ログ設定を1度だけ行い、message_posted のブリッジを接続

    Args:
        level: ログレベル（"INFO" などの名前も可）
    """
    global _LOGGER_CONFIGURED
    if _LOGGER_CONFIGURED:
        return

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
    )
    # weak=False: モジュール関数を確実に保持
    message_posted.connect(_forward_message, weak=False)
    _LOGGER_CONFIGURED = True
