#!/usr/bin/env python3
"""
Relay Scribe - Infrastructure Layer
インフラストラクチャ層: 外部I/O、永続化、設定読み込み
"""

from .config import load_settings
from .logging import configure_logging, get_logger

__all__ = [
    "configure_logging",
    "get_logger",
    "load_settings",
]
