#!/usr/bin/env python3
"""
Relay Scribe - Presentation Layer
プレゼンテーション層：アプリケーションロジック、CLI
"""

# コアアプリケーション
from .app import RelayScribeApp

__all__ = [
    # コアアプリケーション
    "RelayScribeApp",
]
