#!/usr/bin/env python3
"""
Relay Scribe - Domain Errors
パイプライン内部のエラー分類（入口ではすべて結果オブジェクトに変換される）
"""


class RelayScribeError(Exception):
    """Relay Scribe の基底例外"""


class SessionNotFound(RelayScribeError):
    """未知または終了済みセッションへの操作"""

    def __init__(self, session_id: str) -> None:
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class InputRejected(RelayScribeError):
    """入力（音声・テキスト）が追加対象にならない"""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


class ProviderError(RelayScribeError):
    """
    外部プロバイダ（認識・翻訳）の失敗

    Attributes:
        provider: プロバイダ名
        retryable: 一時的な失敗（レート制限・5xx・タイムアウト）かどうか
    """

    def __init__(self, provider: str, message: str, retryable: bool = False) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.retryable = retryable


class PersistenceError(RelayScribeError):
    """永続化ストアへの書き込み・読み込み失敗"""
