#!/usr/bin/env python3
"""
Relay Scribe - Persistence Infrastructure
永続化：ストアインターフェース、メモリ・SQLite実装、JSON出力
"""

from relay_scribe.domain import PersistenceBackend, PersistenceSettings

# ストア
from .store import CacheStats, InMemoryStore, PersistenceStore
from .sqlite_store import SqliteStore

# JSON出力
from .json_exporter import SessionJsonExporter


def create_store(settings: PersistenceSettings) -> PersistenceStore:
    """設定に基づいて永続化ストアを生成"""
    match settings.backend:
        case PersistenceBackend.MEMORY:
            return InMemoryStore()
        case PersistenceBackend.SQLITE:
            store = SqliteStore(settings.database_path)
            store.initialize()
            return store
        case _:
            raise ValueError(f"Invalid persistence.backend: '{settings.backend}'")


__all__ = [
    # ストア
    "CacheStats",
    "InMemoryStore",
    "PersistenceStore",
    "SqliteStore",
    "create_store",
    # JSON出力
    "SessionJsonExporter",
]
