#!/usr/bin/env python3
"""
Relay Scribe - Session Infrastructure
セッション作業状態の管理、確定順序の制御、アイドル回収
"""

# 作業状態
from .state_store import SessionStateStore, SessionWorkingState

# 順序制御
from .ordering import CommitTicket, OrderedCommitGate

# アイドル回収
from .reaper import SessionReaper

__all__ = [
    # 作業状態
    "SessionStateStore",
    "SessionWorkingState",
    # 順序制御
    "CommitTicket",
    "OrderedCommitGate",
    # アイドル回収
    "SessionReaper",
]
