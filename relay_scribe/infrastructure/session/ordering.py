#!/usr/bin/env python3
"""
Relay Scribe - Ordered Commit Gate
フラッシュの捕捉順にトランスクリプトへ追加するための順序制御
"""

import threading
from dataclasses import dataclass, field


@dataclass
class _Turnstile:
    """1セッション分の順番待ち状態"""

    condition: threading.Condition = field(default_factory=threading.Condition)
    issued: int = 0  # 次に払い出す通し番号
    next_turn: int = 0  # 次に確定できる通し番号
    finished: set[int] = field(default_factory=set)  # 順番より先に完了した番号
    closed: bool = False


@dataclass(frozen=True)
class CommitTicket:
    """
    issue() が払い出す順番札

    払い出した時点の順番待ち状態に結び付く。セッションがリセット・終了された後は
    古い状態に対してのみ作用し、新しいセッションの順番には影響しない。
    """

    session_id: str
    sequence: int
    _turnstile: _Turnstile = field(repr=False, compare=False)


class OrderedCommitGate:
    """
    セッション内の確定順序を捕捉順に揃えるゲート

    使い方:
    1. フラッシュ時に issue() で順番札を取得
    2. 認識結果が返ったら wait_turn() で先行フラッシュの完了を待つ
    3. 追加（または破棄）後に complete() で次の番号に順番を渡す

    認識呼び出しが前後して完了しても、追加は番号順になる。
    """

    def __init__(self) -> None:
        self._turnstiles: dict[str, _Turnstile] = {}
        self._registry_lock = threading.Lock()

    def open(self, session_id: str) -> None:
        """セッションの順番管理を（再）開始（旧状態の待機スレッドは解放される）"""
        with self._registry_lock:
            previous = self._turnstiles.get(session_id)
            self._turnstiles[session_id] = _Turnstile()
        if previous is not None:
            self._close_turnstile(previous)

    def close(self, session_id: str) -> None:
        """セッションの順番管理を終了（待機中のスレッドはすべて解放される）"""
        with self._registry_lock:
            turnstile = self._turnstiles.pop(session_id, None)
        if turnstile is not None:
            self._close_turnstile(turnstile)

    def issue(self, session_id: str) -> CommitTicket | None:
        """
        順番札を払い出す

        Returns:
            CommitTicket | None: 順番札（セッションが未登録の場合はNone）
        """
        with self._registry_lock:
            turnstile = self._turnstiles.get(session_id)
        if turnstile is None:
            return None
        with turnstile.condition:
            sequence = turnstile.issued
            turnstile.issued += 1
        return CommitTicket(session_id=session_id, sequence=sequence, _turnstile=turnstile)

    def wait_turn(self, ticket: CommitTicket | None, timeout: float) -> bool:
        """
        先行する番号がすべて完了するまで待つ

        Returns:
            bool: 順番が来た（またはセッションが終了・リセットされた）場合True、
                タイムアウトでFalse
        """
        if ticket is None:
            return True
        turnstile = ticket._turnstile
        with turnstile.condition:
            return turnstile.condition.wait_for(
                lambda: turnstile.closed or turnstile.next_turn >= ticket.sequence,
                timeout=timeout,
            )

    def complete(self, ticket: CommitTicket | None) -> None:
        """番号の処理完了を記録（追加・破棄のどちらでも呼ぶ）"""
        if ticket is None:
            return
        turnstile = ticket._turnstile
        with turnstile.condition:
            turnstile.finished.add(ticket.sequence)
            while turnstile.next_turn in turnstile.finished:
                turnstile.finished.discard(turnstile.next_turn)
                turnstile.next_turn += 1
            turnstile.condition.notify_all()

    @staticmethod
    def _close_turnstile(turnstile: _Turnstile) -> None:
        with turnstile.condition:
            turnstile.closed = True
            turnstile.condition.notify_all()
