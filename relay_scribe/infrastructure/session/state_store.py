#!/usr/bin/env python3
"""
Relay Scribe - Session State Store
セッションごとの作業状態をスレッドセーフに保持するモジュール
"""

import threading
import time
from collections import OrderedDict, deque
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field

from relay_scribe.domain import (
    RecentSegment,
    SessionNotFound,
    SessionSettings,
    SessionStats,
)
from relay_scribe.infrastructure.text.normalization import (
    normalize_for_dedup,
    text_hash,
)


@dataclass
class SessionWorkingState:
    """
    1セッション分の作業状態

    Attributes:
        session_id: セッションID
        transcript_parts: 受理済みテキスト（受理順）
        recent_segments: 直近の受理セグメント（件数・経過時間で上限）
        seen_hashes: 既出の正規化テキストハッシュ（挿入順、FIFOで削除）
        last_activity: 最終操作時刻（時計関数の値）
    """

    session_id: str
    transcript_parts: list[str] = field(default_factory=list)
    recent_segments: deque[RecentSegment] = field(default_factory=deque)
    seen_hashes: OrderedDict[str, None] = field(default_factory=OrderedDict)
    last_activity: float = 0.0

    @property
    def full_transcript(self) -> str:
        """受理済みテキストの連結"""
        return " ".join(self.transcript_parts)

    @property
    def last_segment(self) -> RecentSegment | None:
        """最後に受理されたセグメント"""
        return self.recent_segments[-1] if self.recent_segments else None

    def stats(self) -> SessionStats:
        return SessionStats(
            segment_count=len(self.transcript_parts),
            hash_set_size=len(self.seen_hashes),
            transcript_length=len(self.full_transcript),
        )


@dataclass
class _SessionEntry:
    """作業状態とセッション専用ロックの組"""

    state: SessionWorkingState
    lock: threading.RLock = field(default_factory=threading.RLock)
    closed: bool = False


class SessionStateStore:
    """
    セッション作業状態のレジストリ

    責務:
    - セッションごとの作業状態の生成・リセット・破棄
    - 受理セグメントの追加とウィンドウの上限管理
    - セッション単位の排他制御（異なるセッション同士はブロックしない）

    Note:
    - レジストリ自体のロックは辞書の参照・更新の間だけ保持する
    - 作業状態の読み書きはセッション専用の RLock の下で行う
    """

    def __init__(
        self,
        settings: SessionSettings,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Args:
            settings: セッション設定（ウィンドウ上限など）
            clock: 経過時間計算に使う時計関数（秒）
        """
        self.settings = settings
        self._clock = clock
        self._entries: dict[str, _SessionEntry] = {}
        self._registry_lock = threading.Lock()

    # ========== ライフサイクル ==========

    def start(self, session_id: str) -> bool:
        """
        作業状態を生成（既に存在する場合はリセット）

        Returns:
            bool: 既存の状態をリセットした場合True
        """
        entry = _SessionEntry(
            state=SessionWorkingState(session_id=session_id, last_activity=self._clock())
        )
        with self._registry_lock:
            previous = self._entries.get(session_id)
            self._entries[session_id] = entry

        if previous is None:
            return False

        # 旧状態を使用中の処理には「終了済み」として見せる
        with previous.lock:
            previous.closed = True
        return True

    def end(self, session_id: str) -> SessionStats:
        """
        作業状態を破棄して最終統計を返す

        Raises:
            SessionNotFound: 存在しない、または既に終了済みの場合
        """
        with self._registry_lock:
            entry = self._entries.pop(session_id, None)
        if entry is None:
            raise SessionNotFound(session_id)

        # 処理中の追加が終わるのを待ってから閉じる
        with entry.lock:
            entry.closed = True
            return entry.state.stats()

    def is_active(self, session_id: str) -> bool:
        with self._registry_lock:
            return session_id in self._entries

    def active_session_ids(self) -> list[str]:
        with self._registry_lock:
            return list(self._entries)

    # ========== 状態アクセス ==========

    def get_or_fail(self, session_id: str) -> SessionWorkingState:
        """
        作業状態を取得

        Raises:
            SessionNotFound: 存在しない場合
        """
        return self._get_entry(session_id).state

    @contextmanager
    def locked(self, session_id: str) -> Iterator[SessionWorkingState]:
        """
        セッションロックを保持したまま作業状態を扱う

        Raises:
            SessionNotFound: 存在しない、またはロック待ちの間に終了した場合
        """
        entry = self._get_entry(session_id)
        with entry.lock:
            if entry.closed:
                raise SessionNotFound(session_id)
            now = self._clock()
            self._prune(entry.state, now)
            entry.state.last_activity = now
            yield entry.state

    def append_accepted(
        self, session_id: str, text: str, extra_hashes: Iterable[str] = ()
    ) -> RecentSegment:
        """
        受理済みテキストを追加

        - トランスクリプトに追記
        - 直近ウィンドウに追加（5分超過・50件超過を削除）
        - ハッシュ集合に追加（200件超過は古い順に削除）

        Args:
            session_id: セッションID
            text: 受理されたテキスト
            extra_hashes: 併せて既出とするハッシュ（整形前の入力のハッシュ等）

        Raises:
            SessionNotFound: 存在しない場合
        """
        entry = self._get_entry(session_id)
        with entry.lock:
            if entry.closed:
                raise SessionNotFound(session_id)

            state = entry.state
            now = self._clock()
            normalized = normalize_for_dedup(text).text
            segment = RecentSegment(
                text=text,
                normalized=normalized,
                normalized_hash=text_hash(normalized),
                accepted_at=now,
            )

            state.transcript_parts.append(text)
            state.recent_segments.append(segment)
            for value in (*extra_hashes, segment.normalized_hash):
                self._remember_hash(state, value)

            self._prune(state, now)
            state.last_activity = now
            return segment

    # ========== アイドル回収 ==========

    def idle_session_ids(self, idle_timeout_sec: float | None = None) -> list[str]:
        """最終操作から idle_timeout_sec 以上経過したセッション"""
        timeout = (
            self.settings.idle_timeout_sec
            if idle_timeout_sec is None
            else idle_timeout_sec
        )
        now = self._clock()
        with self._registry_lock:
            entries = list(self._entries.items())
        return [
            session_id
            for session_id, entry in entries
            if now - entry.state.last_activity >= timeout
        ]

    # ========== 内部処理 ==========

    def _get_entry(self, session_id: str) -> _SessionEntry:
        with self._registry_lock:
            entry = self._entries.get(session_id)
        if entry is None:
            raise SessionNotFound(session_id)
        return entry

    def _remember_hash(self, state: SessionWorkingState, value: str) -> None:
        state.seen_hashes.pop(value, None)
        state.seen_hashes[value] = None
        while len(state.seen_hashes) > self.settings.max_seen_hashes:
            state.seen_hashes.popitem(last=False)

    def _prune(self, state: SessionWorkingState, now: float) -> None:
        """直近ウィンドウから古いもの・上限超過分を削除"""
        recent = state.recent_segments
        while recent and now - recent[0].accepted_at > self.settings.max_segment_age_sec:
            recent.popleft()
        while len(recent) > self.settings.max_recent_segments:
            recent.popleft()
