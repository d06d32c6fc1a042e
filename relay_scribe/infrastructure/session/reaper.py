#!/usr/bin/env python3
"""
Relay Scribe - Idle Session Reaper
放置されたセッションを定期的に終了させるバックグラウンドスレッド
"""

import threading
from collections.abc import Callable

from relay_scribe.domain import MessageLevel, post_message

from .state_store import SessionStateStore

# スレッド終了待ちのタイムアウト（秒）
_REAPER_SHUTDOWN_TIMEOUT_SEC = 5.0


class SessionReaper:
    """
    アイドルセッション回収スレッド

    interval_sec ごとに最終操作から idle_timeout_sec 以上経過したセッションを探し、
    on_idle コールバック（通常は RelayScribeApp.end_session）で終了させる。
    """

    def __init__(
        self,
        state_store: SessionStateStore,
        on_idle: Callable[[str], object],
        interval_sec: float,
        idle_timeout_sec: float,
    ) -> None:
        self.state_store = state_store
        self.on_idle = on_idle
        self.interval_sec = interval_sec
        self.idle_timeout_sec = idle_timeout_sec

        # スレッド制御
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    def run_once(self) -> list[str]:
        """
        1回分の回収を実行

        1件の終了処理が失敗しても残りのセッションの回収は続ける。

        Returns:
            list[str]: 終了させたセッションID
        """
        reaped: list[str] = []
        for session_id in self.state_store.idle_session_ids(self.idle_timeout_sec):
            try:
                self.on_idle(session_id)
            except Exception as e:
                post_message(
                    self,
                    f"Failed to reap idle session {session_id}: {type(e).__name__}: {e}",
                    MessageLevel.ERROR,
                )
                continue
            reaped.append(session_id)

        if reaped:
            post_message(
                self,
                f"Reaped {len(reaped)} idle session(s): {', '.join(reaped)}",
                MessageLevel.INFO,
            )
        return reaped

    def _loop(self) -> None:
        """回収ループ（別スレッドで実行）"""
        while not self._stop_event.wait(self.interval_sec):
            self.run_once()

    def start(self) -> None:
        """回収スレッド開始"""
        if self._thread and self._thread.is_alive():
            return  # すでに起動済み

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._loop,
            daemon=True,
            name="SessionReaperThread",
        )
        self._thread.start()

    def stop(self) -> None:
        """回収スレッド停止"""
        self._stop_event.set()
        if self._thread and self._thread.is_alive():
            self._thread.join(timeout=_REAPER_SHUTDOWN_TIMEOUT_SEC)
        self._thread = None

    def is_alive(self) -> bool:
        """回収スレッドが実行中かどうかを返す"""
        return self._thread is not None and self._thread.is_alive()
