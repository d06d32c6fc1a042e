#!/usr/bin/env python3
"""
Relay Scribe - CLI Controller
CLIアプリケーションのコントローラー層：アプリケーションのライフサイクル管理
"""

import sys
import traceback
import uuid
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import TextIO

from relay_scribe.domain import (
    MessageLevel,
    MessagePostedEvent,
    PersistenceBackend,
    RelayScribeError,
    Settings,
    message_posted,
)
from relay_scribe.infrastructure import configure_logging, load_settings
from relay_scribe.presentation.app import RelayScribeApp

from .view import CLIView

# 途中経過として扱う行の接頭辞
PARTIAL_PREFIX = "~ "


class CLIController:
    """
    CLIコントローラー

    責務:
    - 設定の読み込みと App/View の初期化・配線
    - サブコマンドの実行（replay / translate / backfill / stats）
    - 終了処理とエラー表示
    """

    def __init__(self, config_dir: Path | None = None, verbose: bool = False) -> None:
        """
        CLIControllerの初期化

        Args:
            config_dir: 設定ファイルのディレクトリ（Noneの場合はプロジェクトルート）
            verbose: ステータスメッセージを logging で出力するか
        """
        self.settings: Settings = load_settings(config_dir)
        self.verbose = verbose
        self.app: RelayScribeApp | None = None
        self.view: CLIView | None = None

    def _setup(self) -> RelayScribeApp:
        """App/Viewを初期化"""
        if self.verbose:
            configure_logging(self.settings.app.log_level)
        self.view = CLIView(settings=self.settings, show_messages=not self.verbose)
        self.app = RelayScribeApp.from_settings(self.settings)
        translation = self.settings.translation
        self.view.show_banner(translation.backend.value if translation.enabled else "Disabled")
        return self.app

    # ========== サブコマンド ==========

    def replay(
        self,
        source: TextIO,
        primary_language: str,
        target_languages: list[str] | None,
        session_id: str | None = None,
    ) -> int:
        """
        テキストを1行ずつ認識結果として流し込む

        "~ " で始まる行は途中経過として扱う。

        Returns:
            int: 終了コード
        """
        return self._run(
            lambda app: self._replay_lines(
                app,
                source,
                session_id or uuid.uuid4().hex[:8],
                primary_language,
                target_languages,
            )
        )

    def translate(
        self, text: str, target_languages: list[str], source_language: str | None
    ) -> int:
        """単発翻訳"""

        def run(app: RelayScribeApp) -> int:
            assert self.view is not None
            failed = False
            for language in target_languages:
                lookup = app.get_translation(text, language, source_language)
                self.view.show_translation(language, lookup.translated_text, lookup.error)
                failed = failed or lookup.translated_text is None
            return 1 if failed else 0

        return self._run(run)

    def backfill(self, limit: int) -> int:
        """未翻訳・失敗セグメントの翻訳を再実行"""

        def run(app: RelayScribeApp) -> int:
            self._warn_if_ephemeral("backfill")
            results = app.process_pending_translations(limit=limit)
            self._post(f"Backfilled {len(results)} segment(s)", MessageLevel.SUCCESS)
            return 0

        return self._run(run)

    def stats(self) -> int:
        """翻訳キャッシュ統計を表示"""

        def run(app: RelayScribeApp) -> int:
            assert self.view is not None
            self._warn_if_ephemeral("stats")
            self.view.show_cache_stats(app.cache_stats())
            return 0

        return self._run(run)

    # ========== 内部処理 ==========

    def _run(self, command: Callable[[RelayScribeApp], int]) -> int:
        """App初期化・コマンド実行・終了処理"""
        try:
            app = self._setup()
        except (RelayScribeError, ValueError) as e:
            self._post(f"Error: {e}", MessageLevel.ERROR)
            return 1

        try:
            return command(app)
        except KeyboardInterrupt:
            self._post("\nGoodbye!", MessageLevel.SUCCESS)
            return 130
        except Exception as e:
            # エラー時は即座に終了
            self._post(f"\nError: {e}", MessageLevel.ERROR)
            traceback.print_exc()
            return 1
        finally:
            app.shutdown()

    def _replay_lines(
        self,
        app: RelayScribeApp,
        lines: Iterable[str],
        session_id: str,
        primary_language: str,
        target_languages: list[str] | None,
    ) -> int:
        app.start_session(session_id, primary_language, target_languages)
        for line in lines:
            text = line.rstrip("\n")
            if not text.strip():
                continue
            if text.startswith(PARTIAL_PREFIX):
                app.submit_recognized_text(
                    session_id, text[len(PARTIAL_PREFIX) :], is_partial=True
                )
            else:
                app.submit_recognized_text(session_id, text)
        app.end_session(session_id)
        return 0

    def _post(self, message: str, level: MessageLevel) -> None:
        if self.view is None:
            # View初期化前のエラーは標準エラーへ
            sys.stderr.write(message + "\n")
            return
        message_posted.send(None, event=MessagePostedEvent(message=message, level=level))

    def _warn_if_ephemeral(self, command: str) -> None:
        """メモリ保存では起動のたびにストアが空になる"""
        if self.settings.persistence.backend is PersistenceBackend.MEMORY:
            self._post(
                f"Warning: '{command}' runs against an empty in-memory store; "
                "set persistence.backend = \"sqlite\" to use saved data",
                MessageLevel.WARNING,
            )
