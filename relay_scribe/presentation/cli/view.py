#!/usr/bin/env python3
"""
Relay Scribe - CLI View
CLIのView層：Signal購読とコンソール表示
"""

import sys
import threading

from colorama import Fore, Style  # type: ignore[import-untyped]

from relay_scribe import __version__
from relay_scribe.domain import (
    MessageLevel,
    MessagePostedEvent,
    PartialTextReceivedEvent,
    SegmentAcceptedEvent,
    SegmentRejectedEvent,
    SessionEndedEvent,
    Settings,
    TranslationsCompletedEvent,
    message_posted,
    partial_text_received,
    segment_accepted,
    segment_rejected,
    session_ended,
    translations_completed,
)
from relay_scribe.infrastructure.persistence import CacheStats


class CLIView:
    """
    CLI View層

    責務:
    - Signalサブスクリプションとイベント駆動表示
    - コンソール表示のフォーマッティング
    - スレッドセーフな表示管理
    """

    def __init__(self, settings: Settings, show_messages: bool = True) -> None:
        """
        CLIViewの初期化とSignalサブスクリプション設定

        Args:
            settings: アプリケーション設定
            show_messages: ステータスメッセージを表示するか（ログ出力時はFalse）
        """
        self.settings = settings
        self.lock = threading.Lock()  # スレッド間の同期用ロック

        # Signalサブスクリプション設定
        partial_text_received.connect(self._on_partial_text_received)
        segment_accepted.connect(self._on_segment_accepted)
        segment_rejected.connect(self._on_segment_rejected)
        translations_completed.connect(self._on_translations_completed)
        session_ended.connect(self._on_session_ended)
        if show_messages:
            message_posted.connect(self._on_message_posted)

    # ========== Signalハンドラ ==========

    def _on_partial_text_received(
        self, _sender: object, event: PartialTextReceivedEvent
    ) -> None:
        """途中経過表示ハンドラ"""
        self._write(f"{Style.DIM}… {event.text}{Style.RESET_ALL}")

    def _on_segment_accepted(self, _sender: object, event: SegmentAcceptedEvent) -> None:
        """受理セグメント表示ハンドラ"""
        segment = event.segment
        timestamp = segment.created_at.strftime("%H:%M:%S")
        trimmed = (
            f" {Fore.MAGENTA}(overlap: {event.trimmed_overlap} chars){Style.RESET_ALL}"
            if event.trimmed_overlap
            else ""
        )
        self._write(f"{Fore.GREEN}[{timestamp}]{Style.RESET_ALL} {segment.text}{trimmed}")

    def _on_segment_rejected(self, _sender: object, event: SegmentRejectedEvent) -> None:
        """棄却セグメント表示ハンドラ"""
        self._write(
            f"{Fore.YELLOW}{Style.DIM}  ✗ {event.reason.value}: {event.text}{Style.RESET_ALL}"
        )

    def _on_translations_completed(
        self, _sender: object, event: TranslationsCompletedEvent
    ) -> None:
        """翻訳表示ハンドラ"""
        result = event.result
        lines = []
        for language, text in result.translations.items():
            marker = "*" if language in result.cached else " "
            lines.append(f"{Fore.CYAN}  {marker}{language}: {text}{Style.RESET_ALL}")
        for language, reason in result.failed.items():
            lines.append(f"{Fore.RED}   {language}: ({reason}){Style.RESET_ALL}")
        if lines:
            self._write("\n".join(lines))

    def _on_session_ended(self, _sender: object, event: SessionEndedEvent) -> None:
        """セッション終了表示ハンドラ"""
        stats = event.stats
        self._write(
            f"\n{Fore.CYAN}{'─' * 50}{Style.RESET_ALL}\n"
            f"Session {event.session_id} {event.reason}: "
            f"{stats.segment_count} segments, {stats.transcript_length} chars\n"
            f"{Fore.CYAN}{'─' * 50}{Style.RESET_ALL}"
        )

    def _on_message_posted(self, _sender: object, event: MessagePostedEvent) -> None:
        """ステータスメッセージ表示ハンドラ"""
        self._show_message(event)

    # ========== 表示メソッド ==========

    def show_banner(self, translator_info: str) -> None:
        """
        起動バナーを表示

        Args:
            translator_info: 翻訳プロバイダの説明（無効時は "Disabled"）
        """
        dedup = self.settings.dedup
        banner = f"""
{Fore.CYAN}╔══════════════════════════════════════════╗
║       Relay Scribe v{__version__:<20}  ║
║  Live Transcript Relay & Translation     ║
╚══════════════════════════════════════════╝{Style.RESET_ALL}

{Fore.YELLOW}Config:{Style.RESET_ALL}
  - Dedup: {dedup.similarity_metric.value} > {dedup.similarity_threshold} (window: {dedup.similarity_window})
  - Translation: {translator_info}
  - Persistence: {self.settings.persistence.backend.value}

"""
        with self.lock:
            sys.stdout.write(banner)
            sys.stdout.flush()

    def show_cache_stats(self, stats: CacheStats) -> None:
        """翻訳キャッシュ統計を表示"""
        lines = [
            f"{Fore.YELLOW}Translation cache:{Style.RESET_ALL}",
            f"  - Entries: {stats.total}",
            f"  - Average quality: {stats.average_quality:.2f}",
        ]
        for engine, count in sorted(stats.by_engine.items()):
            lines.append(f"  - Engine {engine}: {count}")
        for language, count in sorted(stats.by_language.items()):
            lines.append(f"  - Language {language}: {count}")
        self._write("\n".join(lines))

    def show_translation(self, language: str, text: str | None, error: str | None) -> None:
        """単発翻訳の結果を表示"""
        if text is None:
            self._write(f"{Fore.RED}{language}: ({error}){Style.RESET_ALL}")
        else:
            self._write(f"{Fore.CYAN}{language}: {text}{Style.RESET_ALL}")

    def _show_message(self, event: MessagePostedEvent) -> None:
        """メッセージを表示"""
        # メッセージレベルに応じた色を選択
        color_map = {
            MessageLevel.INFO: Fore.CYAN,
            MessageLevel.SUCCESS: Fore.GREEN,
            MessageLevel.WARNING: Fore.YELLOW,
            MessageLevel.ERROR: Fore.RED,
        }
        color = color_map.get(event.level, Fore.WHITE)
        self._write(f"{color}{event.message}{Style.RESET_ALL}")

    def _write(self, text: str) -> None:
        with self.lock:
            sys.stdout.write(text + "\n")
            sys.stdout.flush()
