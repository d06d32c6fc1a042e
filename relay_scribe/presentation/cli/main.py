#!/usr/bin/env python3
"""
Relay Scribe - CLI Main Entry Point
CLIアプリケーションのエントリーポイント
"""

import argparse
import sys
from pathlib import Path

from colorama import init as colorama_init  # type: ignore[import-untyped]

from .controller import CLIController


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """CLI引数を解析する"""
    parser = argparse.ArgumentParser(
        prog="relay-scribe",
        description="Live transcript relay with de-duplication and multi-language translation",
    )
    parser.add_argument(
        "-c",
        "--config-dir",
        type=Path,
        default=None,
        metavar="DIR",
        help="Directory containing config.toml / config.local.toml",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Write status messages through logging instead of the console view",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    replay = subparsers.add_parser(
        "replay",
        help="Feed recognized text line by line ('~ ' prefix marks partial text)",
    )
    replay.add_argument(
        "file",
        type=str,
        metavar="PATH",
        help="Text file to replay ('-' for stdin)",
    )
    replay.add_argument("-s", "--source", default="en", help="Primary language code")
    replay.add_argument(
        "-t",
        "--targets",
        nargs="+",
        default=None,
        metavar="LANG",
        help="Target language codes (default: translation.default_target_languages)",
    )
    replay.add_argument("--session-id", default=None, help="Session ID (default: random)")

    translate = subparsers.add_parser("translate", help="Translate a single text")
    translate.add_argument("text", help="Text to translate")
    translate.add_argument(
        "-t", "--targets", nargs="+", required=True, metavar="LANG", help="Target language codes"
    )
    translate.add_argument("-s", "--source", default=None, help="Source language code")

    backfill = subparsers.add_parser(
        "backfill", help="Retry translation of pending or failed segments"
    )
    backfill.add_argument("-n", "--limit", type=int, default=10, help="Maximum segments")

    subparsers.add_parser("stats", help="Show translation cache statistics")

    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> None:
    """エントリーポイント"""
    # CLI引数解析
    args = parse_args(argv)

    # colorama初期化
    colorama_init(autoreset=True)

    try:
        controller = CLIController(config_dir=args.config_dir, verbose=args.verbose)
    except ValueError as e:
        # 設定ファイルの検証エラー
        sys.stderr.write(f"Configuration error: {e}\n")
        sys.exit(1)

    match args.command:
        case "replay":
            if args.file == "-":
                code = controller.replay(sys.stdin, args.source, args.targets, args.session_id)
            else:
                with open(args.file, encoding="utf-8") as f:
                    code = controller.replay(f, args.source, args.targets, args.session_id)
        case "translate":
            code = controller.translate(args.text, args.targets, args.source)
        case "backfill":
            code = controller.backfill(args.limit)
        case "stats":
            code = controller.stats()
        case _:
            code = 2

    sys.exit(code)


if __name__ == "__main__":
    main()
