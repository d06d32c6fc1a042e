"""CLI（引数解析・コントローラー）のテスト"""

import io
from pathlib import Path

import pytest

from relay_scribe.presentation.cli import CLIController
from relay_scribe.presentation.cli.main import parse_args


class TestParseArgs:
    def test_replay_defaults(self) -> None:
        args = parse_args(["replay", "talk.txt"])

        assert args.command == "replay"
        assert args.file == "talk.txt"
        assert args.source == "en"
        assert args.targets is None
        assert args.config_dir is None

    def test_translate(self) -> None:
        args = parse_args(["-v", "translate", "hello", "-t", "ko", "zh", "-s", "en"])

        assert args.verbose
        assert args.targets == ["ko", "zh"]
        assert args.source == "en"

    def test_translate_requires_targets(self) -> None:
        with pytest.raises(SystemExit):
            parse_args(["translate", "hello"])

    def test_backfill_limit(self) -> None:
        assert parse_args(["backfill", "-n", "3"]).limit == 3

    def test_command_required(self) -> None:
        with pytest.raises(SystemExit):
            parse_args([])


class TestCLIController:
    """設定ファイルなし（翻訳無効・メモリ保存）での実行"""

    def test_replay(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        controller = CLIController(config_dir=tmp_path)
        source = io.StringIO(
            "~ Good mor\n"
            "Good morning everyone\n"
            "\n"
            "Good morning everyone\n"
            "Let us begin with the agenda\n"
        )

        code = controller.replay(source, "en", ["ko"], session_id="demo")

        out = capsys.readouterr().out
        assert code == 0
        assert "Good morning everyone" in out
        assert "exact duplicate" in out
        assert "Let us begin with the agenda" in out
        assert "Session demo ended: 2 segments" in out
        assert controller.app is not None
        assert controller.app.active_session_ids() == []

    def test_translate_without_provider_fails(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        controller = CLIController(config_dir=tmp_path)

        assert controller.translate("hello", ["ko"], "en") == 1
        assert "translation provider not configured" in capsys.readouterr().out

    def test_stats(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert CLIController(config_dir=tmp_path).stats() == 0
        assert "Entries: 0" in capsys.readouterr().out

    def test_stats_warns_about_memory_store(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        assert CLIController(config_dir=tmp_path).stats() == 0
        assert "in-memory store" in capsys.readouterr().out

    def test_backfill_on_sqlite_has_no_warning(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        database = (tmp_path / "relay.db").as_posix()
        (tmp_path / "config.toml").write_text(
            f"[persistence]\nbackend = \"sqlite\"\ndatabase_path = \"{database}\"\n",
            encoding="utf-8",
        )

        assert CLIController(config_dir=tmp_path).backfill(limit=10) == 0
        out = capsys.readouterr().out
        assert "Backfilled 0 segment(s)" in out
        assert "in-memory store" not in out

    def test_invalid_config_reported(
        self, tmp_path: Path, capsys: pytest.CaptureFixture[str]
    ) -> None:
        (tmp_path / "config.toml").write_text(
            "[translation]\nenabled = true\nbackend = \"claude\"\n", encoding="utf-8"
        )
        with pytest.raises(ValueError):
            CLIController(config_dir=tmp_path)
