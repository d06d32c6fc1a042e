"""テスト共通フィクスチャ"""

import os

import pytest

# 設定クラスが読み込みうる環境変数（開発者の環境に依存させない）
_ISOLATED_ENV_VARS = ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "GOOGLE_API_KEY")


class FakeClock:
    """手動で進める時計（秒）"""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """APIキー・RELAY_SCRIBE_ 接頭辞の環境変数を取り除く"""
    for name in list(os.environ):
        if name in _ISOLATED_ENV_VARS or name.startswith("RELAY_SCRIBE_"):
            monkeypatch.delenv(name, raising=False)
