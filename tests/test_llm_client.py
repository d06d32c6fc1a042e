#!/usr/bin/env python3
"""
Tests for LLM Client Adapters
LLMクライアントの出力整形・SDK呼び出し・例外変換のテスト
"""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from anthropic.types import TextBlock

from relay_scribe.domain import LLMBackend, ProviderError, TranslationSettings
from relay_scribe.infrastructure.providers import (
    ClaudeClient,
    OpenAIClient,
    clean_llm_output,
    create_llm_client,
)


class APITimeoutError(Exception):
    """SDKのタイムアウト例外と同名のダミー"""


def openai_response(content: str | None) -> SimpleNamespace:
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content))]
    )


class TestCleanLLMOutput:
    """思考過程・引用符除去のテスト"""

    def test_removes_think_tags(self) -> None:
        """思考過程タグを除去"""
        response = """<think>
Okay, the user wants a Korean translation. Keep it short.
</think>

안녕하세요, 여러분"""
        assert clean_llm_output(response) == "안녕하세요, 여러분"

    def test_removes_multiple_think_tags(self) -> None:
        response = "<think>a</think>Hello<think>b</think> world"
        assert clean_llm_output(response) == "Hello world"

    @pytest.mark.parametrize(
        "response",
        ['"你好，大家"', "'你好，大家'", "“你好，大家”", "「你好，大家」"],
    )
    def test_removes_wrapping_quotes(self, response: str) -> None:
        assert clean_llm_output(response) == "你好，大家"

    def test_keeps_inner_quotes(self) -> None:
        assert clean_llm_output('He said "hi" to me') == 'He said "hi" to me'

    def test_plain_text_unchanged(self) -> None:
        assert clean_llm_output("  नमस्ते  ") == "नमस्ते"


class TestOpenAIClient:
    """OpenAIクライアントのテスト"""

    def test_sends_chat_completion(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.return_value = openai_response('"Bonjour"')
        client = OpenAIClient(TranslationSettings(openai_model="gpt-test"), client=sdk)

        result = client("system", "user", temperature=0.2, max_tokens=50)

        assert result == "Bonjour"
        kwargs = sdk.chat.completions.create.call_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["temperature"] == 0.2
        assert kwargs["max_tokens"] == 50
        assert kwargs["messages"][0] == {"role": "system", "content": "system"}

    def test_omits_temperature_when_none(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.return_value = openai_response("ok")
        OpenAIClient(TranslationSettings(), client=sdk)("s", "u")
        assert "temperature" not in sdk.chat.completions.create.call_args.kwargs

    def test_empty_response_returns_none(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.return_value = openai_response(None)
        assert OpenAIClient(TranslationSettings(), client=sdk)("s", "u") is None

    def test_sdk_error_becomes_provider_error(self) -> None:
        sdk = MagicMock()
        sdk.chat.completions.create.side_effect = APITimeoutError("timed out")
        client = OpenAIClient(TranslationSettings(), client=sdk)

        with pytest.raises(ProviderError) as exc_info:
            client("s", "u")
        assert exc_info.value.provider == "gpt"
        assert exc_info.value.retryable is True


class TestClaudeClient:
    """Claudeクライアントのテスト"""

    def test_returns_text_block(self) -> None:
        sdk = MagicMock()
        sdk.messages.create.return_value = SimpleNamespace(
            content=[TextBlock(type="text", text="<think>x</think>안녕")]
        )
        client = ClaudeClient(TranslationSettings(anthropic_api_key="k"), client=sdk)

        assert client("system", "user") == "안녕"
        kwargs = sdk.messages.create.call_args.kwargs
        assert kwargs["system"] == "system"
        assert kwargs["messages"] == [{"role": "user", "content": "user"}]

    def test_non_text_block_returns_none(self) -> None:
        sdk = MagicMock()
        sdk.messages.create.return_value = SimpleNamespace(content=[SimpleNamespace(type="tool_use")])
        client = ClaudeClient(TranslationSettings(anthropic_api_key="k"), client=sdk)
        assert client("s", "u") is None


class TestFactory:
    """ファクトリ関数のテスト"""

    def test_missing_anthropic_key(self) -> None:
        with pytest.raises(ProviderError):
            create_llm_client(LLMBackend.CLAUDE, TranslationSettings())

    def test_missing_openai_key(self) -> None:
        with pytest.raises(ProviderError):
            create_llm_client(LLMBackend.OPENAI, TranslationSettings())

    def test_openai_base_url_without_key(self) -> None:
        settings = TranslationSettings(openai_base_url="http://localhost:8000/v1")
        client = create_llm_client(LLMBackend.OPENAI, settings)
        assert isinstance(client, OpenAIClient)
        assert "localhost" in client.get_backend_info()
