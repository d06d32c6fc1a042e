"""message_posted から logging へのブリッジのテスト"""

import logging

import pytest

from relay_scribe.domain import MessageLevel, post_message
from relay_scribe.infrastructure import configure_logging, get_logger


class Component:
    pass


def test_get_logger_namespaced() -> None:
    assert get_logger().name == "relay_scribe"
    assert get_logger("Component").name == "relay_scribe.Component"


@pytest.mark.parametrize(
    ("level", "expected"),
    [
        (MessageLevel.INFO, logging.INFO),
        (MessageLevel.SUCCESS, logging.INFO),
        (MessageLevel.WARNING, logging.WARNING),
        (MessageLevel.ERROR, logging.ERROR),
    ],
)
def test_messages_forwarded(
    caplog: pytest.LogCaptureFixture, level: MessageLevel, expected: int
) -> None:
    configure_logging()
    configure_logging()  # 2回目は何もしない

    with caplog.at_level(logging.INFO, logger="relay_scribe"):
        post_message(Component(), "cache warmed", level)

    records = [r for r in caplog.records if r.getMessage() == "cache warmed"]
    assert len(records) == 1
    assert records[0].name == "relay_scribe.Component"
    assert records[0].levelno == expected
