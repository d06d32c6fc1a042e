#!/usr/bin/env python3
"""
Relay Scribe - Bounded Retry
一時的な失敗・「処理中」プレースホルダに対する再試行ユーティリティ
"""

import random
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from relay_scribe.domain import MessageLevel, ProviderError, post_message

T = TypeVar("T")

# 再試行対象のHTTPステータス
_RETRYABLE_STATUS_CODES: frozenset[int] = frozenset({408, 409, 429, 500, 502, 503, 504})

# SDK（anthropic / openai）の一時的エラーの型名
_RETRYABLE_ERROR_TYPES: frozenset[str] = frozenset(
    {
        "RateLimitError",
        "APITimeoutError",
        "APIConnectionError",
        "InternalServerError",
        "Timeout",
        "ConnectTimeout",
        "ReadTimeout",
        "ConnectionError",
    }
)


def is_retryable_exception(exc: BaseException) -> bool:
    """
    例外が一時的な失敗（レート制限・5xx・タイムアウト・接続断）かどうか

    anthropic / openai / requests の例外を型名とステータスコードで判定する。
    """
    if type(exc).__name__ in _RETRYABLE_ERROR_TYPES:
        return True

    status_code = getattr(exc, "status_code", None)
    if status_code is None:
        # requests.HTTPError はレスポンス側にステータスを持つ
        response = getattr(exc, "response", None)
        status_code = getattr(response, "status_code", None)

    return isinstance(status_code, int) and status_code in _RETRYABLE_STATUS_CODES


def to_provider_error(provider: str, exc: Exception) -> ProviderError:
    """SDK / HTTP の例外を ProviderError に変換"""
    if isinstance(exc, ProviderError):
        return exc
    return ProviderError(
        provider,
        f"{type(exc).__name__}: {exc}",
        retryable=is_retryable_exception(exc),
    )


@dataclass(frozen=True)
class RetryPolicy:
    """
    再試行ポリシー

    Attributes:
        max_attempts: 最大試行回数（初回を含む）
        base_delay_sec: 初回の待機時間
        max_delay_sec: 待機時間の上限
        jitter_sec: 待機に加える一様乱数の上限
        total_budget_sec: 待機を含む総時間の上限
        backoff_factor: 待機時間の倍率
    """

    max_attempts: int = 4
    base_delay_sec: float = 0.5
    max_delay_sec: float = 4.0
    jitter_sec: float = 0.1
    total_budget_sec: float = 8.0
    backoff_factor: float = 2.0

    def delay_for(self, attempt: int, jitter: float = 0.0) -> float:
        """attempt 回目（1始まり）の失敗後に待つ時間"""
        delay = self.base_delay_sec * self.backoff_factor ** (attempt - 1)
        return min(delay, self.max_delay_sec) + jitter * self.jitter_sec


@dataclass(frozen=True)
class RetryOutcome(Generic[T]):
    """
    再試行の結果

    timed_out=True の場合、value は最後に得られたプレースホルダ（なければNone）。
    """

    value: T | None
    attempts: int
    timed_out: bool = False

    @property
    def ok(self) -> bool:
        return not self.timed_out


def retry_with_backoff(
    operation: Callable[[], T],
    policy: RetryPolicy,
    is_pending: Callable[[T], bool] | None = None,
    description: str = "operation",
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
    jitter: Callable[[], float] = random.random,
) -> RetryOutcome[T]:
    """
    指数バックオフ付きで operation を再試行

    - 再試行可能な ProviderError: 待機して再試行、尽きたら最後の例外を送出
    - 再試行不可の ProviderError: 即座に送出
    - is_pending が True を返す結果（処理中プレースホルダ）: 待機して再試行、
      尽きたら timed_out=True の結果を返す

    Args:
        operation: 実行する処理
        policy: 再試行ポリシー
        is_pending: 結果がまだ確定していないかを判定する関数
        description: ログ用の処理名
        sleep: 待機関数（テスト用に差し替え可能）
        clock: 総時間予算の計算に使う時計関数
        jitter: 0.0〜1.0 の乱数を返す関数

    Returns:
        RetryOutcome: 結果と試行回数

    Raises:
        ProviderError: 再試行不可の失敗、または再試行を使い切った場合
    """
    started = clock()
    last_value: T | None = None
    attempts = max(1, policy.max_attempts)

    for attempt in range(1, attempts + 1):
        try:
            value = operation()
        except ProviderError as exc:
            if not exc.retryable or not _can_wait(
                policy, attempt, attempts, started, clock
            ):
                raise
            delay = policy.delay_for(attempt, jitter())
            post_message(
                None,
                f"{description} failed (attempt {attempt}/{attempts}): {exc} - retrying in {delay:.1f}s",
                MessageLevel.WARNING,
            )
            sleep(delay)
            continue

        if is_pending is None or not is_pending(value):
            return RetryOutcome(value=value, attempts=attempt)

        last_value = value
        if not _can_wait(policy, attempt, attempts, started, clock):
            break
        sleep(policy.delay_for(attempt, jitter()))

    post_message(
        None,
        f"{description} still pending after {attempt} attempt(s)",
        MessageLevel.WARNING,
    )
    return RetryOutcome(value=last_value, attempts=attempt, timed_out=True)


def _can_wait(
    policy: RetryPolicy,
    attempt: int,
    attempts: int,
    started: float,
    clock: Callable[[], float],
) -> bool:
    """次の試行を行う余地（回数・総時間）があるか"""
    if attempt >= attempts:
        return False
    projected = clock() - started + policy.delay_for(attempt)
    return projected <= policy.total_budget_sec
