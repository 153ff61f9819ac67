"""
StepExecutor — アクションをステップで包んで実行する

テストコードの公開エントリポイント。ステップを開始し、アクションを実行し、
結果に応じてステップを必ず 1 回だけ終了させる。アクションの例外は
ステップに記録したうえで、そのまま呼び出し元へ再送出する。

主な機能:
  - run_step() / run_step_with_result(): 同期アクションの実行
  - run_step_async(): 非同期アクションの実行
  - as_step(): 関数をステップ化するデコレータ
  - begin_step(): with / async with で使うスコープ付きステップ（ScopedStep）

終了ステータスの決定:
  - 正常終了 → PASSED "Step completed successfully"
  - Exception → FAILED "Step failed: <例外メッセージ>"（例外は再送出）
  - それ以外の BaseException（CancelledError, KeyboardInterrupt 等）
    → SKIPPED "Step interrupted: <型名>"（例外は再送出）
"""

from __future__ import annotations

import functools
import inspect
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional, TypeVar, Union

from .logger import HarnessLogger
from .models import StepStatus
from .tracker import StepTracker

logger = logging.getLogger(__name__)

T = TypeVar("T")

SUCCESS_MESSAGE = "Step completed successfully"


def _failure_message(exc: BaseException) -> str:
    return f"Step failed: {exc}"


def _interrupted_message(exc: BaseException) -> str:
    return f"Step interrupted: {type(exc).__name__}"


# ---------------------------------------------------------------------------
# StepExecutor
# ---------------------------------------------------------------------------

class StepExecutor:
    """アクションの実行とステップのライフサイクルを結び付ける。

    使用例::

        executor = StepExecutor(tracker, log)
        title = executor.run_step("Read title", lambda: page.title())
        await executor.run_step_async("Login", lambda: login_page.login(user, pw))
    """

    def __init__(self, tracker: StepTracker, log: HarnessLogger) -> None:
        self._tracker = tracker
        self._log = log

    @property
    def tracker(self) -> StepTracker:
        return self._tracker

    @property
    def log(self) -> HarnessLogger:
        return self._log

    # -------------------------------------------------------------------
    # 同期
    # -------------------------------------------------------------------

    def run_step(
        self,
        name: str,
        action: Callable[[], T],
        category: str = "Action",
        description: str = "",
        parent: Optional[str] = None,
    ) -> T:
        """アクションをステップとして実行する。

        Args:
            name: ステップ名
            action: 引数なしで呼び出すアクション
            category: 分類
            description: 説明文
            parent: 親ステップ ID

        Returns:
            action の戻り値

        Raises:
            action が送出した例外をそのまま再送出する。
            action がコルーチンを返した場合は TypeError。
        """
        step_id = self._tracker.open(name, description, category, parent)
        try:
            result = action()
            if inspect.isawaitable(result):
                if inspect.iscoroutine(result):
                    result.close()
                raise TypeError(
                    f"step '{name}' returned an awaitable; use run_step_async for async actions"
                )
        except Exception as exc:
            self._tracker.close(step_id, StepStatus.FAILED, _failure_message(exc))
            raise
        except BaseException as exc:
            self._tracker.close(step_id, StepStatus.SKIPPED, _interrupted_message(exc))
            raise
        self._tracker.close(step_id, StepStatus.PASSED, SUCCESS_MESSAGE)
        return result

    run_step_with_result = run_step

    # -------------------------------------------------------------------
    # 非同期
    # -------------------------------------------------------------------

    async def run_step_async(
        self,
        name: str,
        action: Callable[[], Awaitable[T]],
        category: str = "Action",
        description: str = "",
        parent: Optional[str] = None,
    ) -> T:
        """非同期アクションをステップとして実行する。

        キャンセル（asyncio.CancelledError）された場合は SKIPPED で終了し、
        キャンセルを再送出する。その他は run_step と同じ。
        """
        step_id = self._tracker.open(name, description, category, parent)
        try:
            result = action()
            if inspect.isawaitable(result):
                result = await result
        except Exception as exc:
            self._tracker.close(step_id, StepStatus.FAILED, _failure_message(exc))
            raise
        except BaseException as exc:
            self._tracker.close(step_id, StepStatus.SKIPPED, _interrupted_message(exc))
            raise
        self._tracker.close(step_id, StepStatus.PASSED, SUCCESS_MESSAGE)
        return result

    # -------------------------------------------------------------------
    # デコレータ
    # -------------------------------------------------------------------

    def as_step(
        self,
        name: Optional[str] = None,
        description: str = "",
        category: str = "Action",
    ) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
        """関数の呼び出しをステップとして記録するデコレータ。

        ステップ名を省略した場合は関数名を使う。async 関数にも対応する。
        """

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            step_name = name or func.__name__

            if inspect.iscoroutinefunction(func):
                @functools.wraps(func)
                async def async_wrapper(*args: Any, **kwargs: Any) -> Any:
                    return await self.run_step_async(
                        step_name, lambda: func(*args, **kwargs), category, description,
                    )

                return async_wrapper

            @functools.wraps(func)
            def wrapper(*args: Any, **kwargs: Any) -> Any:
                return self.run_step(
                    step_name, lambda: func(*args, **kwargs), category, description,
                )

            return wrapper

        return decorator

    # -------------------------------------------------------------------
    # スコープ付きステップ
    # -------------------------------------------------------------------

    def begin_step(
        self,
        name: str,
        description: str = "",
        category: str = "",
        parent: Optional[str] = None,
    ) -> ScopedStep:
        """スコープ付きステップを開始する。

        戻り値を with / async with で使うと、ブロックを抜けるときに必ず終了する。
        """
        step_id = self._tracker.open(name, description, category, parent)
        return ScopedStep(self, step_id, name)


# ---------------------------------------------------------------------------
# ScopedStep
# ---------------------------------------------------------------------------

class ScopedStep:
    """with ブロックの終了時に必ず終了するステップ。

    ステータスの既定値は PASSED。不合格の検証や failed() / skipped() の呼び出しで
    上書きできる。ブロックから Exception が抜けた場合は FAILED、
    それ以外の BaseException の場合は SKIPPED で終了する。

    使用例::

        with executor.begin_step("Submit form", category="Action") as step:
            step.log_action("Click", "#submit")
            step.log_verification("Saved", "OK", status_text, passed=status_text == "OK")
    """

    def __init__(self, executor: StepExecutor, step_id: str, name: str) -> None:
        self._executor = executor
        self.step_id = step_id
        self.name = name
        self.status = StepStatus.PASSED
        self.message = SUCCESS_MESSAGE
        self.closed = False

    @property
    def _log(self) -> HarnessLogger:
        return self._executor.log

    # ----- ログ -----

    def log_action(self, action: str, target: str = "", value: str = "") -> ScopedStep:
        self._log.log_action(action, target, value, step=self.step_id)
        return self

    def log_verification(
        self,
        description: str,
        expected: str = "",
        actual: str = "",
        passed: bool = True,
    ) -> ScopedStep:
        """検証結果を記録する。不合格の場合はステップを FAILED にする。"""
        self._log.log_verification(description, expected, actual, passed, step=self.step_id)
        if not passed:
            self.failed(f"Verification failed: {description}")
        return self

    def log_test_data(self, name: str, value: Any) -> ScopedStep:
        self._log.log_test_data(name, value, step=self.step_id)
        return self

    def log_info(self, message: str) -> ScopedStep:
        self._log.log_info(message, step=self.step_id)
        return self

    def attach_screenshot(self, path: Union[str, Path], description: str = "Screenshot") -> ScopedStep:
        self._log.attach_screenshot(path, description, step=self.step_id)
        return self

    # ----- ステータス -----

    def set_result(self, status: StepStatus, message: str = "") -> ScopedStep:
        """終了時のステータスとメッセージを設定する。"""
        if not status.is_terminal:
            raise ValueError("終了ステータスには passed / failed / skipped を指定してください")
        self.status = status
        self.message = message
        return self

    def passed(self, message: str = SUCCESS_MESSAGE) -> ScopedStep:
        return self.set_result(StepStatus.PASSED, message)

    def failed(self, message: str = "Step failed") -> ScopedStep:
        return self.set_result(StepStatus.FAILED, message)

    def skipped(self, message: str = "Step skipped") -> ScopedStep:
        return self.set_result(StepStatus.SKIPPED, message)

    def close(self) -> None:
        """ステップを終了する。2 回目以降の呼び出しは何もしない。"""
        if self.closed:
            return
        self.closed = True
        self._executor.tracker.close(self.step_id, self.status, self.message)

    # ----- コンテキストマネージャ -----

    def _exit(self, exc: Optional[BaseException]) -> None:
        if isinstance(exc, Exception):
            self.failed(_failure_message(exc))
        elif exc is not None:
            self.skipped(_interrupted_message(exc))
        self.close()

    def __enter__(self) -> ScopedStep:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self._exit(exc)

    async def __aenter__(self) -> ScopedStep:
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        self._exit(exc)
