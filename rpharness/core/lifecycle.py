"""
テストライフサイクル — テスト定義と開始・終了フック

テストごとのメタ情報（名前・優先度・カテゴリ・説明）をテスト定義時に
CaseDefinition として確定させ、開始・終了フックでレポートに反映する。

主な構成:
  - CaseDefinition: テスト定義（優先度は定義時に検証）
  - define_case(): テスト関数に CaseDefinition を付与するデコレータ
  - HarnessSession: 1 テスト分の StepTracker / HarnessLogger / StepExecutor
  - LifecycleHooks: on_test_start() / on_test_end() / on_test_end_async()
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import TYPE_CHECKING, Any, Awaitable, Callable, Iterable, Optional, Union

from ..backends import ReportBackend, call_backend
from .executor import StepExecutor
from .logger import HarnessLogger
from .models import StepStatus
from .priority import Priority, display_attributes, format_priority_badge, guidance
from .tracker import StepTracker

if TYPE_CHECKING:
    from .artifacts import ArtifactsManager

logger = logging.getLogger(__name__)

# スクリーンショット保存関数（保存先パスを受け取る）
Capture = Callable[[Path], Any]
AsyncCapture = Callable[[Path], Awaitable[Any]]


# ---------------------------------------------------------------------------
# テスト定義
# ---------------------------------------------------------------------------

@dataclass
class CaseDefinition:
    """テストのメタ情報。

    priority は生成時に Priority へ変換し、未知の値は
    ConfigurationError としてテスト定義時点で送出する。

    Attributes:
        name: テスト名
        priority: 優先度（未指定の場合は None）
        categories: カテゴリ
        description: 説明文
    """

    name: str
    priority: Optional[Priority] = None
    categories: tuple[str, ...] = ()
    description: str = ""

    def __post_init__(self) -> None:
        if self.priority is not None:
            self.priority = Priority.parse(self.priority)
        self.categories = tuple(self.categories)


def define_case(
    priority: Union[Priority, str, None] = None,
    categories: Iterable[str] = (),
    description: Optional[str] = None,
    name: Optional[str] = None,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """テスト関数に CaseDefinition を付与するデコレータ。

    使用例::

        @define_case(priority="Critical", categories=["Login"], description="正常ログイン")
        def test_login(harness):
            ...

    Raises:
        ConfigurationError: 未知の優先度の場合（デコレート時に送出）
    """
    categories = tuple(categories)

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        func.case_definition = CaseDefinition(  # type: ignore[attr-defined]
            name=name or func.__name__,
            priority=priority,
            categories=categories,
            description=description or "",
        )
        return func

    return decorator


# ---------------------------------------------------------------------------
# セッション
# ---------------------------------------------------------------------------

@dataclass
class HarnessSession:
    """1 テスト分のレポート用オブジェクト一式。

    Attributes:
        definition: テスト定義
        tracker: このテスト専用の StepTracker
        log: HarnessLogger
        executor: StepExecutor
        root_handle: テスト項目のハンドル（開始失敗時は None）
        outcome: テスト結果（終了前は None）
    """

    definition: CaseDefinition
    tracker: StepTracker
    log: HarnessLogger
    executor: StepExecutor
    root_handle: Any = None
    outcome: Optional[StepStatus] = None
    _started: float = field(default_factory=time.perf_counter, repr=False)

    @property
    def elapsed_ms(self) -> float:
        return (time.perf_counter() - self._started) * 1000


# ---------------------------------------------------------------------------
# ライフサイクルフック
# ---------------------------------------------------------------------------

class LifecycleHooks:
    """テスト開始・終了時のレポート処理。

    テストごとに新しい StepTracker を生成するため、
    並列ワーカー間でステップレジストリを共有しない。
    """

    def __init__(
        self,
        backend: ReportBackend,
        artifacts: Optional[ArtifactsManager] = None,
        screenshot_on_failure: bool = True,
    ) -> None:
        self._backend = backend
        self._artifacts = artifacts
        self.screenshot_on_failure = screenshot_on_failure

    @property
    def backend(self) -> ReportBackend:
        return self._backend

    # ----- 開始 -----

    def on_test_start(self, definition: CaseDefinition) -> HarnessSession:
        """テスト項目を開始し、テスト情報をログに記録する。

        Args:
            definition: テスト定義

        Returns:
            このテスト用の HarnessSession
        """
        attributes: list[tuple[str, str]] = []
        if definition.priority is not None:
            attributes.append(("priority", definition.priority.name.capitalize()))
        attributes.extend(("category", category) for category in definition.categories)

        root_handle = call_backend(
            self._backend.start_item,
            definition.name,
            description=definition.description,
            category=", ".join(definition.categories),
            start_time=datetime.now(timezone.utc),
            attributes=attributes,
        )
        tracker = StepTracker(self._backend, root_handle=root_handle)
        log = HarnessLogger(tracker)
        session = HarnessSession(
            definition=definition,
            tracker=tracker,
            log=log,
            executor=StepExecutor(tracker, log),
            root_handle=root_handle,
        )

        log.log_section_header(f"Test started: {definition.name}")
        if definition.priority is not None:
            display = display_attributes(definition.priority)
            log.log_info(f"{display.icon} Priority: {format_priority_badge(definition.priority)}")
            log.log_custom(guidance(definition.priority), display.color, bold=True)
        if definition.categories:
            log.log_info(f"Categories: {', '.join(definition.categories)}")
        if definition.description:
            log.log_info(f"Description: {definition.description}")

        logger.info("テスト開始: %s", definition.name)
        return session

    # ----- 終了 -----

    def on_test_end(
        self,
        session: HarnessSession,
        outcome: StepStatus,
        failure_message: Optional[str] = None,
        capture: Optional[Capture] = None,
    ) -> None:
        """テスト項目を終了する。

        取り残しステップを SKIPPED で閉じ、失敗時はスクリーンショットを添付し、
        結果をログに記録してからテスト項目を終了する。
        OrphanedStepWarning がエラー扱いの場合も、テスト項目を終了してから送出する。

        Args:
            session: on_test_start() が返したセッション
            outcome: テスト結果（PASSED / FAILED / SKIPPED）
            failure_message: 失敗時のメッセージ
            capture: 保存先パスを受け取りスクリーンショットを保存する関数
        """
        self._check_outcome(outcome)
        try:
            session.tracker.close_all_as_skipped()
        finally:
            path = self._failure_screenshot_path(session, outcome, capture)
            if path is not None:
                try:
                    capture(path)  # type: ignore[misc]
                except Exception as e:
                    logger.warning("失敗時スクリーンショットを取得できません: %s", e)
                    session.log.log_warn(f"Failed to capture screenshot: {e}")
                else:
                    session.log.attach_screenshot(path, "Failure screenshot")
            self._finish(session, outcome, failure_message)

    async def on_test_end_async(
        self,
        session: HarnessSession,
        outcome: StepStatus,
        failure_message: Optional[str] = None,
        capture: Optional[AsyncCapture] = None,
    ) -> None:
        """on_test_end() の非同期版。capture を await する。"""
        self._check_outcome(outcome)
        try:
            session.tracker.close_all_as_skipped()
        finally:
            path = self._failure_screenshot_path(session, outcome, capture)
            if path is not None:
                try:
                    await capture(path)  # type: ignore[misc]
                except Exception as e:
                    logger.warning("失敗時スクリーンショットを取得できません: %s", e)
                    session.log.log_warn(f"Failed to capture screenshot: {e}")
                else:
                    session.log.attach_screenshot(path, "Failure screenshot")
            self._finish(session, outcome, failure_message)

    # ----- 内部 -----

    @staticmethod
    def _check_outcome(outcome: StepStatus) -> None:
        if not outcome.is_terminal:
            raise ValueError("テスト結果には passed / failed / skipped を指定してください")

    def _failure_screenshot_path(
        self,
        session: HarnessSession,
        outcome: StepStatus,
        capture: Any,
    ) -> Optional[Path]:
        if outcome is not StepStatus.FAILED or not self.screenshot_on_failure or capture is None:
            return None
        if self._artifacts is None or self._artifacts.run_dir is None:
            logger.debug("成果物ディレクトリが未設定のためスクリーンショットを省略します")
            return None
        return self._artifacts.screenshot_path(session.definition.name)

    def _finish(
        self,
        session: HarnessSession,
        outcome: StepStatus,
        failure_message: Optional[str],
    ) -> None:
        log = session.log
        definition = session.definition

        log.log_performance_metric("Test duration", round(session.elapsed_ms, 2), "ms")
        if outcome is StepStatus.PASSED:
            log.log_info(f"✅ Test passed: {definition.name}")
        elif outcome is StepStatus.SKIPPED:
            log.log_warn(f"Test skipped: {definition.name}" + (f" - {failure_message}" if failure_message else ""))
        else:
            log.log_error(f"❌ Test failed: {definition.name}" + (f" - {failure_message}" if failure_message else ""))
            if definition.priority is Priority.CRITICAL:
                log.log_fatal("CRITICAL TEST FAILURE - this failure blocks the release")

        session.outcome = outcome
        if session.root_handle is not None:
            call_backend(
                self._backend.finish_item,
                session.root_handle,
                datetime.now(timezone.utc),
                outcome,
            )
        logger.info("テスト終了: %s -> %s", definition.name, outcome.value)
