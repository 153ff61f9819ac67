"""
pytest プラグイン — harness フィクスチャとテスト結果のレポート連携

conftest.py で ``pytest_plugins = ["rpharness.plugin"]`` と宣言するか、
``pytest -p rpharness.plugin`` で有効化する。

主な機能:
  - --harness-config: 設定ファイルの指定（不正な設定は pytest.UsageError で実行前に中断）
  - harness フィクスチャ: テストごとの HarnessSession（StepExecutor / HarnessLogger）
  - テスト結果（passed / failed / skipped）の判定と失敗時スクリーンショット
  - セッション終了時のバックエンド終了とローカルレポート（JSON / HTML / JUnit XML）の生成
"""

from __future__ import annotations

import inspect
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

import pytest

from .backends import LocalBackend, ReportBackend, call_backend, create_backend
from .config import HarnessConfig, load_config
from .core.artifacts import ArtifactsManager
from .core.errors import ConfigurationError
from .core.lifecycle import CaseDefinition, HarnessSession, LifecycleHooks
from .core.models import StepStatus
from .core.reporting import Reporter

logger = logging.getLogger(__name__)


@dataclass
class HarnessRuntime:
    """プロセス（pytest ワーカー）単位の実行時オブジェクト。"""

    config: HarnessConfig
    artifacts: ArtifactsManager
    backend: ReportBackend
    hooks: LifecycleHooks


_RUNTIME_KEY = pytest.StashKey[HarnessRuntime]()
_REPORTS_KEY = pytest.StashKey[dict]()


# ---------------------------------------------------------------------------
# 設定
# ---------------------------------------------------------------------------

def pytest_addoption(parser: pytest.Parser) -> None:
    group = parser.getgroup("rpharness", "step-tree reporting harness")
    group.addoption(
        "--harness-config",
        action="store",
        default=None,
        help="Path to the harness configuration file (default: ./harness.yaml)",
    )


def pytest_configure(config: pytest.Config) -> None:
    try:
        harness_config = load_config(config.getoption("--harness-config"))
    except ConfigurationError as e:
        raise pytest.UsageError(f"rpharness: {e}") from e

    logging.getLogger("rpharness").setLevel(harness_config.log_level)

    artifacts = ArtifactsManager(base_dir=Path(harness_config.artifacts_dir))
    artifacts.create_run_dir()
    artifacts.save_config_copy(harness_config)
    artifacts.save_env_info(harness_config)

    backend = create_backend(harness_config, artifacts)
    config.stash[_RUNTIME_KEY] = HarnessRuntime(
        config=harness_config,
        artifacts=artifacts,
        backend=backend,
        hooks=LifecycleHooks(backend, artifacts, harness_config.screenshot_on_failure),
    )


def get_runtime(config: pytest.Config) -> Optional[HarnessRuntime]:
    """pytest_configure で生成した HarnessRuntime を返す。"""
    return config.stash.get(_RUNTIME_KEY, None)


# ---------------------------------------------------------------------------
# テスト結果の記録
# ---------------------------------------------------------------------------

@pytest.hookimpl(hookwrapper=True, tryfirst=True)
def pytest_runtest_makereport(item: pytest.Item, call: pytest.CallInfo) -> Iterator[Any]:
    outcome = yield
    report = outcome.get_result()
    item.stash.setdefault(_REPORTS_KEY, {})[report.when] = report


def _determine_outcome(reports: dict) -> tuple[StepStatus, Optional[str]]:
    """setup / call フェーズのレポートからテスト結果を判定する。"""
    for when in ("call", "setup"):
        report = reports.get(when)
        if report is None:
            continue
        if report.failed:
            message = report.longreprtext.strip().splitlines()
            return StepStatus.FAILED, message[-1] if message else None
        if report.skipped:
            reason = getattr(report, "wasxfail", None)
            if reason is None and isinstance(report.longrepr, tuple):
                reason = report.longrepr[2]
            return StepStatus.SKIPPED, reason
        if when == "call":
            return StepStatus.PASSED, None
    return StepStatus.PASSED, None


def _sync_page_capture(request: pytest.FixtureRequest):
    """同期 Page フィクスチャ（pytest-playwright）がある場合のスクリーンショット関数。"""
    page = request.node.funcargs.get("page")
    screenshot = getattr(page, "screenshot", None)
    if screenshot is None or inspect.iscoroutinefunction(screenshot):
        return None
    return lambda path: screenshot(path=str(path), full_page=True)


# ---------------------------------------------------------------------------
# フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def harness(request: pytest.FixtureRequest) -> Iterator[HarnessSession]:
    """テストごとの HarnessSession。

    テスト関数に define_case() で付与した CaseDefinition があれば使い、
    なければテスト名だけの定義を使う。
    """
    runtime = get_runtime(request.config)
    if runtime is None:
        pytest.fail("rpharness plugin is not configured")

    definition = getattr(request.function, "case_definition", None)
    if definition is None:
        definition = CaseDefinition(name=request.node.name)

    session = runtime.hooks.on_test_start(definition)
    yield session

    outcome, message = _determine_outcome(request.node.stash.get(_REPORTS_KEY, {}))
    runtime.hooks.on_test_end(session, outcome, message, _sync_page_capture(request))


# ---------------------------------------------------------------------------
# セッション終了
# ---------------------------------------------------------------------------

def pytest_sessionfinish(session: pytest.Session, exitstatus: int) -> None:
    runtime = get_runtime(session.config)
    if runtime is None:
        return

    call_backend(runtime.backend.close)

    backend = runtime.backend
    if isinstance(backend, LocalBackend) and backend.roots:
        reporter = Reporter(
            title=f"rpharness - {runtime.config.environment}",
            artifacts_dir=runtime.artifacts.run_dir,
        )
        output_dir = runtime.artifacts.reports_dir
        reporter.generate_json(backend.roots, output_dir)
        reporter.generate_html(backend.roots, output_dir)
        reporter.generate_junit_xml(backend.roots, output_dir)
        logger.info("ローカルレポートを出力しました: %s", output_dir)
