"""
テスト共通フィクスチャ・Hypothesis ストラテジー定義

全テストモジュールで共有するフィクスチャとデータ生成器を提供する。
レポートバックエンドは呼び出しを記録する RecordingBackend で代替し、
ReportPortal や実ブラウザには接続しない。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import pytest
from hypothesis import strategies as st

from rpharness.core.artifacts import ArtifactsManager
from rpharness.core.executor import StepExecutor
from rpharness.core.logger import HarnessLogger
from rpharness.core.models import Attachment, LogLevel, StepStatus
from rpharness.core.tracker import StepTracker


# ---------------------------------------------------------------------------
# 記録用バックエンド
# ---------------------------------------------------------------------------

@dataclass
class RecordedLog:
    handle: Any
    text: str
    level: LogLevel
    timestamp: datetime
    attachment: Optional[Attachment] = None


@dataclass
class RecordingBackend:
    """ReportBackend の呼び出しを記録するテスト用バックエンド。

    fail_on に含まれるメソッド名の呼び出しは RuntimeError を送出する。
    """

    fail_on: set[str] = field(default_factory=set)
    started: list[dict[str, Any]] = field(default_factory=list)
    logs: list[RecordedLog] = field(default_factory=list)
    finished: list[tuple[Any, datetime, StepStatus]] = field(default_factory=list)
    calls: list[str] = field(default_factory=list)
    closed: bool = False

    def _check(self, name: str) -> None:
        self.calls.append(name)
        if name in self.fail_on:
            raise RuntimeError(f"{name} unavailable")

    def start_item(self, name, *, description="", category="", start_time, parent=None, attributes=()):
        self._check("start_item")
        handle = f"item-{len(self.started)}"
        self.started.append({
            "handle": handle,
            "name": name,
            "description": description,
            "category": category,
            "start_time": start_time,
            "parent": parent,
            "attributes": list(attributes),
        })
        return handle

    def log(self, handle, text, level, timestamp, attachment=None):
        self._check("log")
        self.logs.append(RecordedLog(handle, text, level, timestamp, attachment))

    def finish_item(self, handle, end_time, status):
        self._check("finish_item")
        self.finished.append((handle, end_time, status))

    def close(self):
        self._check("close")
        self.closed = True

    # ----- 参照用ヘルパー -----

    def names(self) -> list[str]:
        return [item["name"] for item in self.started]

    def statuses(self) -> list[StepStatus]:
        return [status for _, _, status in self.finished]

    def logs_for(self, handle: Any) -> list[RecordedLog]:
        return [entry for entry in self.logs if entry.handle == handle]

    def attachments(self) -> list[Attachment]:
        return [entry.attachment for entry in self.logs if entry.attachment is not None]


# ---------------------------------------------------------------------------
# pytest フィクスチャ
# ---------------------------------------------------------------------------

@pytest.fixture
def backend() -> RecordingBackend:
    return RecordingBackend()


@pytest.fixture
def tracker(backend: RecordingBackend) -> StepTracker:
    """テスト項目 "root" の下にステップを開始する StepTracker。"""
    return StepTracker(backend, root_handle="root")


@pytest.fixture
def log(tracker: StepTracker) -> HarnessLogger:
    return HarnessLogger(tracker)


@pytest.fixture
def executor(tracker: StepTracker, log: HarnessLogger) -> StepExecutor:
    return StepExecutor(tracker, log)


@pytest.fixture
def artifacts(tmp_path: Path) -> ArtifactsManager:
    """実行ディレクトリ作成済みの ArtifactsManager。"""
    manager = ArtifactsManager(base_dir=tmp_path / "artifacts")
    manager.create_run_dir(datetime(2024, 1, 15, 10, 30, 0))
    return manager


@pytest.fixture
def screenshot_file(tmp_path: Path) -> Path:
    """PNG ヘッダーだけを持つダミーのスクリーンショット。"""
    path = tmp_path / "shot.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\n")
    return path


# ---------------------------------------------------------------------------
# Hypothesis ストラテジー
# ---------------------------------------------------------------------------

step_names = st.text(
    alphabet=st.characters(blacklist_categories=("Cs",)),
    min_size=1,
    max_size=30,
)

terminal_statuses = st.sampled_from([StepStatus.PASSED, StepStatus.FAILED, StepStatus.SKIPPED])

# open / close 操作列: ("open", 名前) または ("close", 開始済みステップの番号)
step_operations = st.lists(
    st.one_of(
        st.tuples(st.just("open"), step_names),
        st.tuples(st.just("close"), st.integers(min_value=0, max_value=20)),
    ),
    max_size=40,
)
