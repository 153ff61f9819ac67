"""
rpharness — ブラウザテスト用ステップツリーレポートハーネス

Playwright で動くテストの実行内容を、ネストしたステップのツリーとして
ReportPortal（またはローカルの JSON / HTML / JUnit レポート）に記録する。

主な構成:
  - core: StepTracker / StepExecutor / HarnessLogger / 優先度 / ライフサイクル
  - backends: ReportBackend Protocol、LocalBackend、ReportPortalBackend
  - config: harness.yaml・環境変数からの設定読み込み
  - data: テストデータ（JSON / YAML / CSV）の読み込み
  - ui: Playwright 用の要素ラッパーとページオブジェクト
  - plugin: pytest プラグイン（harness フィクスチャ）
  - cli: typer CLI
"""

from __future__ import annotations

from .core import (
    CaseDefinition,
    HarnessLogger,
    HarnessSession,
    LifecycleHooks,
    LogLevel,
    Priority,
    StepExecutor,
    StepStatus,
    StepTracker,
    define_case,
)
from .backends import LocalBackend, ReportBackend

__version__ = "0.1.0"

__all__ = [
    "CaseDefinition",
    "HarnessLogger",
    "HarnessSession",
    "LifecycleHooks",
    "LocalBackend",
    "LogLevel",
    "Priority",
    "ReportBackend",
    "StepExecutor",
    "StepStatus",
    "StepTracker",
    "define_case",
]
