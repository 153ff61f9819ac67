"""
CLI エントリポイント — Typer ベースのコマンドラインインターフェース

rpharness コマンドとして以下のサブコマンドを提供する:
  - init: プロジェクト雛形生成（harness.yaml, test_data/, artifacts/, conftest.py）
  - validate-config: 設定の検証
  - show-config: 有効な設定の表示（API キーはマスク）
  - priorities: 優先度とガイダンスの一覧
  - report: 既存の report.json から HTML レポートを再生成
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Optional

import typer

from .config import DEFAULT_CONFIG_FILE, describe_config, load_config
from .core.errors import ConfigurationError
from .core.priority import Priority, display_attributes, guidance
from .core.reporting import Reporter

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Typer アプリ定義
# ---------------------------------------------------------------------------

app = typer.Typer(
    help=(
        "rpharness — ブラウザテストのステップツリーレポートハーネス\n\n"
        "基本の流れ:\n"
        "  1. rpharness init            harness.yaml と conftest.py を生成\n"
        "  2. pytest                    テスト実行（ステップをレポートに記録）\n"
        "  3. rpharness report <dir>    HTML レポートを再生成\n"
    ),
    no_args_is_help=True,
)


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="詳細ログを出力する"),
) -> None:
    """rpharness CLI。"""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# ---------------------------------------------------------------------------
# init コマンド
# ---------------------------------------------------------------------------

_CONFIG_TEMPLATE = """\
# rpharness 設定
# 環境変数 RPH_* で上書きできます（例: RPH_BROWSER=firefox）
browser: chromium
headless: true
base_url: http://localhost:3000
timeout: 30
retry_count: 0
environment: local
screenshot_on_failure: true
artifacts_dir: artifacts
test_data_dir: test_data
log_level: INFO
reportportal:
  enabled: false
  endpoint: http://localhost:8080
  project: default_personal
  api_key: ""
  launch_name: rpharness
"""

_CONFTEST_TEMPLATE = """\
pytest_plugins = ["rpharness.plugin"]
"""


@app.command()
def init(
    project_dir: Path = typer.Argument(
        Path("."), help="プロジェクトディレクトリ（デフォルト: カレント）",
    ),
) -> None:
    """プロジェクト雛形（ディレクトリ構造と設定テンプレート）を生成する。"""
    try:
        for d in ("test_data", "artifacts", "tests"):
            (project_dir / d).mkdir(parents=True, exist_ok=True)

        config_path = project_dir / DEFAULT_CONFIG_FILE
        if not config_path.exists():
            config_path.write_text(_CONFIG_TEMPLATE, encoding="utf-8")

        conftest_path = project_dir / "tests" / "conftest.py"
        if not conftest_path.exists():
            conftest_path.write_text(_CONFTEST_TEMPLATE, encoding="utf-8")

        typer.echo(f"プロジェクトを初期化しました: {project_dir.resolve()}")
    except OSError as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)


# ---------------------------------------------------------------------------
# 設定コマンド
# ---------------------------------------------------------------------------

@app.command("validate-config")
def validate_config(
    config_file: Optional[Path] = typer.Argument(
        None, help=f"設定ファイル（デフォルト: ./{DEFAULT_CONFIG_FILE}）",
    ),
) -> None:
    """設定ファイルと環境変数を検証する。"""
    try:
        load_config(config_file)
    except ConfigurationError as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)
    typer.echo("設定は有効です")


@app.command("show-config")
def show_config(
    config_file: Optional[Path] = typer.Argument(
        None, help=f"設定ファイル（デフォルト: ./{DEFAULT_CONFIG_FILE}）",
    ),
) -> None:
    """有効な設定（ファイル + 環境変数）を表示する。"""
    try:
        config = load_config(config_file)
    except ConfigurationError as exc:
        typer.echo(f"エラー: {exc}", err=True)
        raise typer.Exit(code=1)

    rows = describe_config(config)
    width = max(len(name) for name in rows)
    for name, value in rows.items():
        typer.echo(f"{name.ljust(width)}  {value}")


# ---------------------------------------------------------------------------
# priorities コマンド
# ---------------------------------------------------------------------------

@app.command()
def priorities() -> None:
    """優先度とガイダンスを一覧表示する。"""
    for priority in Priority:
        attrs = display_attributes(priority)
        typer.echo(f"{priority.value}. {attrs.label:<8}  {guidance(priority)}")


# ---------------------------------------------------------------------------
# report コマンド
# ---------------------------------------------------------------------------

@app.command()
def report(
    reports_dir: Path = typer.Argument(..., help="report.json のあるディレクトリ"),
) -> None:
    """既存の report.json から HTML レポートを再生成する。"""
    report_json_path = reports_dir / "report.json"
    if not report_json_path.exists():
        typer.echo(f"エラー: {report_json_path} が見つかりません", err=True)
        raise typer.Exit(code=1)

    try:
        with open(report_json_path, "r", encoding="utf-8") as f:
            report_data = json.load(f)
    except json.JSONDecodeError as exc:
        typer.echo(f"エラー: report.json を解析できません: {exc}", err=True)
        raise typer.Exit(code=1)

    html_path = Reporter().render_html(report_data, reports_dir)
    typer.echo(f"HTML レポートを生成しました: {html_path}")


if __name__ == "__main__":
    app()
