"""
Reporter — ローカルレポートの生成

LocalBackend が構築した ReportItem ツリーを受け取り、
JSON / HTML / JUnit XML 形式のレポートを生成する。

主な機能:
  - generate_json(): JSON レポート（report.json）の生成
  - generate_html(): Jinja2 テンプレートを使用した HTML レポート（report.html）の生成
  - render_html(): report.json の辞書から HTML レポートを再生成
  - generate_junit_xml(): JUnit XML レポート（junit.xml）の生成（CI 統合用）
"""

from __future__ import annotations

import json
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import TYPE_CHECKING, Any, Optional, Sequence

from jinja2 import Environment, FileSystemLoader

from .models import StepStatus

if TYPE_CHECKING:
    from ..backends.local import ReportItem

logger = logging.getLogger(__name__)

# テンプレートディレクトリのパス
_TEMPLATES_DIR = Path(__file__).parent.parent / "templates"


class Reporter:
    """ローカルレポートの生成クラス。

    Attributes:
        title: レポートのタイトル
        artifacts_dir: 添付ファイルの相対パス計算の基準ディレクトリ
    """

    def __init__(self, title: str = "rpharness report", artifacts_dir: Optional[Path] = None) -> None:
        self.title = title
        self.artifacts_dir = artifacts_dir

    # -------------------------------------------------------------------
    # JSON レポート
    # -------------------------------------------------------------------

    def generate_json(self, tests: Sequence[ReportItem], output_dir: Path) -> Path:
        """JSON レポートを生成する。

        Args:
            tests: テスト項目（ルートノード）のリスト
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.json のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        report_data = self._build_report_dict(tests)

        output_path = output_dir / "report.json"
        with open(output_path, "w", encoding="utf-8") as f:
            json.dump(report_data, f, ensure_ascii=False, indent=2)

        logger.info("JSON レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # HTML レポート
    # -------------------------------------------------------------------

    def generate_html(self, tests: Sequence[ReportItem], output_dir: Path) -> Path:
        """HTML レポートを生成する。

        Jinja2 テンプレート（templates/report.html.j2）を使用して
        スタンドアロン HTML レポートを生成する。
        """
        return self.render_html(self._build_report_dict(tests), output_dir)

    def render_html(self, report_data: dict[str, Any], output_dir: Path) -> Path:
        """レポート辞書（report.json の内容）から HTML レポートを生成する。

        Args:
            report_data: _build_report_dict() 形式の辞書
            output_dir: 出力先ディレクトリ

        Returns:
            生成された report.html のパス
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        env = Environment(
            loader=FileSystemLoader(str(_TEMPLATES_DIR)),
            autoescape=True,
        )
        template = env.get_template("report.html.j2")
        html_content = template.render(report=report_data)

        output_path = output_dir / "report.html"
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(html_content)

        logger.info("HTML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # JUnit XML レポート
    # -------------------------------------------------------------------

    def generate_junit_xml(self, tests: Sequence[ReportItem], output_dir: Path) -> Path:
        """JUnit XML レポートを生成する。

        テスト項目ごとに testcase を出力する。失敗したテストには
        失敗したステップ名を message とする failure 要素を付ける。
        """
        output_dir.mkdir(parents=True, exist_ok=True)

        summary = self._compute_summary(tests)
        testsuites = ET.Element("testsuites")
        testsuite = ET.SubElement(testsuites, "testsuite")
        testsuite.set("name", self.title)
        testsuite.set("tests", str(summary["total"]))
        testsuite.set("failures", str(summary["failed"]))
        testsuite.set("skipped", str(summary["skipped"]))
        testsuite.set("time", f"{sum(t.duration_ms for t in tests) / 1000:.3f}")

        for test in tests:
            testcase = ET.SubElement(testsuite, "testcase")
            testcase.set("name", test.name)
            testcase.set("classname", test.category or self.title)
            testcase.set("time", f"{test.duration_ms / 1000:.3f}")

            if test.status is StepStatus.FAILED:
                failed_steps = [
                    item.name for item in test.walk()
                    if item is not test and item.status is StepStatus.FAILED
                ]
                message = (
                    f"Failed steps: {', '.join(failed_steps)}" if failed_steps else "Test failed"
                )
                failure = ET.SubElement(testcase, "failure")
                failure.set("message", message)
                failure.text = message
            elif test.status is StepStatus.SKIPPED:
                ET.SubElement(testcase, "skipped")

        tree = ET.ElementTree(testsuites)
        output_path = output_dir / "junit.xml"
        ET.indent(tree, space="  ")
        tree.write(
            str(output_path),
            encoding="unicode",
            xml_declaration=True,
        )

        logger.info("JUnit XML レポートを生成しました: %s", output_path)
        return output_path

    # -------------------------------------------------------------------
    # 内部ヘルパー
    # -------------------------------------------------------------------

    def _build_report_dict(self, tests: Sequence[ReportItem]) -> dict[str, Any]:
        started = [t.start_time for t in tests]
        finished = [t.end_time for t in tests if t.end_time is not None]
        return {
            "title": self.title,
            "started_at": min(started).isoformat() if started else None,
            "finished_at": max(finished).isoformat() if finished else None,
            "summary": self._compute_summary(tests),
            "tests": [self._item_dict(test) for test in tests],
        }

    def _item_dict(self, item: ReportItem) -> dict[str, Any]:
        return {
            "name": item.name,
            "description": item.description,
            "category": item.category,
            "status": item.status.value if item.status is not None else StepStatus.PENDING.value,
            "duration_ms": round(item.duration_ms, 2),
            "started_at": item.start_time.isoformat(),
            "attributes": [{"key": k, "value": v} for k, v in item.attributes],
            "logs": [
                {
                    "level": entry.level.value,
                    "text": entry.text,
                    "timestamp": entry.timestamp.isoformat(),
                    "attachment": self._to_relative_path(entry.attachment_path),
                    "attachment_name": entry.attachment_name,
                    "attachment_mime": entry.attachment_mime,
                }
                for entry in item.logs
            ],
            "steps": [self._item_dict(child) for child in item.children],
        }

    def _compute_summary(self, tests: Sequence[ReportItem]) -> dict[str, int]:
        """テスト項目リストからサマリーを計算する。

        Returns:
            total, passed, failed, skipped の辞書
        """
        return {
            "total": len(tests),
            "passed": sum(1 for t in tests if t.status is StepStatus.PASSED),
            "failed": sum(1 for t in tests if t.status is StepStatus.FAILED),
            "skipped": sum(1 for t in tests if t.status is StepStatus.SKIPPED),
        }

    def _to_relative_path(self, path: Optional[Path]) -> Optional[str]:
        """添付ファイルのパスを artifacts_dir からの相対パスに変換する。"""
        if path is None:
            return None

        if self.artifacts_dir is not None:
            try:
                return path.relative_to(self.artifacts_dir).as_posix()
            except ValueError:
                pass

        return path.as_posix()
