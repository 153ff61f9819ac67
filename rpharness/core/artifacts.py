"""
ArtifactsManager — テスト実行成果物の管理

テスト実行時に生成される成果物（失敗時スクリーンショット、添付ファイル、
ローカルレポート、設定のコピー、環境情報）の保存先を管理する。

主な機能:
  - create_run_dir(): 実行ディレクトリの作成
  - screenshot_path() / save_screenshot(): 失敗時スクリーンショットの保存先と保存
  - save_attachment(): LocalBackend が受け取った添付ファイルの保存
  - save_config_copy(): 実行に使用した設定の YAML コピー
  - save_env_info(): 環境情報（秘密値マスク済み）の保存
  - mask_secrets(): 秘密値のマスク処理
"""

from __future__ import annotations

import json
import logging
import platform
import re
import sys
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, Optional

from ruamel.yaml import YAML

if TYPE_CHECKING:
    from playwright.async_api import Page

    from ..config import HarnessConfig

logger = logging.getLogger(__name__)


_UNSAFE_CHARS = re.compile(r"[^\w\-]")
"""ファイル名に使用できない文字を検出する正規表現。"""

SUBDIRS = ("screenshots", "attachments", "reports")


@dataclass
class ArtifactsManager:
    """テスト実行成果物の管理クラス。

    Attributes:
        base_dir: 成果物ベースディレクトリ（デフォルト: artifacts/）
        run_dir: 実行ディレクトリ（create_run_dir() で設定される）
    """

    base_dir: Path = field(default_factory=lambda: Path("artifacts"))
    run_dir: Optional[Path] = field(default=None, init=False)

    # ----- ディレクトリ作成 -----

    def create_run_dir(self, timestamp: Optional[datetime] = None) -> Path:
        """実行ディレクトリを作成する。

        artifacts/run-YYYYMMDD-HHMMSS/ 形式のディレクトリを作成し、
        screenshots/, attachments/, reports/ サブディレクトリも同時に作成する。

        Args:
            timestamp: ディレクトリ名に使用するタイムスタンプ。
                       None の場合は現在時刻を使用。

        Returns:
            作成された実行ディレクトリのパス
        """
        if timestamp is None:
            timestamp = datetime.now()

        self.run_dir = Path(self.base_dir) / f"run-{timestamp.strftime('%Y%m%d-%H%M%S')}"
        for subdir in SUBDIRS:
            (self.run_dir / subdir).mkdir(parents=True, exist_ok=True)

        logger.info("実行ディレクトリを作成しました: %s", self.run_dir)
        return self.run_dir

    def _require_run_dir(self) -> Path:
        if self.run_dir is None:
            raise RuntimeError("run_dir が未設定です。create_run_dir() を先に呼び出してください。")
        return self.run_dir

    @property
    def reports_dir(self) -> Path:
        return self._require_run_dir() / "reports"

    # ----- スクリーンショット -----

    def screenshot_path(self, test_name: str, timestamp: Optional[datetime] = None) -> Path:
        """失敗時スクリーンショットの保存先を返す。

        ファイル名は screenshot_<テスト名>_<YYYYmmdd_HHMMSS>.png 形式。
        テスト名はサニタイズされる。
        """
        if timestamp is None:
            timestamp = datetime.now()
        filename = f"screenshot_{_sanitize_name(test_name)}_{timestamp.strftime('%Y%m%d_%H%M%S')}.png"
        return self._require_run_dir() / "screenshots" / filename

    async def save_screenshot(self, page: Page, test_name: str) -> Path:
        """Playwright の Page から全画面スクリーンショットを保存する。

        Args:
            page: Playwright の Page オブジェクト
            test_name: テスト名（ファイル名に使用）

        Returns:
            保存されたスクリーンショットのパス
        """
        path = self.screenshot_path(test_name)
        await page.screenshot(path=str(path), full_page=True)
        logger.info("スクリーンショットを保存しました: %s", path)
        return path

    # ----- 添付ファイル -----

    def save_attachment(self, name: str, data: bytes) -> Path:
        """添付ファイルを attachments/ に保存する。

        同名ファイルが既にある場合は連番を付けて保存する。

        Args:
            name: ファイル名
            data: ファイル内容

        Returns:
            保存されたファイルのパス
        """
        directory = self._require_run_dir() / "attachments"
        source = Path(name)
        stem = _sanitize_name(source.stem) or "attachment"
        path = directory / f"{stem}{source.suffix}"
        counter = 1
        while path.exists():
            path = directory / f"{stem}_{counter}{source.suffix}"
            counter += 1
        path.write_bytes(data)
        logger.debug("添付ファイルを保存しました: %s", path)
        return path

    # ----- 設定コピー・環境情報 -----

    def save_config_copy(self, config: HarnessConfig) -> Path:
        """実行に使用した設定を config.yaml に保存する（API キーはマスク）。"""
        path = self._require_run_dir() / "config.yaml"
        data = config.model_dump(mode="json")
        if data["reportportal"].get("api_key"):
            data["reportportal"]["api_key"] = "***"
        for test_values in data["test_data"].values():
            for key in test_values:
                if _is_secret_key(key):
                    test_values[key] = "***"

        yaml = YAML()
        yaml.default_flow_style = False
        with open(path, "w", encoding="utf-8") as f:
            yaml.dump(data, f)

        logger.info("設定のコピーを保存しました: %s", path)
        return path

    def save_env_info(self, config: HarnessConfig) -> Path:
        """環境情報を env.json に保存する。

        Args:
            config: 環境情報の取得元となるハーネス設定

        Returns:
            保存された env.json のパス
        """
        env_info = {
            "environment": config.environment,
            "browser": config.browser,
            "headless": config.headless,
            "baseUrl": mask_secrets(config.base_url, _secret_values(config)),
            "reportportal": config.reportportal.enabled,
            "python_version": sys.version,
            "platform": platform.platform(),
            "timestamp": datetime.now().isoformat(),
        }

        env_path = self._require_run_dir() / "env.json"
        with open(env_path, "w", encoding="utf-8") as f:
            json.dump(env_info, f, ensure_ascii=False, indent=2)

        logger.info("環境情報を保存しました: %s", env_path)
        return env_path


# ---------------------------------------------------------------------------
# 秘密値マスク処理
# ---------------------------------------------------------------------------

def mask_secrets(text: str, secrets: Iterable[str]) -> str:
    """テキスト中の秘密値を *** にマスクする。

    Args:
        text: マスク対象のテキスト
        secrets: 秘密値（空文字列は無視）

    Returns:
        秘密値がマスクされたテキスト
    """
    result = text
    for secret in secrets:
        if secret:
            result = result.replace(secret, "***")
    return result


def _secret_values(config: HarnessConfig) -> set[str]:
    values = {config.reportportal.api_key}
    values.update(
        str(value)
        for test_values in config.test_data.values()
        for key, value in test_values.items()
        if _is_secret_key(key)
    )
    return {v for v in values if v}


def _is_secret_key(key: str) -> bool:
    lowered = key.lower()
    return "password" in lowered or "secret" in lowered


def _sanitize_name(name: str) -> str:
    """名前をファイル名に安全な文字列に変換する。

    英数字、ハイフン、アンダースコア以外の文字をハイフンに置換し、
    連続するハイフンを1つにまとめる。
    """
    sanitized = _UNSAFE_CHARS.sub("-", name)
    sanitized = re.sub(r"-+", "-", sanitized)
    return sanitized.strip("-")
