"""
ハーネス設定 — YAML ファイル・環境変数からの設定読み込み

harness.yaml と環境変数でハーネスの動作を制御する。
CLI 引数 > 環境変数 > 設定ファイル > デフォルト値 の優先順位で適用される。
設定はプロセス開始時に 1 回だけ読み込み、テスト実行中に再読み込みしない。

環境変数一覧:
  RPH_BROWSER               : ブラウザ（chromium/firefox/webkit, デフォルト: chromium）
  RPH_HEADLESS              : ヘッドレスモード（true/false, デフォルト: true）
  RPH_BASE_URL              : 基準 URL（絶対 URL）
  RPH_TIMEOUT               : タイムアウト秒数（デフォルト: 30）
  RPH_RETRY_COUNT           : リトライ回数（デフォルト: 0）
  RPH_ENVIRONMENT           : 実行環境名（デフォルト: local）
  RPH_ARTIFACTS_DIR         : 成果物ディレクトリ（デフォルト: artifacts）
  RPH_TEST_DATA_DIR         : テストデータディレクトリ（デフォルト: test_data）
  RPH_LOG_LEVEL             : ログレベル（デフォルト: INFO）
  RPH_SCREENSHOT_ON_FAILURE : 失敗時スクリーンショット（true/false, デフォルト: true）
  RPH_RP_ENABLED            : ReportPortal 送信の有効化（true/false, デフォルト: false）
  RPH_RP_ENDPOINT           : ReportPortal の URL
  RPH_RP_PROJECT            : ReportPortal のプロジェクト名
  RPH_RP_API_KEY            : ReportPortal の API キー
  RPH_RP_LAUNCH             : ローンチ名
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Literal, Mapping, Optional, Union
from urllib.parse import urlparse

from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from .core.errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "harness.yaml"

_LOG_LEVELS = ("TRACE", "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


# ---------------------------------------------------------------------------
# 環境変数キー定数
# ---------------------------------------------------------------------------

_ENV_BROWSER = "RPH_BROWSER"
_ENV_HEADLESS = "RPH_HEADLESS"
_ENV_BASE_URL = "RPH_BASE_URL"
_ENV_TIMEOUT = "RPH_TIMEOUT"
_ENV_RETRY_COUNT = "RPH_RETRY_COUNT"
_ENV_ENVIRONMENT = "RPH_ENVIRONMENT"
_ENV_ARTIFACTS_DIR = "RPH_ARTIFACTS_DIR"
_ENV_TEST_DATA_DIR = "RPH_TEST_DATA_DIR"
_ENV_LOG_LEVEL = "RPH_LOG_LEVEL"
_ENV_SCREENSHOT_ON_FAILURE = "RPH_SCREENSHOT_ON_FAILURE"
_ENV_RP_ENABLED = "RPH_RP_ENABLED"
_ENV_RP_ENDPOINT = "RPH_RP_ENDPOINT"
_ENV_RP_PROJECT = "RPH_RP_PROJECT"
_ENV_RP_API_KEY = "RPH_RP_API_KEY"
_ENV_RP_LAUNCH = "RPH_RP_LAUNCH"

# (環境変数, セクション, キー, bool 変換の有無)
_ENV_OVERRIDES: tuple[tuple[str, Optional[str], str, bool], ...] = (
    (_ENV_BROWSER, None, "browser", False),
    (_ENV_HEADLESS, None, "headless", True),
    (_ENV_BASE_URL, None, "base_url", False),
    (_ENV_TIMEOUT, None, "timeout", False),
    (_ENV_RETRY_COUNT, None, "retry_count", False),
    (_ENV_ENVIRONMENT, None, "environment", False),
    (_ENV_ARTIFACTS_DIR, None, "artifacts_dir", False),
    (_ENV_TEST_DATA_DIR, None, "test_data_dir", False),
    (_ENV_LOG_LEVEL, None, "log_level", False),
    (_ENV_SCREENSHOT_ON_FAILURE, None, "screenshot_on_failure", True),
    (_ENV_RP_ENABLED, "reportportal", "enabled", True),
    (_ENV_RP_ENDPOINT, "reportportal", "endpoint", False),
    (_ENV_RP_PROJECT, "reportportal", "project", False),
    (_ENV_RP_API_KEY, "reportportal", "api_key", False),
    (_ENV_RP_LAUNCH, "reportportal", "launch_name", False),
)


# ---------------------------------------------------------------------------
# 設定モデル
# ---------------------------------------------------------------------------

class ReportPortalSettings(BaseModel):
    """ReportPortal 送信設定。"""

    enabled: bool = Field(default=False, description="ReportPortal へ送信するか")
    endpoint: str = Field(default="", description="ReportPortal の URL")
    project: str = Field(default="", description="プロジェクト名")
    api_key: str = Field(default="", description="API キー")
    launch_name: str = Field(default="rpharness", description="ローンチ名")
    launch_description: str = Field(default="", description="ローンチの説明")

    @model_validator(mode="after")
    def validate_enabled(self) -> ReportPortalSettings:
        """有効化されている場合は endpoint / project / api_key を必須とする。"""
        if self.enabled:
            missing = [
                name for name in ("endpoint", "project", "api_key") if not getattr(self, name)
            ]
            if missing:
                raise ValueError(
                    f"ReportPortal が有効ですが次の設定がありません: {', '.join(missing)}"
                )
        return self


class HarnessConfig(BaseModel):
    """ハーネスの実行時設定。"""

    browser: Literal["chromium", "firefox", "webkit"] = Field(
        default="chromium", description="使用するブラウザ",
    )
    headless: bool = Field(default=True, description="ヘッドレスモード")
    base_url: str = Field(default="http://localhost:3000", description="基準 URL")
    timeout: float = Field(default=30, description="タイムアウト（秒）")
    retry_count: int = Field(default=0, description="リトライ回数")
    environment: str = Field(default="local", description="実行環境名")
    parallel_execution: bool = Field(default=False, description="並列実行の有無")
    screenshot_on_failure: bool = Field(default=True, description="失敗時にスクリーンショットを撮るか")
    artifacts_dir: str = Field(default="artifacts", description="成果物ディレクトリ")
    test_data_dir: str = Field(default="test_data", description="テストデータディレクトリ")
    log_level: str = Field(default="INFO", description="ログレベル")
    performance_monitoring: bool = Field(default=False, description="性能指標を記録するか")
    test_data: dict[str, dict[str, Any]] = Field(
        default_factory=dict, description="テストごとのデータ（テスト名 → キー・値）",
    )
    reportportal: ReportPortalSettings = Field(
        default_factory=ReportPortalSettings, description="ReportPortal 送信設定",
    )

    @field_validator("browser", mode="before")
    @classmethod
    def normalize_browser(cls, v: Any) -> Any:
        return v.strip().lower() if isinstance(v, str) else v

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        """基準 URL は http(s) の絶対 URL とする。"""
        parsed = urlparse(v)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ValueError(f"base_url は絶対 URL を指定してください: {v!r}")
        return v

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if v <= 0:
            raise ValueError(f"timeout は正の値を指定してください: {v}")
        return v

    @field_validator("retry_count")
    @classmethod
    def clamp_retry_count(cls, v: int) -> int:
        if v < 0:
            logger.warning("retry_count が負の値のため 0 に補正します: %s", v)
            return 0
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in _LOG_LEVELS:
            raise ValueError(f"log_level は {', '.join(_LOG_LEVELS)} のいずれかを指定してください: {v!r}")
        return level

    @property
    def timeout_ms(self) -> float:
        """Playwright に渡すタイムアウト（ミリ秒）。"""
        return self.timeout * 1000


# ---------------------------------------------------------------------------
# 読み込み
# ---------------------------------------------------------------------------

def _parse_bool(value: str) -> bool:
    """文字列を bool に変換する。

    Args:
        value: "true", "1", "yes" → True、それ以外 → False

    Returns:
        変換結果
    """
    return value.lower() in ("true", "1", "yes")


def _read_yaml(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = YAML(typ="safe").load(f)
    except OSError as e:
        raise ConfigurationError(f"設定ファイルを読み込めません: {path}: {e}") from e
    except YAMLError as e:
        raise ConfigurationError(f"設定ファイルの YAML 構文エラー: {path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigurationError(f"設定ファイルのルートはマッピングである必要があります: {path}")
    return data


def apply_env_overrides(data: dict[str, Any], environ: Mapping[str, str]) -> dict[str, Any]:
    """環境変数の値で設定辞書を上書きする。

    Args:
        data: 設定ファイルから読み込んだ辞書
        environ: 環境変数

    Returns:
        上書き後の辞書（新しいオブジェクト）

    Raises:
        ConfigurationError: reportportal セクションがマッピングでない場合
    """
    merged = dict(data)
    rp_section = merged.get("reportportal") or {}
    if not isinstance(rp_section, Mapping):
        raise ConfigurationError(
            f"reportportal セクションはマッピングである必要があります: {type(rp_section).__name__}"
        )
    merged["reportportal"] = dict(rp_section)
    for env_key, section, key, is_bool in _ENV_OVERRIDES:
        if env_key not in environ:
            continue
        raw = environ[env_key]
        value: Any = _parse_bool(raw) if is_bool else raw
        target = merged if section is None else merged[section]
        target[key] = value
        logger.debug("環境変数で設定を上書きしました: %s", env_key)
    return merged


def load_config(
    path: Union[str, Path, None] = None,
    environ: Optional[Mapping[str, str]] = None,
    overrides: Optional[Mapping[str, Any]] = None,
) -> HarnessConfig:
    """設定を読み込む。

    path 未指定時はカレントディレクトリの harness.yaml を（存在すれば）読む。

    Args:
        path: 設定ファイルのパス
        environ: 環境変数（None の場合は os.environ）
        overrides: CLI 引数による上書き（最優先）

    Returns:
        検証済みの設定

    Raises:
        ConfigurationError: ファイルが読めない場合、または検証に失敗した場合
    """
    if environ is None:
        environ = os.environ

    data: dict[str, Any] = {}
    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise ConfigurationError(f"設定ファイルが見つかりません: {config_path}")
        data = _read_yaml(config_path)
    elif Path(DEFAULT_CONFIG_FILE).exists():
        data = _read_yaml(Path(DEFAULT_CONFIG_FILE))

    data = apply_env_overrides(data, environ)
    if overrides:
        data.update({k: v for k, v in overrides.items() if v is not None})

    try:
        config = HarnessConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigurationError(f"設定の検証に失敗しました: {e}") from e

    logger.info(
        "設定を読み込みました: browser=%s, environment=%s, reportportal=%s",
        config.browser, config.environment, config.reportportal.enabled,
    )
    return config


def describe_config(config: HarnessConfig) -> dict[str, str]:
    """表示用の設定一覧を返す（API キーはマスク）。"""
    rp = config.reportportal
    return {
        "Browser": config.browser,
        "Headless": str(config.headless),
        "Base URL": config.base_url,
        "Timeout": f"{config.timeout:g}s",
        "Retry Count": str(config.retry_count),
        "Environment": config.environment,
        "Parallel Execution": str(config.parallel_execution),
        "Screenshot On Failure": str(config.screenshot_on_failure),
        "Artifacts Dir": config.artifacts_dir,
        "Log Level": config.log_level,
        "ReportPortal": rp.endpoint if rp.enabled else "disabled",
        "ReportPortal Project": rp.project or "-",
        "ReportPortal API Key": "***" if rp.api_key else "-",
    }
