"""
テストデータ管理 — JSON / YAML / CSV の読み込みとランダムデータ生成

テストデータディレクトリ配下のファイルを読み込み、ファイル単位でキャッシュする。
テストごとのデータは設定（HarnessConfig.test_data）を優先し、
なければ <テスト名>.json を参照する。

主な機能:
  - load_json() / load_yaml() / load_csv() / load_csv_dicts(): ファイル読み込み（キャッシュ付き）
  - get_test_data() / get_all_test_data(): テストごとのデータ取得
  - save_json(): データの保存
  - clear_cache(): キャッシュの破棄
  - generate_random_data(): テンプレートからのランダムデータ生成
"""

from __future__ import annotations

import csv
import json
import logging
import random
import string
from datetime import date, timedelta
from pathlib import Path
from typing import TYPE_CHECKING, Any, Mapping, Optional, Union

from ruamel.yaml import YAML

if TYPE_CHECKING:
    from .core.logger import HarnessLogger

logger = logging.getLogger(__name__)

_EMAIL_NAMES = ("user", "test", "demo", "sample")
_EMAIL_DOMAINS = ("example.com", "test.com", "sample.org")
_FIRST_NAMES = ("John", "Jane", "Bob", "Alice", "Charlie", "Diana")
_LAST_NAMES = ("Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia")
_PASSWORD_CHARS = string.ascii_letters + string.digits + "!@#$%"


class DataLoader:
    """テストデータの読み込み・キャッシュ管理。

    使用例::

        loader = DataLoader(Path("test_data"), config.test_data)
        users = loader.load_csv_dicts("users")
        password = loader.get_test_data("test_login", "password")
    """

    def __init__(
        self,
        data_dir: Union[str, Path],
        config_data: Optional[Mapping[str, Mapping[str, Any]]] = None,
        log: Optional[HarnessLogger] = None,
    ) -> None:
        """DataLoader を初期化する。

        Args:
            data_dir: テストデータディレクトリ
            config_data: 設定ファイル由来のテストごとのデータ
            log: 取得した値をレポートに記録する HarnessLogger
        """
        self.data_dir = Path(data_dir)
        self._config_data = config_data or {}
        self._log = log
        self._cache: dict[Path, Any] = {}

    # -------------------------------------------------------------------
    # ファイル読み込み
    # -------------------------------------------------------------------

    def _resolve(self, name: str, suffix: str) -> Path:
        path = self.data_dir / name
        if path.suffix != suffix:
            path = path.with_name(path.name + suffix)
        if not path.exists():
            logger.error("テストデータファイルが見つかりません: %s", path)
            raise FileNotFoundError(f"テストデータファイルが見つかりません: {path}")
        return path

    def load_json(self, name: str) -> Any:
        """JSON ファイルを読み込む。

        Args:
            name: ファイル名（拡張子 .json は省略可）

        Returns:
            デシリアライズしたデータ

        Raises:
            FileNotFoundError: ファイルが存在しない場合
            ValueError: JSON として不正な場合
        """
        path = self._resolve(name, ".json")
        if path in self._cache:
            return self._cache[path]

        try:
            with open(path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValueError(f"JSON の解析に失敗しました: {path}: {e}") from e

        self._cache[path] = data
        logger.info("テストデータを読み込みました: %s", path)
        return data

    def load_yaml(self, name: str) -> Any:
        """YAML ファイルを読み込む（拡張子 .yaml は省略可）。"""
        path = self._resolve(name, ".yaml")
        if path in self._cache:
            return self._cache[path]

        with open(path, "r", encoding="utf-8") as f:
            data = YAML(typ="safe").load(f)

        self._cache[path] = data
        logger.info("テストデータを読み込みました: %s", path)
        return data

    def load_csv(self, name: str, has_header: bool = True) -> list[list[str]]:
        """CSV ファイルを行のリストとして読み込む。

        Args:
            name: ファイル名（拡張子 .csv は省略可）
            has_header: 先頭行をヘッダーとして読み飛ばすか

        Returns:
            各行のセル（前後の空白は除去）のリスト
        """
        rows = self._read_csv_rows(name)
        return rows[1:] if has_header else rows

    def load_csv_dicts(self, name: str) -> list[dict[str, str]]:
        """CSV ファイルをヘッダー行をキーとする辞書のリストとして読み込む。

        Raises:
            ValueError: ヘッダー行とデータ行が揃っていない場合
        """
        rows = self._read_csv_rows(name)
        if len(rows) < 2:
            raise ValueError("CSV ファイルにはヘッダー行と 1 行以上のデータ行が必要です")
        header = rows[0]
        return [
            {column: row[i] if i < len(row) else "" for i, column in enumerate(header)}
            for row in rows[1:]
        ]

    def _read_csv_rows(self, name: str) -> list[list[str]]:
        path = self._resolve(name, ".csv")
        if path in self._cache:
            return self._cache[path]

        with open(path, "r", encoding="utf-8", newline="") as f:
            rows = [[cell.strip() for cell in row] for row in csv.reader(f) if row]

        self._cache[path] = rows
        logger.info("CSV テストデータを読み込みました: %s (%d 行)", path, len(rows))
        return rows

    # -------------------------------------------------------------------
    # テストごとのデータ
    # -------------------------------------------------------------------

    def get_test_data(self, test_name: str, key: str) -> str:
        """テストごとのデータを 1 件取得する。

        設定 → <test_name>.json の順に探し、見つからない場合は空文字列を返す。
        """
        config_value = self._config_data.get(test_name, {}).get(key)
        if config_value not in (None, ""):
            return self._record(test_name, key, str(config_value))

        try:
            data = self.load_json(test_name)
        except FileNotFoundError:
            data = {}
        if isinstance(data, dict) and key in data:
            value = "" if data[key] is None else str(data[key])
            return self._record(test_name, key, value)

        logger.warning("テストデータが見つかりません: %s.%s", test_name, key)
        return ""

    def get_all_test_data(self, test_name: str) -> dict[str, str]:
        """テストごとのデータを全件取得する。

        <test_name>.json → 設定 の順に探し、見つからない場合は空の辞書を返す。
        """
        try:
            data = self.load_json(test_name)
        except FileNotFoundError:
            data = None
        if isinstance(data, dict):
            return {k: "" if v is None else str(v) for k, v in data.items()}

        config_values = self._config_data.get(test_name)
        if config_values:
            return {k: str(v) for k, v in config_values.items()}

        logger.warning("テストデータが見つかりません: %s", test_name)
        return {}

    def _record(self, test_name: str, key: str, value: str) -> str:
        if self._log is not None:
            self._log.log_test_data(f"{test_name}.{key}", value)
        return value

    # -------------------------------------------------------------------
    # 保存・キャッシュ
    # -------------------------------------------------------------------

    def save_json(self, name: str, data: Any) -> Path:
        """データを JSON ファイルとして保存し、キャッシュを更新する。"""
        path = self.data_dir / name
        if path.suffix != ".json":
            path = path.with_name(path.name + ".json")
        path.parent.mkdir(parents=True, exist_ok=True)

        with open(path, "w", encoding="utf-8") as f:
            json.dump(data, f, ensure_ascii=False, indent=2)

        self._cache[path] = data
        logger.info("テストデータを保存しました: %s", path)
        return path

    def clear_cache(self) -> None:
        self._cache.clear()
        logger.info("テストデータのキャッシュを破棄しました")


# ---------------------------------------------------------------------------
# ランダムデータ生成
# ---------------------------------------------------------------------------

def generate_random_data(
    template: Mapping[str, str],
    rng: Optional[random.Random] = None,
) -> dict[str, str]:
    """テンプレートの種別に従ってランダムな値を生成する。

    種別は email / phone / name / password / number / date / text。
    それ以外の値はそのまま返す。

    Args:
        template: キー → 種別
        rng: 乱数生成器（None の場合は新規生成）

    Returns:
        キー → 生成値
    """
    rng = rng or random.Random()
    generators = {
        "email": lambda: (
            f"{rng.choice(_EMAIL_NAMES)}{rng.randint(100, 998)}@{rng.choice(_EMAIL_DOMAINS)}"
        ),
        "phone": lambda: f"+1{rng.randint(100, 998)}{rng.randint(100, 998)}{rng.randint(1000, 9998)}",
        "name": lambda: f"{rng.choice(_FIRST_NAMES)} {rng.choice(_LAST_NAMES)}",
        "password": lambda: "".join(rng.choice(_PASSWORD_CHARS) for _ in range(12)),
        "number": lambda: str(rng.randint(1000, 9998)),
        "date": lambda: (date.today() + timedelta(days=rng.randint(-365, 364))).isoformat(),
        "text": lambda: "".join(rng.choice(string.ascii_letters) for _ in range(10)),
    }

    result = {}
    for key, kind in template.items():
        generator = generators.get(kind.lower())
        result[key] = generator() if generator is not None else kind

    logger.info("ランダムなテストデータを生成しました: %d 件", len(result))
    return result
