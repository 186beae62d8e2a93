"""ワーカー設定の読み込み.

YAML 形式:
    db_path: data/graph.sqlite
    log_level: INFO
    log_file: logs/topic_modifier.log
    report_dir: reports/topic_modifier
"""

from __future__ import annotations

from dataclasses import dataclass, fields, replace
from pathlib import Path

import yaml
from loguru import logger

_LOG_LEVELS = {"TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"}
_PATH_KEYS = {"db_path", "log_file", "report_dir"}


@dataclass(frozen=True)
class WorkerConfig:
    db_path: Path | None = None
    log_level: str = "INFO"
    log_file: Path | None = None
    report_dir: Path | None = None

    def __post_init__(self) -> None:
        if not isinstance(self.log_level, str) or self.log_level.upper() not in _LOG_LEVELS:
            msg = f"Invalid log_level '{self.log_level}'. Valid levels: {sorted(_LOG_LEVELS)}"
            raise ValueError(msg)

    def with_overrides(self, **overrides: object) -> WorkerConfig:
        """None 以外の値で上書きした設定を返す（CLI 引数の反映用）."""
        values = {k: v for k, v in overrides.items() if v is not None}
        return replace(self, **values)


def load_worker_config(config_path: Path | str) -> WorkerConfig:
    """YAMLファイルからワーカー設定を読み込む.

    Args:
        config_path: 設定ファイルのパス

    Returns:
        WorkerConfig

    Raises:
        FileNotFoundError: ファイルが存在しない場合
        ValueError: YAML形式が不正、または未知のキーが含まれている場合
    """
    config_path = Path(config_path)

    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    try:
        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        msg = f"Invalid YAML in config file: {config_path}"
        raise ValueError(msg) from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        msg = f"Config file must contain a mapping, got {type(data)}"
        raise ValueError(msg)

    known = {f.name for f in fields(WorkerConfig)}
    unknown = sorted(set(data) - known)
    if unknown:
        msg = f"Unknown config key(s) in {config_path}: {', '.join(unknown)}"
        raise ValueError(msg)

    values = {k: (Path(v) if k in _PATH_KEYS and v is not None else v) for k, v in data.items()}
    logger.info(f"Loaded worker config from {config_path}")
    return WorkerConfig(**values)
