"""loguru のシンク設定."""

from __future__ import annotations

import sys
from pathlib import Path

from loguru import logger

CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | "
    "<cyan>{name}</cyan>:<cyan>{function}</cyan>:<cyan>{line}</cyan> - <level>{message}</level>"
)


def setup_logging(level: str = "INFO", log_file: Path | str | None = None) -> None:
    """デフォルトのシンクを外し、stderr（と任意でファイル）へ出力する.

    Args:
        level: ログレベル
        log_file: ログファイルのパス（None の場合はファイル出力しない）
    """
    logger.remove()
    logger.add(sys.stderr, level=level.upper(), format=CONSOLE_FORMAT)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        logger.add(log_file, rotation="10 MB", retention="1 week", level="DEBUG", encoding="utf-8")

    logger.debug(f"Logging initialized (level={level.upper()}, file={log_file})")
