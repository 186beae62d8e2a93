"""タグ削除・統合ワーカー（キューの消費者）.

1行1メッセージの JSON を読み込み、delete_tag() / merge_tag() を呼び出す。

メッセージ形式:
    {"action": "delete", "tag_id": "T1"}
    {"action": "merge", "tag_id": "T2"}

メッセージ単位の失敗はログに残して次のメッセージへ進む。再実行するかどうかは
メッセージの送り手が決める（delete/merge は再実行しても安全）。
"""

from __future__ import annotations

import argparse
import json
import sys
import threading
from collections.abc import Callable, Iterable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path

from loguru import logger

from genai_tag_db_topic_modifier.config import WorkerConfig, load_worker_config
from genai_tag_db_topic_modifier.core.database import create_database
from genai_tag_db_topic_modifier.core.exceptions import SynonymNotFoundError, TopicModifierError
from genai_tag_db_topic_modifier.core.store import BaseStore, SQLiteStore
from genai_tag_db_topic_modifier.logging_config import setup_logging
from genai_tag_db_topic_modifier.report import export_modification_report
from genai_tag_db_topic_modifier.topic_modifier import (
    OPERATION_DELETE,
    OPERATION_MERGE,
    TopicModificationResult,
    delete_tag,
    merge_tag,
)

HANDLERS: dict[str, Callable[[BaseStore, str], TopicModificationResult]] = {
    OPERATION_DELETE: delete_tag,
    OPERATION_MERGE: merge_tag,
}


class InvalidMessageError(ValueError):
    """メッセージの形式が不正な場合の例外."""


@dataclass(frozen=True)
class TopicMessage:
    action: str
    tag_id: str


def parse_message(line: str) -> TopicMessage:
    """JSON 1行を TopicMessage に変換する.

    Raises:
        InvalidMessageError: JSONとして不正、または action / tag_id が不正な場合
    """
    try:
        data = json.loads(line)
    except json.JSONDecodeError as e:
        raise InvalidMessageError(f"Invalid JSON message: {line!r}") from e

    if not isinstance(data, dict):
        raise InvalidMessageError(f"Message must be a JSON object, got {type(data).__name__}")

    action = data.get("action")
    tag_id = data.get("tag_id")
    if action not in HANDLERS:
        raise InvalidMessageError(f"Unknown action: {action!r} (expected one of {sorted(HANDLERS)})")
    if not isinstance(tag_id, str) or not tag_id:
        raise InvalidMessageError(f"Message requires non-empty 'tag_id': {line!r}")
    return TopicMessage(action=action, tag_id=tag_id)


class TagLockRegistry:
    """tag_id 単位の排他ロック.

    同じタグに対する削除・統合が並行して走らないよう、1回の呼び出し全体を
    関係する tag_id のロックで囲む。複数のロックは tag_id の昇順で取得する。
    保持・待機中の呼び出しが無くなった tag_id はレジストリから外す。
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # tag_id -> [lock, 保持・待機中の数]
        self._locks: dict[str, list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def _checkout(self, tag_id: str) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(tag_id)
            if entry is None:
                entry = [threading.Lock(), 0]
                self._locks[tag_id] = entry
            entry[1] += 1
            return entry[0]

    def _checkin(self, tag_id: str) -> None:
        with self._guard:
            entry = self._locks[tag_id]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[tag_id]

    @contextmanager
    def locked(self, *tag_ids: str) -> Iterator[None]:
        checked_out: list[str] = []
        acquired: list[threading.Lock] = []
        try:
            for tag_id in sorted(set(tag_ids)):
                lock = self._checkout(tag_id)
                checked_out.append(tag_id)
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()
            for tag_id in checked_out:
                self._checkin(tag_id)


class TopicModifierWorker:
    def __init__(self, store: BaseStore, locks: TagLockRegistry | None = None) -> None:
        self.store = store
        self.locks = locks if locks is not None else TagLockRegistry()

    def _lock_ids(self, message: TopicMessage) -> list[str]:
        """メッセージの処理中に書き込まれるタグIDを返す（統合は統合先も含む）."""
        if message.action != OPERATION_MERGE:
            return [message.tag_id]
        try:
            synonym = self.store.resolve_synonym(message.tag_id)
        except SynonymNotFoundError:
            # merge_tag 側でログを残して送出する
            return [message.tag_id]
        return [message.tag_id, synonym.tag_id]

    def handle(self, message: TopicMessage) -> TopicModificationResult:
        handler = HANDLERS[message.action]
        with self.locks.locked(*self._lock_ids(message)):
            return handler(self.store, message.tag_id)

    def run(self, lines: Iterable[str]) -> list[TopicModificationResult]:
        """メッセージ列を順に処理し、成功した呼び出しの結果を返す."""
        results: list[TopicModificationResult] = []
        failed = 0
        for line_no, line in enumerate(lines, start=1):
            line = line.strip()
            if not line:
                continue

            try:
                message = parse_message(line)
            except InvalidMessageError as e:
                logger.error(f"Skipping message at line {line_no}: {e}")
                failed += 1
                continue

            try:
                results.append(self.handle(message))
            except TopicModifierError as e:
                logger.error(f"Failed to {message.action} topic {message.tag_id}: {e}")
                failed += 1

        logger.info(f"Processed {len(results)} message(s), {failed} failed")
        return results


def run_worker(config: WorkerConfig, lines: Iterable[str], *, init_db: bool = False) -> list[TopicModificationResult]:
    """設定に従ってストアを開き、メッセージを処理する."""
    if config.db_path is None:
        raise ValueError("db_path is required (set it in the config file or pass --db)")

    if init_db:
        create_database(config.db_path)

    with SQLiteStore(config.db_path) as store:
        results = TopicModifierWorker(store).run(lines)

    if config.report_dir is not None:
        paths = export_modification_report(results, config.report_dir)
        logger.info(f"Wrote reports: {paths}")

    return results


def main() -> None:
    """CLI エントリポイント."""
    parser = argparse.ArgumentParser(description="Delete or merge topics (tags) from a message stream")
    parser.add_argument("--config", type=Path, default=None, help="Worker config YAML")
    parser.add_argument("--db", type=Path, default=None, help="SQLite DB path (overrides config)")
    parser.add_argument(
        "--messages",
        type=Path,
        default=None,
        help="JSON Lines message file (default: stdin)",
    )
    parser.add_argument("--report-dir", type=Path, default=None, help="Report output directory")
    parser.add_argument("--log-level", type=str, default=None, help="Log level (default: INFO)")
    parser.add_argument("--log-file", type=Path, default=None, help="Optional log file path")
    parser.add_argument(
        "--init-db",
        action="store_true",
        help="Create the database schema if the DB file does not exist",
    )
    args = parser.parse_args()

    config = load_worker_config(args.config) if args.config else WorkerConfig()
    config = config.with_overrides(
        db_path=args.db,
        report_dir=args.report_dir,
        log_level=args.log_level,
        log_file=args.log_file,
    )
    setup_logging(config.log_level, config.log_file)

    if args.messages is None:
        run_worker(config, sys.stdin, init_db=args.init_db)
        return

    with open(args.messages, encoding="utf-8") as f:
        run_worker(config, f, init_db=args.init_db)


if __name__ == "__main__":
    main()
