"""SQLiteデータベース作成ユーティリティ.

タググラフ（TAGS / TAG_SYNONYMS / DOCUMENTS / RELATIONSHIPS）のスキーマ作成と
インデックス作成を提供します。

注意:
    busy_timeout / synchronous などは接続単位の設定です。
    SQLiteStore は接続ごとに CONNECTION_PRAGMAS を適用します。
"""

from __future__ import annotations

import sqlite3
from pathlib import Path

from loguru import logger

PERSISTENT_PRAGMAS = [
    "PRAGMA journal_mode = WAL;",  # 読み取りと書き込みの並行性
]
CONNECTION_PRAGMAS = [
    "PRAGMA synchronous = NORMAL;",
    "PRAGMA busy_timeout = 5000;",  # 5s
    "PRAGMA temp_store = MEMORY;",
]


def apply_connection_pragmas(conn: sqlite3.Connection) -> None:
    """接続ごとに適用が必要な PRAGMA を設定する。"""
    for pragma in CONNECTION_PRAGMAS:
        conn.execute(pragma)


# 必須インデックス（関連検索・存在確認のクエリに基づく）
REQUIRED_INDEXES = [
    # タグに紐づく投稿（target_id + role）
    "CREATE INDEX IF NOT EXISTS idx_relationships_target ON RELATIONSHIPS(target_id, role);",
    # タグのフォロワー（source_id + role + target_kind）
    "CREATE INDEX IF NOT EXISTS idx_relationships_source ON RELATIONSHIPS(source_id, role, target_kind);",
    "CREATE INDEX IF NOT EXISTS idx_tag_synonyms_synonym ON TAG_SYNONYMS(synonym_id);",
]

SCHEMA_SQL = [
    """
    CREATE TABLE IF NOT EXISTS TAGS (
        tag_id TEXT NOT NULL PRIMARY KEY,
        title TEXT NOT NULL,
        post_count INTEGER NOT NULL DEFAULT 0 CHECK (post_count >= 0),
        following_count INTEGER NOT NULL DEFAULT 0 CHECK (following_count >= 0),
        followers_count INTEGER NOT NULL DEFAULT 0 CHECK (followers_count >= 0),
        tagged_count INTEGER NOT NULL DEFAULT 0 CHECK (tagged_count >= 0),
        created_at DATETIME DEFAULT (CURRENT_TIMESTAMP),
        updated_at DATETIME DEFAULT (CURRENT_TIMESTAMP)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS TAG_SYNONYMS (
        tag_id TEXT NOT NULL PRIMARY KEY,
        synonym_id TEXT NOT NULL,
        created_at DATETIME DEFAULT (CURRENT_TIMESTAMP),
        CONSTRAINT ck_synonym_not_self CHECK (synonym_id != tag_id)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS DOCUMENTS (
        document_id TEXT NOT NULL PRIMARY KEY,
        body TEXT NOT NULL,
        created_at DATETIME DEFAULT (CURRENT_TIMESTAMP),
        updated_at DATETIME DEFAULT (CURRENT_TIMESTAMP)
    );
    """,
    """
    CREATE TABLE IF NOT EXISTS RELATIONSHIPS (
        relationship_id TEXT NOT NULL PRIMARY KEY,
        role TEXT NOT NULL,
        source_id TEXT NOT NULL,
        source_kind TEXT NOT NULL,
        target_id TEXT NOT NULL,
        target_kind TEXT NOT NULL,
        timestamp TEXT NOT NULL
    );
    """,
]


def create_schema(conn: sqlite3.Connection) -> None:
    """DBスキーマ（テーブル）を作成する."""
    for stmt in SCHEMA_SQL:
        conn.executescript(stmt)
    conn.commit()


def create_database(db_path: Path | str) -> None:
    """データベースファイルを新規作成する（スキーマ・インデックス込み）.

    Args:
        db_path: 作成するデータベースファイルパス

    Note:
        既に存在する場合は警告のみ出して何もしない。
    """
    db_path = Path(db_path)

    if db_path.exists():
        logger.warning(f"Database already exists: {db_path}")
        return

    db_path.parent.mkdir(parents=True, exist_ok=True)
    logger.info(f"Creating database: {db_path}")

    conn = sqlite3.connect(db_path)
    try:
        for pragma in PERSISTENT_PRAGMAS:
            conn.execute(pragma)
            logger.debug(f"Applied: {pragma}")

        create_schema(conn)
        logger.info("Database created successfully")

    except Exception as e:
        logger.error(f"Failed to create database: {e}")
        raise
    finally:
        conn.close()

    build_indexes(db_path)


def build_indexes(db_path: Path | str) -> None:
    """必須インデックスを作成する.

    Args:
        db_path: データベースファイルパス
    """
    db_path = Path(db_path)

    if not db_path.exists():
        msg = f"Database does not exist: {db_path}"
        raise FileNotFoundError(msg)

    logger.info(f"Building indexes: {db_path}")

    conn = sqlite3.connect(db_path)
    try:
        for index_sql in REQUIRED_INDEXES:
            logger.debug(f"Creating index: {index_sql}")
            conn.execute(index_sql)

        conn.commit()
        logger.info(f"Created {len(REQUIRED_INDEXES)} indexes successfully")

    except Exception as e:
        logger.error(f"Failed to build indexes: {e}")
        raise
    finally:
        conn.close()
