"""タググラフのストア（基底クラスと SQLite 実装）.

タグ削除・統合処理が利用するストア操作を共通インターフェースとして定義し、
SQLite による実装を提供します。
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path

from loguru import logger

from .database import apply_connection_pragmas
from .exceptions import DocumentNotFoundError, StoreError, SynonymNotFoundError, TagNotFoundError
from .models import ContentDocument, Relationship, RelationshipFilter, Tag, TagCounts


class BaseStore(ABC):
    """タググラフストアの基底クラス.

    get_* は対象が存在しない場合 NotFoundError のサブクラスを送出する。
    それ以外のストア障害は StoreError として送出する。
    """

    @abstractmethod
    def get_tag(self, tag_id: str) -> Tag: ...

    @abstractmethod
    def update_tag(self, tag: Tag) -> None: ...

    @abstractmethod
    def get_document(self, document_id: str) -> ContentDocument: ...

    @abstractmethod
    def update_document(self, document: ContentDocument) -> None: ...

    @abstractmethod
    def delete_document(self, document_id: str) -> None: ...

    @abstractmethod
    def find_relationships(self, selector: RelationshipFilter) -> list[Relationship]:
        """selector に一致する関連を全件返す（順序は保証しない）."""
        ...

    @abstractmethod
    def find_one_relationship(self, selector: RelationshipFilter) -> Relationship | None:
        """selector に一致する関連を1件返す（存在確認用。無ければ None）."""
        ...

    @abstractmethod
    def create_relationship(self, rel: Relationship) -> None: ...

    @abstractmethod
    def remove_relationship(self, rel: Relationship) -> None:
        """role と両端点が一致する関連を削除する（relationship_id は見ない）."""
        ...

    @abstractmethod
    def resolve_synonym(self, tag_id: str) -> Tag:
        """tag_id の統合先タグを返す.

        Raises:
            SynonymNotFoundError: 統合先が未設定、または統合先タグが存在しない場合
        """
        ...


_RELATIONSHIP_COLUMNS = "relationship_id, role, source_id, source_kind, target_id, target_kind, timestamp"


def _row_to_relationship(row: sqlite3.Row) -> Relationship:
    return Relationship(
        relationship_id=row["relationship_id"],
        role=row["role"],
        source_id=row["source_id"],
        source_kind=row["source_kind"],
        target_id=row["target_id"],
        target_kind=row["target_kind"],
        timestamp=row["timestamp"],
    )


def _row_to_tag(row: sqlite3.Row) -> Tag:
    return Tag(
        tag_id=row["tag_id"],
        title=row["title"],
        counts=TagCounts(
            post=row["post_count"],
            following=row["following_count"],
            followers=row["followers_count"],
            tagged=row["tagged_count"],
        ),
    )


class SQLiteStore(BaseStore):
    """SQLite によるストア実装.

    接続は autocommit（isolation_level=None）で開く。複数文書にまたがる
    トランザクションは提供しない。

    Examples:
        >>> with SQLiteStore("graph.sqlite") as store:  # doctest: +SKIP
        ...     tag = store.get_tag("T1")
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            msg = f"Database does not exist: {self.db_path}"
            raise FileNotFoundError(msg)

        self._conn = sqlite3.connect(self.db_path, isolation_level=None, check_same_thread=False)
        self._conn.row_factory = sqlite3.Row
        apply_connection_pragmas(self._conn)

    def close(self) -> None:
        self._conn.close()

    def __enter__(self) -> SQLiteStore:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    @contextmanager
    def _operation(self, name: str) -> Iterator[sqlite3.Connection]:
        try:
            yield self._conn
        except sqlite3.Error as e:
            logger.error(f"SQLite error in {name}: {e}")
            raise StoreError(name, str(e)) from e

    # --- tags ---

    def get_tag(self, tag_id: str) -> Tag:
        with self._operation("get_tag") as conn:
            row = conn.execute("SELECT * FROM TAGS WHERE tag_id = ?", (tag_id,)).fetchone()
        if row is None:
            raise TagNotFoundError(tag_id)
        return _row_to_tag(row)

    def insert_tag(self, tag: Tag) -> None:
        with self._operation("insert_tag") as conn:
            conn.execute(
                """
                INSERT INTO TAGS (tag_id, title, post_count, following_count, followers_count, tagged_count)
                VALUES (?, ?, ?, ?, ?, ?)
                """,
                (
                    tag.tag_id,
                    tag.title,
                    tag.counts.post,
                    tag.counts.following,
                    tag.counts.followers,
                    tag.counts.tagged,
                ),
            )

    def update_tag(self, tag: Tag) -> None:
        with self._operation("update_tag") as conn:
            cur = conn.execute(
                """
                UPDATE TAGS
                SET title = ?,
                    post_count = ?,
                    following_count = ?,
                    followers_count = ?,
                    tagged_count = ?,
                    updated_at = CURRENT_TIMESTAMP
                WHERE tag_id = ?
                """,
                (
                    tag.title,
                    tag.counts.post,
                    tag.counts.following,
                    tag.counts.followers,
                    tag.counts.tagged,
                    tag.tag_id,
                ),
            )
        if cur.rowcount == 0:
            raise TagNotFoundError(tag.tag_id)

    def set_synonym(self, tag_id: str, synonym_id: str) -> None:
        with self._operation("set_synonym") as conn:
            conn.execute(
                "INSERT OR REPLACE INTO TAG_SYNONYMS (tag_id, synonym_id) VALUES (?, ?)",
                (tag_id, synonym_id),
            )

    def resolve_synonym(self, tag_id: str) -> Tag:
        with self._operation("resolve_synonym") as conn:
            row = conn.execute("SELECT synonym_id FROM TAG_SYNONYMS WHERE tag_id = ?", (tag_id,)).fetchone()
        if row is None:
            raise SynonymNotFoundError(tag_id)
        try:
            return self.get_tag(row["synonym_id"])
        except TagNotFoundError as e:
            raise SynonymNotFoundError(tag_id) from e

    # --- documents ---

    def get_document(self, document_id: str) -> ContentDocument:
        with self._operation("get_document") as conn:
            row = conn.execute(
                "SELECT document_id, body FROM DOCUMENTS WHERE document_id = ?", (document_id,)
            ).fetchone()
        if row is None:
            raise DocumentNotFoundError(document_id)
        return ContentDocument(document_id=row["document_id"], body=row["body"])

    def insert_document(self, document: ContentDocument) -> None:
        with self._operation("insert_document") as conn:
            conn.execute(
                "INSERT INTO DOCUMENTS (document_id, body) VALUES (?, ?)",
                (document.document_id, document.body),
            )

    def update_document(self, document: ContentDocument) -> None:
        with self._operation("update_document") as conn:
            cur = conn.execute(
                "UPDATE DOCUMENTS SET body = ?, updated_at = CURRENT_TIMESTAMP WHERE document_id = ?",
                (document.body, document.document_id),
            )
        if cur.rowcount == 0:
            raise DocumentNotFoundError(document.document_id)

    def delete_document(self, document_id: str) -> None:
        with self._operation("delete_document") as conn:
            cur = conn.execute("DELETE FROM DOCUMENTS WHERE document_id = ?", (document_id,))
        if cur.rowcount == 0:
            raise DocumentNotFoundError(document_id)

    # --- relationships ---

    def find_relationships(self, selector: RelationshipFilter) -> list[Relationship]:
        where, params = selector.to_where()
        with self._operation("find_relationships") as conn:
            rows = conn.execute(
                f"SELECT {_RELATIONSHIP_COLUMNS} FROM RELATIONSHIPS WHERE {where} "
                "ORDER BY timestamp, relationship_id",
                params,
            ).fetchall()
        return [_row_to_relationship(r) for r in rows]

    def find_one_relationship(self, selector: RelationshipFilter) -> Relationship | None:
        where, params = selector.to_where()
        with self._operation("find_one_relationship") as conn:
            row = conn.execute(
                f"SELECT {_RELATIONSHIP_COLUMNS} FROM RELATIONSHIPS WHERE {where} LIMIT 1",
                params,
            ).fetchone()
        return None if row is None else _row_to_relationship(row)

    def create_relationship(self, rel: Relationship) -> None:
        if rel.relationship_id is None:
            raise ValueError("create_relationship() requires relationship_id")
        with self._operation("create_relationship") as conn:
            conn.execute(
                f"INSERT INTO RELATIONSHIPS ({_RELATIONSHIP_COLUMNS}) VALUES (?, ?, ?, ?, ?, ?, ?)",
                (
                    rel.relationship_id,
                    rel.role,
                    rel.source_id,
                    rel.source_kind,
                    rel.target_id,
                    rel.target_kind,
                    rel.timestamp,
                ),
            )

    def remove_relationship(self, rel: Relationship) -> None:
        with self._operation("remove_relationship") as conn:
            conn.execute(
                """
                DELETE FROM RELATIONSHIPS
                WHERE role = ? AND source_id = ? AND source_kind = ? AND target_id = ? AND target_kind = ?
                """,
                (rel.role, rel.source_id, rel.source_kind, rel.target_id, rel.target_kind),
            )
