"""Shared pytest fixtures (SQLite タググラフ)."""

from collections.abc import Iterator
from pathlib import Path

import pytest

from genai_tag_db_topic_modifier.core.database import create_database
from genai_tag_db_topic_modifier.core.models import (
    KIND_ACCOUNT,
    KIND_TAG,
    ROLE_FOLLOWER,
    ContentDocument,
    Relationship,
    Tag,
    TagCounts,
)
from genai_tag_db_topic_modifier.core.relationships import create_tag_relationships, new_relationship_id
from genai_tag_db_topic_modifier.core.store import SQLiteStore

TIMESTAMP = "2024-01-01T00:00:00+00:00"


class GraphBuilder:
    """テスト用のタググラフ投入ヘルパー."""

    def __init__(self, store: SQLiteStore) -> None:
        self.store = store

    def tag(self, tag_id: str, title: str | None = None, **counts: int) -> Tag:
        tag = Tag(tag_id=tag_id, title=title or tag_id.lower(), counts=TagCounts(**counts))
        self.store.insert_tag(tag)
        return tag

    def post(self, document_id: str, body: str, *tag_ids: str) -> ContentDocument:
        """投稿を作成し、tag_ids それぞれとの関連（tag/post の組）を作成する."""
        document = ContentDocument(document_id=document_id, body=body)
        self.store.insert_document(document)
        for tag_id in tag_ids:
            create_tag_relationships(self.store, document_id, tag_id, timestamp=TIMESTAMP)
        return document

    def follower(self, tag_id: str, account_id: str) -> Relationship:
        rel = Relationship(
            role=ROLE_FOLLOWER,
            source_id=tag_id,
            source_kind=KIND_TAG,
            target_id=account_id,
            target_kind=KIND_ACCOUNT,
            timestamp=TIMESTAMP,
            relationship_id=new_relationship_id(),
        )
        self.store.create_relationship(rel)
        return rel


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    path = tmp_path / "graph.sqlite"
    create_database(path)
    return path


@pytest.fixture
def store(db_path: Path) -> Iterator[SQLiteStore]:
    with SQLiteStore(db_path) as s:
        yield s


@pytest.fixture
def graph(store: SQLiteStore) -> GraphBuilder:
    return GraphBuilder(store)
