"""Unit tests for SQLiteStore and RelationshipFilter."""

from pathlib import Path
from unittest.mock import patch

import pytest

from genai_tag_db_topic_modifier.core.exceptions import (
    DocumentNotFoundError,
    StoreError,
    SynonymNotFoundError,
    TagNotFoundError,
)
from genai_tag_db_topic_modifier.core.models import (
    KIND_ACCOUNT,
    ROLE_FOLLOWER,
    ROLE_POST,
    ROLE_TAG,
    ContentDocument,
    RelationshipFilter,
    TagCounts,
)
from genai_tag_db_topic_modifier.core.relationships import swap_relationship
from genai_tag_db_topic_modifier.core.store import SQLiteStore


class TestRelationshipFilter:
    """RelationshipFilterのテスト."""

    def test_to_where(self) -> None:
        where, params = RelationshipFilter(role=ROLE_TAG, target_id="T1").to_where()

        assert where == "role = ? AND target_id = ?"
        assert params == [ROLE_TAG, "T1"]

    def test_empty_filter_rejected(self) -> None:
        with pytest.raises(ValueError, match="at least one condition"):
            RelationshipFilter().to_where()


class TestSQLiteStore:
    """SQLiteStoreのテスト."""

    def test_open_nonexistent_db(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            SQLiteStore(tmp_path / "missing.sqlite")

    def test_tag_round_trip(self, store, graph) -> None:
        graph.tag("T1", "witch", post=3, followers=2)

        tag = store.get_tag("T1")
        tag.counts = TagCounts(post=1)
        store.update_tag(tag)

        assert store.get_tag("T1").counts == TagCounts(post=1)
        assert store.get_tag("T1").title == "witch"

    def test_get_missing_tag(self, store) -> None:
        with pytest.raises(TagNotFoundError) as exc_info:
            store.get_tag("nope")

        assert exc_info.value.object_id == "nope"
        assert "Tag not found" in str(exc_info.value)

    def test_document_update_and_delete(self, store, graph) -> None:
        graph.post("D1", "hello")

        store.update_document(ContentDocument("D1", "bye"))
        assert store.get_document("D1").body == "bye"

        store.delete_document("D1")
        with pytest.raises(DocumentNotFoundError):
            store.get_document("D1")

    def test_delete_missing_document(self, store) -> None:
        with pytest.raises(DocumentNotFoundError):
            store.delete_document("D404")

    def test_resolve_synonym(self, store, graph) -> None:
        graph.tag("T1")
        graph.tag("S", "synonym")
        store.set_synonym("T1", "S")

        assert store.resolve_synonym("T1").title == "synonym"

    def test_resolve_synonym_missing(self, store, graph) -> None:
        graph.tag("T1")

        with pytest.raises(SynonymNotFoundError):
            store.resolve_synonym("T1")

    def test_resolve_synonym_to_missing_tag(self, store, graph) -> None:
        """統合先タグのレコードが無い場合も SynonymNotFoundError."""
        graph.tag("T1")
        store.set_synonym("T1", "GONE")

        with pytest.raises(SynonymNotFoundError):
            store.resolve_synonym("T1")

    def test_mirrored_pair_created(self, store, graph) -> None:
        graph.tag("T1")
        graph.post("D1", "|#:JTag:T1|", "T1")

        tag_rels = store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG))
        post_rels = store.find_relationships(RelationshipFilter(source_id="T1", role=ROLE_POST))

        assert len(tag_rels) == 1
        assert len(post_rels) == 1
        assert post_rels[0].target_id == "D1"
        assert post_rels[0].timestamp == tag_rels[0].timestamp

    def test_remove_relationship_matches_endpoints(self, store, graph) -> None:
        """ID を持たないミラーでも role と両端点で削除できる."""
        graph.tag("T1")
        graph.post("D1", "|#:JTag:T1|", "T1")
        tag_rel = store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG))[0]

        store.remove_relationship(swap_relationship(tag_rel, ROLE_POST))

        assert store.find_relationships(RelationshipFilter(source_id="T1", role=ROLE_POST)) == []
        assert len(store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG))) == 1

    def test_find_one_relationship(self, store, graph) -> None:
        graph.tag("S")
        graph.follower("S", "A1")

        found = store.find_one_relationship(
            RelationshipFilter(source_id="S", role=ROLE_FOLLOWER, target_kind=KIND_ACCOUNT, target_id="A1")
        )
        missing = store.find_one_relationship(
            RelationshipFilter(source_id="S", role=ROLE_FOLLOWER, target_kind=KIND_ACCOUNT, target_id="A2")
        )

        assert found is not None
        assert found.target_id == "A1"
        assert missing is None

    def test_sqlite_error_wrapped(self, store, graph) -> None:
        """SQLite のエラーは StoreError に包まれる."""
        graph.tag("T1")

        with pytest.raises(StoreError) as exc_info:
            graph.tag("T1")

        assert exc_info.value.operation == "insert_tag"

    def test_find_logs_error_on_failure(self, store) -> None:
        store.close()

        with patch("genai_tag_db_topic_modifier.core.store.logger.error") as mock_error:
            with pytest.raises(StoreError):
                store.find_relationships(RelationshipFilter(role=ROLE_TAG))

        mock_error.assert_called_once()
        assert "find_relationships" in mock_error.call_args[0][0]
