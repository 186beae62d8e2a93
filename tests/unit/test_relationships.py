"""Unit tests for relationship mirroring and re-anchoring."""

from unittest.mock import patch

import pytest

from genai_tag_db_topic_modifier.core.exceptions import StoreError
from genai_tag_db_topic_modifier.core.models import (
    KIND_POST,
    KIND_TAG,
    ROLE_POST,
    ROLE_TAG,
    Relationship,
    RelationshipFilter,
)
from genai_tag_db_topic_modifier.core.relationships import (
    convert_tag_relationships,
    reanchor_relationship,
    swap_relationship,
    update_tag_relationships,
)


def _tag_rel(document_id: str = "D1", tag_id: str = "T1") -> Relationship:
    return Relationship(
        role=ROLE_TAG,
        source_id=document_id,
        source_kind=KIND_POST,
        target_id=tag_id,
        target_kind=KIND_TAG,
        timestamp="2024-01-01T00:00:00+00:00",
        relationship_id="r1",
    )


class TestSwapRelationship:
    """swap_relationship関数のテスト."""

    def test_swap(self) -> None:
        mirror = swap_relationship(_tag_rel(), ROLE_POST)

        assert mirror.role == ROLE_POST
        assert (mirror.source_id, mirror.source_kind) == ("T1", KIND_TAG)
        assert (mirror.target_id, mirror.target_kind) == ("D1", KIND_POST)
        assert mirror.timestamp == "2024-01-01T00:00:00+00:00"
        assert mirror.relationship_id is None

    def test_swap_twice_restores_endpoints(self) -> None:
        rel = _tag_rel()
        back = swap_relationship(swap_relationship(rel, ROLE_POST), ROLE_TAG)

        assert back.source_id == rel.source_id
        assert back.target_id == rel.target_id

    def test_convert_tag_relationships(self) -> None:
        mirrors = convert_tag_relationships([_tag_rel("D1"), _tag_rel("D2")])

        assert [m.role for m in mirrors] == [ROLE_POST, ROLE_POST]
        assert [m.target_id for m in mirrors] == ["D1", "D2"]


class TestReanchorRelationship:
    def test_tag_side_is_target(self) -> None:
        new_rel = reanchor_relationship(_tag_rel(), "S")

        assert new_rel.target_id == "S"
        assert new_rel.source_id == "D1"
        assert new_rel.relationship_id not in (None, "r1")

    def test_tag_side_is_source(self) -> None:
        mirror = swap_relationship(_tag_rel(), ROLE_POST)
        new_rel = reanchor_relationship(mirror, "S")

        assert new_rel.source_id == "S"
        assert new_rel.target_id == "D1"
        assert new_rel.timestamp == mirror.timestamp


class TestUpdateTagRelationships:
    """update_tag_relationships関数のテスト."""

    def test_remove_only(self, store, graph) -> None:
        graph.tag("T1")
        graph.post("D1", "|#:JTag:T1|", "T1")
        rels = store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG))

        created = update_tag_relationships(store, rels, None)

        assert created == []
        assert store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG)) == []
        # ミラーは別途処理するまで残る
        assert len(store.find_relationships(RelationshipFilter(source_id="T1", role=ROLE_POST))) == 1

    def test_reanchor_onto_synonym(self, store, graph) -> None:
        graph.tag("T1")
        graph.tag("S")
        graph.post("D1", "|#:JTag:T1|", "T1")
        rels = store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG))

        created = update_tag_relationships(store, rels, "S")

        assert len(created) == 1
        moved = store.find_relationships(RelationshipFilter(target_id="S", role=ROLE_TAG))
        assert [r.source_id for r in moved] == ["D1"]
        assert moved[0].relationship_id != rels[0].relationship_id

    def test_abort_on_first_store_failure(self, store, graph) -> None:
        """最初の失敗で残りのバッチを中断する（処理済みは戻さない）."""
        graph.tag("T1")
        graph.tag("S")
        graph.post("D1", "|#:JTag:T1|", "T1")
        graph.post("D2", "|#:JTag:T1|", "T1")
        rels = store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG))

        original_create = store.create_relationship
        calls = {"n": 0}

        def failing_create(rel: Relationship) -> None:
            calls["n"] += 1
            if calls["n"] == 2:
                raise StoreError("create_relationship", "disk I/O error")
            original_create(rel)

        with patch.object(store, "create_relationship", side_effect=failing_create):
            with pytest.raises(StoreError):
                update_tag_relationships(store, rels, "S")

        assert len(store.find_relationships(RelationshipFilter(target_id="S", role=ROLE_TAG))) == 1
        # 2件目は削除済み・作成失敗のため、どちらのタグにも残らない
        assert store.find_relationships(RelationshipFilter(target_id="T1", role=ROLE_TAG)) == []
