"""関連レコードのミラー導出と付け替え.

投稿とタグの関連は ROLE_TAG（投稿 -> タグ）と ROLE_POST（タグ -> 投稿）の2レコードで
冗長に保存される。片方だけを更新するとグラフが不整合になるため、ミラーの導出は
swap_relationship() に、削除・再作成は update_tag_relationships() に集約する。
"""

from __future__ import annotations

import uuid
from collections.abc import Iterable
from dataclasses import replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from loguru import logger

from .models import KIND_POST, KIND_TAG, ROLE_POST, ROLE_TAG, Relationship

if TYPE_CHECKING:
    from .store import BaseStore


def new_relationship_id() -> str:
    return uuid.uuid4().hex


def swap_relationship(rel: Relationship, role: str) -> Relationship:
    """source/target を入れ替え、role を差し替えたミラーを返す.

    timestamp は維持し、relationship_id は持たない（ストア上のミラーは
    role と両端点で特定する）。

    Examples:
        >>> rel = Relationship("tag", "D1", "JNewStatusUpdate", "T1", "JTag", "2024-01-01T00:00:00")
        >>> swap_relationship(rel, "post").source_id
        'T1'
    """
    return Relationship(
        role=role,
        source_id=rel.target_id,
        source_kind=rel.target_kind,
        target_id=rel.source_id,
        target_kind=rel.source_kind,
        timestamp=rel.timestamp,
    )


def convert_tag_relationships(tag_rels: Iterable[Relationship]) -> list[Relationship]:
    """ROLE_TAG レコード群から ROLE_POST ミラー群を導出する."""
    return [swap_relationship(rel, ROLE_POST) for rel in tag_rels]


def create_tag_relationships(
    store: BaseStore,
    document_id: str,
    tag_id: str,
    timestamp: str | None = None,
) -> tuple[Relationship, Relationship]:
    """投稿にタグを付与する（ROLE_TAG とそのミラー ROLE_POST を同時に作成）.

    Returns:
        (ROLE_TAG レコード, ROLE_POST レコード)
    """
    if timestamp is None:
        timestamp = datetime.now(UTC).isoformat()
    tag_rel = Relationship(
        role=ROLE_TAG,
        source_id=document_id,
        source_kind=KIND_POST,
        target_id=tag_id,
        target_kind=KIND_TAG,
        timestamp=timestamp,
        relationship_id=new_relationship_id(),
    )
    post_rel = replace(swap_relationship(tag_rel, ROLE_POST), relationship_id=new_relationship_id())
    store.create_relationship(tag_rel)
    store.create_relationship(post_rel)
    return tag_rel, post_rel


def reanchor_relationship(rel: Relationship, synonym_id: str) -> Relationship:
    """JTag 側の端点を synonym_id に差し替え、新しい ID を採番したレコードを返す."""
    if rel.target_kind == KIND_TAG:
        return replace(rel, target_id=synonym_id, relationship_id=new_relationship_id())
    return replace(rel, source_id=synonym_id, relationship_id=new_relationship_id())


def update_tag_relationships(
    store: BaseStore,
    rels: Iterable[Relationship],
    synonym_id: str | None,
) -> list[Relationship]:
    """旧関連を削除し、synonym_id が指定されていれば付け替えた関連を作成する.

    Args:
        store: 関連を保持するストア
        rels: 処理対象の関連
        synonym_id: 付け替え先の tag_id（None の場合は削除のみ）

    Returns:
        新規作成した関連のリスト

    Raises:
        StoreError: 削除・作成に失敗した場合（残りのバッチは処理しない。
            処理済みの削除・作成は巻き戻さない）
    """
    created: list[Relationship] = []
    for rel in rels:
        store.remove_relationship(rel)
        if synonym_id is None:
            continue
        new_rel = reanchor_relationship(rel, synonym_id)
        store.create_relationship(new_rel)
        created.append(new_rel)

    if synonym_id is not None:
        logger.debug(f"Re-anchored {len(created)} relationship(s) onto {synonym_id}")
    return created
