"""タグの削除と統合（オーケストレーター）.

削除・統合の対象タグを参照している投稿本文のマーカーを書き換え、タグに紐づく関連
（ROLE_TAG とそのミラー ROLE_POST、ROLE_FOLLOWER）を削除または統合先へ付け替え、
タグのカウンタを更新する。

処理順（1回の呼び出し内）:
    Start -> DocumentsRewritten -> EdgesReconciled -> CountersUpdated -> Done

- 投稿単位の失敗（読み込み・保存）はログに残してスキップし、残りの投稿は処理を続ける。
- 関連の削除・作成の失敗は StoreError としてそのまま送出する（巻き戻しはしない）。
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum

from loguru import logger

from genai_tag_db_topic_modifier.core.body import is_blank_body, update_post_body
from genai_tag_db_topic_modifier.core.exceptions import (
    SynonymNotFoundError,
    TagNotFoundError,
    TopicModifierError,
)
from genai_tag_db_topic_modifier.core.models import (
    KIND_ACCOUNT,
    ROLE_FOLLOWER,
    ROLE_POST,
    ROLE_TAG,
    Relationship,
    RelationshipFilter,
    Tag,
    TagCounts,
)
from genai_tag_db_topic_modifier.core.relationships import (
    convert_tag_relationships,
    swap_relationship,
    update_tag_relationships,
)
from genai_tag_db_topic_modifier.core.store import BaseStore

OPERATION_DELETE = "delete"
OPERATION_MERGE = "merge"


class ModificationStage(str, Enum):
    START = "start"
    DOCUMENTS_REWRITTEN = "documents_rewritten"
    EDGES_RECONCILED = "edges_reconciled"
    COUNTERS_UPDATED = "counters_updated"
    DONE = "done"


@dataclass(frozen=True)
class SkippedDocument:
    document_id: str
    relationship_id: str | None
    reason: str


@dataclass
class PostUpdateResult:
    """update_posts() の処理結果.

    Attributes:
        retained: 統合先へ付け替える関連（本文に統合先マーカーが無かった投稿）
        duplicates: 本文に統合先マーカーが既にあり、その場で削除した関連
        deleted_documents: 本文が空になり削除した投稿ID
        skipped: 読み込み・保存に失敗してスキップした投稿
    """

    retained: list[Relationship] = field(default_factory=list)
    duplicates: list[Relationship] = field(default_factory=list)
    deleted_documents: list[str] = field(default_factory=list)
    skipped: list[SkippedDocument] = field(default_factory=list)


@dataclass
class TopicModificationResult:
    operation: str
    tag_id: str
    synonym_id: str | None = None
    stage: ModificationStage = ModificationStage.START
    tagged_posts: int = 0
    moved_posts: int = 0
    removed_duplicates: int = 0
    deleted_documents: list[str] = field(default_factory=list)
    skipped: list[SkippedDocument] = field(default_factory=list)
    new_followers: int = 0
    already_following: int = 0

    def advance(self, stage: ModificationStage) -> None:
        logger.debug(f"[{self.operation} {self.tag_id}] {self.stage.value} -> {stage.value}")
        self.stage = stage


def update_posts(
    store: BaseStore,
    rels: list[Relationship],
    new_tag_id: str,
) -> PostUpdateResult:
    """関連元の投稿本文のタグマーカーを new_tag_id に書き換える.

    new_tag_id が空、または本文に new_tag_id のマーカーが既にある場合はマーカーを削除する。
    後者（重複）の場合は、統合先との関連が既に存在するため、ROLE_TAG 関連とそのミラーを
    ここで削除し、付け替え対象から外す。

    Args:
        store: ストア
        rels: 対象タグを指す ROLE_TAG 関連
        new_tag_id: 置換先の tag_id（削除の場合は ""）

    Returns:
        PostUpdateResult（付け替え対象の関連は retained）
    """
    result = PostUpdateResult()
    for rel in rels:
        tag_id = rel.target_id
        try:
            document = store.get_document(rel.source_id)
        except TopicModifierError as e:
            logger.error(f"Status Update Not Found - Id: {rel.source_id}, Err: {e}")
            result.skipped.append(SkippedDocument(rel.source_id, rel.relationship_id, str(e)))
            continue

        tag_included = update_post_body(document, tag_id, new_tag_id)
        try:
            if is_blank_body(document.body):
                store.delete_document(document.document_id)
                result.deleted_documents.append(document.document_id)
            else:
                store.update_document(document)

            if tag_included:
                store.remove_relationship(rel)
                store.remove_relationship(swap_relationship(rel, ROLE_POST))
        except TopicModifierError as e:
            logger.error(f"Failed to update status update - Id: {document.document_id}, Err: {e}")
            result.skipped.append(SkippedDocument(document.document_id, rel.relationship_id, str(e)))
            continue

        if tag_included:
            result.duplicates.append(rel)
        else:
            result.retained.append(rel)

    return result


def update_counts(tag: Tag, synonym: Tag) -> None:
    """following / tagged を統合先へ加算する.

    post / followers は実際に付け替えた関連数で別途加算する。
    """
    # TODO: following/tagged は関連の実数と照合していない。集計の意味が確定したら実数ベースに置き換える
    synonym.counts.following += tag.counts.following
    synonym.counts.tagged += tag.counts.tagged


def update_followers(store: BaseStore, tag: Tag, synonym: Tag) -> tuple[int, int]:
    """tag のフォロワーを synonym へ移す.

    既に synonym をフォローしているアカウントは、tag 側の関連を削除するだけで
    synonym 側には追加しない。

    Returns:
        (新たに synonym のフォロワーになった数, 既にフォローしていた数)

    Raises:
        StoreError: 存在確認または関連の削除・作成に失敗した場合
    """
    selector = RelationshipFilter(
        source_id=tag.tag_id,
        role=ROLE_FOLLOWER,
        target_kind=KIND_ACCOUNT,
    )
    rels = store.find_relationships(selector)

    old_followers: list[Relationship] = []
    new_followers: list[Relationship] = []
    for rel in rels:
        # synonym 側に同じアカウントの関連があるか
        lookup = replace(selector, source_id=synonym.tag_id, target_id=rel.target_id)
        if store.find_one_relationship(lookup) is None:
            new_followers.append(rel)
        else:
            old_followers.append(rel)

    logger.info(f"{len(old_followers)} users are already following new topic")
    if old_followers:
        update_tag_relationships(store, old_followers, None)

    logger.info(f"{len(new_followers)} users followed new topic")
    if new_followers:
        update_tag_relationships(store, new_followers, synonym.tag_id)

    return len(new_followers), len(old_followers)


def _get_tag(store: BaseStore, tag_id: str) -> Tag:
    try:
        return store.get_tag(tag_id)
    except TagNotFoundError:
        logger.error(f"Tag not found - Id: {tag_id}")
        raise


def delete_tag(store: BaseStore, tag_id: str) -> TopicModificationResult:
    """タグを削除する.

    投稿本文からタグマーカーを取り除き（空になった投稿は削除）、タグと投稿の関連を
    両方向とも削除し、カウンタを0に戻す。タグのレコード自体は残す。

    Args:
        store: ストア
        tag_id: 削除するタグID

    Returns:
        TopicModificationResult

    Raises:
        TagNotFoundError: タグが存在しない場合
        StoreError: 関連の削除、またはタグの保存に失敗した場合
    """
    logger.info("Deleting topic")
    tag = _get_tag(store, tag_id)
    logger.info(f"Deleting {tag.title}")

    result = TopicModificationResult(operation=OPERATION_DELETE, tag_id=tag_id)

    rels = store.find_relationships(RelationshipFilter(target_id=tag_id, role=ROLE_TAG))
    result.tagged_posts = len(rels)

    post_result = update_posts(store, rels, "")
    result.deleted_documents = post_result.deleted_documents
    result.skipped = post_result.skipped
    result.advance(ModificationStage.DOCUMENTS_REWRITTEN)

    update_tag_relationships(store, rels, None)
    update_tag_relationships(store, convert_tag_relationships(rels), None)
    result.advance(ModificationStage.EDGES_RECONCILED)

    tag.counts = TagCounts()
    store.update_tag(tag)
    result.advance(ModificationStage.COUNTERS_UPDATED)

    logger.info(
        f"Deleted topic {tag.title}: {len(rels)} relationship(s) removed, "
        f"{len(result.deleted_documents)} post(s) deleted, {len(result.skipped)} skipped"
    )
    result.advance(ModificationStage.DONE)
    return result


def merge_tag(store: BaseStore, tag_id: str) -> TopicModificationResult:
    """タグを統合先（synonym）へ統合する.

    投稿本文のマーカーを統合先へ置き換え、関連とフォロワーを統合先へ付け替え、
    カウンタを統合先へ集約したうえで、元タグのカウンタを0に戻す。

    Args:
        store: ストア
        tag_id: 統合元のタグID

    Returns:
        TopicModificationResult

    Raises:
        TagNotFoundError: タグが存在しない場合
        SynonymNotFoundError: 統合先が解決できない場合
        TopicModifierError: 統合先が自分自身の場合
        StoreError: 関連の削除・作成、またはタグの保存に失敗した場合
    """
    logger.info("Merging topics")
    tag = _get_tag(store, tag_id)

    try:
        synonym = store.resolve_synonym(tag_id)
    except SynonymNotFoundError:
        logger.error(f"Synonym not found - Id: {tag_id}")
        raise

    if synonym.tag_id == tag.tag_id:
        raise TopicModifierError(f"Cannot merge topic into itself - Id: {tag_id}")

    logger.info(f"Merging Topic {tag.title} into {synonym.title}")
    result = TopicModificationResult(operation=OPERATION_MERGE, tag_id=tag_id, synonym_id=synonym.tag_id)

    tag_rels = store.find_relationships(RelationshipFilter(target_id=tag_id, role=ROLE_TAG))
    result.tagged_posts = len(tag_rels)
    logger.info(f"{len(tag_rels)} tagged posts found")

    post_result = update_posts(store, tag_rels, synonym.tag_id)
    moved = post_result.retained
    result.moved_posts = len(moved)
    result.removed_duplicates = len(post_result.duplicates)
    result.deleted_documents = post_result.deleted_documents
    result.skipped = post_result.skipped
    result.advance(ModificationStage.DOCUMENTS_REWRITTEN)
    logger.info(f"Merged Post count {len(moved)}")

    if moved:
        update_tag_relationships(store, moved, synonym.tag_id)
        update_tag_relationships(store, convert_tag_relationships(moved), synonym.tag_id)
    synonym.counts.post += len(moved)

    new_count, old_count = update_followers(store, tag, synonym)
    result.new_followers = new_count
    result.already_following = old_count
    result.advance(ModificationStage.EDGES_RECONCILED)

    update_counts(tag, synonym)
    synonym.counts.followers += new_count
    store.update_tag(synonym)

    tag.counts = TagCounts()
    store.update_tag(tag)
    result.advance(ModificationStage.COUNTERS_UPDATED)

    result.advance(ModificationStage.DONE)
    return result
