"""タググラフのデータモデル.

- Tag / TagCounts: タグノードと集計カウンタ
- ContentDocument: タグマーカーを埋め込める本文を持つ投稿
- Relationship: 方向付きの関連（role 付き）
- RelationshipFilter: 関連検索用の型付きフィルタ
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields

# 関連の role（as）
ROLE_TAG = "tag"  # 投稿 -> タグ
ROLE_POST = "post"  # タグ -> 投稿（ROLE_TAG のミラー）
ROLE_FOLLOWER = "follower"  # タグ -> アカウント

# ノード種別（sourceName / targetName）
KIND_TAG = "JTag"
KIND_POST = "JNewStatusUpdate"
KIND_ACCOUNT = "JAccount"


@dataclass
class TagCounts:
    post: int = 0
    following: int = 0
    followers: int = 0
    tagged: int = 0


@dataclass
class Tag:
    tag_id: str
    title: str
    counts: TagCounts = field(default_factory=TagCounts)


@dataclass
class ContentDocument:
    document_id: str
    body: str


@dataclass(frozen=True)
class Relationship:
    """方向付きの関連レコード.

    "source_kind:source_id は target_kind:target_id に対して role である" を表す。
    投稿とタグの関連は ROLE_TAG / ROLE_POST の2レコード（同一 timestamp）で保存される。
    relationship_id はストア採番前（ミラー導出直後など）は None。
    """

    role: str
    source_id: str
    source_kind: str
    target_id: str
    target_kind: str
    timestamp: str
    relationship_id: str | None = None


# RelationshipFilter のフィールド名 -> RELATIONSHIPS の列名
_FILTER_COLUMNS = {
    "role": "role",
    "source_id": "source_id",
    "source_kind": "source_kind",
    "target_id": "target_id",
    "target_kind": "target_kind",
}


@dataclass(frozen=True)
class RelationshipFilter:
    """関連検索フィルタ（None のスロットは条件に含めない）."""

    role: str | None = None
    source_id: str | None = None
    source_kind: str | None = None
    target_id: str | None = None
    target_kind: str | None = None

    def is_empty(self) -> bool:
        return all(getattr(self, f.name) is None for f in fields(self))

    def to_where(self) -> tuple[str, list[str]]:
        """SQL の WHERE 句とパラメータを生成する.

        Returns:
            (WHERE 句（"WHERE" を含まない）, パラメータ) のタプル

        Raises:
            ValueError: 条件が1つも指定されていない場合（全件走査の防止）
        """
        if self.is_empty():
            raise ValueError("RelationshipFilter requires at least one condition")

        clauses: list[str] = []
        params: list[str] = []
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            clauses.append(f"{_FILTER_COLUMNS[f.name]} = ?")
            params.append(value)
        return " AND ".join(clauses), params
