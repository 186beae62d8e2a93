"""タグ削除・統合のコア処理群.

- 本文マーカーの書き換え（|#:JTag:<tag_id>|）
- 関連レコードのミラー導出と付け替え
- ストア（基底クラス / SQLite 実装）
"""

from .body import build_tag_marker, update_post_body
from .relationships import convert_tag_relationships, swap_relationship, update_tag_relationships
from .store import BaseStore, SQLiteStore

__all__ = [
    "build_tag_marker",
    "update_post_body",
    "swap_relationship",
    "convert_tag_relationships",
    "update_tag_relationships",
    "BaseStore",
    "SQLiteStore",
]
