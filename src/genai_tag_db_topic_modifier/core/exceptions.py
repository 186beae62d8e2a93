"""Topic modifier exceptions.

タグ削除・統合処理で使用するカスタム例外クラスを定義します。
"""


class TopicModifierError(Exception):
    """タグ削除・統合処理の基底例外."""


class NotFoundError(TopicModifierError):
    """参照先オブジェクトが存在しない場合の例外.

    Attributes:
        kind: オブジェクト種別（"tag" / "synonym" / "document"）
        object_id: 見つからなかったオブジェクトID
    """

    kind = "object"

    def __init__(self, object_id: str) -> None:
        self.object_id = object_id
        super().__init__(f"{self.kind.capitalize()} not found - Id: {object_id}")


class TagNotFoundError(NotFoundError):
    kind = "tag"


class SynonymNotFoundError(NotFoundError):
    """統合先タグ（synonym）が解決できない場合の例外."""

    kind = "synonym"


class DocumentNotFoundError(NotFoundError):
    kind = "document"


class StoreError(TopicModifierError):
    """ストア操作（読み込み・書き込み・削除）に失敗した場合の例外.

    Attributes:
        operation: 失敗したストア操作名（例: "remove_relationship"）
    """

    def __init__(self, operation: str, detail: str) -> None:
        self.operation = operation
        self.detail = detail
        super().__init__(f"Store operation failed: {operation} ({detail})")
