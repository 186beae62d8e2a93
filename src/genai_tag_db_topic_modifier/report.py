"""タグ削除・統合結果の出力（レポート）.

各呼び出しの結果と、スキップした投稿の一覧をCSVとして出力します。
"""

from __future__ import annotations

from collections.abc import Sequence
from pathlib import Path

import polars as pl

from genai_tag_db_topic_modifier.topic_modifier import TopicModificationResult

MODIFICATIONS_SCHEMA = {
    "operation": pl.String,
    "tag_id": pl.String,
    "synonym_id": pl.String,
    "stage": pl.String,
    "tagged_posts": pl.Int64,
    "moved_posts": pl.Int64,
    "removed_duplicates": pl.Int64,
    "deleted_documents": pl.Int64,
    "skipped_documents": pl.Int64,
    "new_followers": pl.Int64,
    "already_following": pl.Int64,
}

SKIPPED_SCHEMA = {
    "operation": pl.String,
    "tag_id": pl.String,
    "document_id": pl.String,
    "relationship_id": pl.String,
    "reason": pl.String,
}


def modifications_to_frame(results: Sequence[TopicModificationResult]) -> pl.DataFrame:
    """結果を1呼び出し1行の DataFrame に変換する."""
    rows = [
        {
            "operation": r.operation,
            "tag_id": r.tag_id,
            "synonym_id": r.synonym_id,
            "stage": r.stage.value,
            "tagged_posts": r.tagged_posts,
            "moved_posts": r.moved_posts,
            "removed_duplicates": r.removed_duplicates,
            "deleted_documents": len(r.deleted_documents),
            "skipped_documents": len(r.skipped),
            "new_followers": r.new_followers,
            "already_following": r.already_following,
        }
        for r in results
    ]
    return pl.DataFrame(rows, schema=MODIFICATIONS_SCHEMA)


def skipped_to_frame(results: Sequence[TopicModificationResult]) -> pl.DataFrame:
    rows = [
        {
            "operation": r.operation,
            "tag_id": r.tag_id,
            "document_id": s.document_id,
            "relationship_id": s.relationship_id,
            "reason": s.reason,
        }
        for r in results
        for s in r.skipped
    ]
    return pl.DataFrame(rows, schema=SKIPPED_SCHEMA)


def export_modification_report(
    results: Sequence[TopicModificationResult],
    output_dir: Path | str,
) -> dict[str, Path | None]:
    """削除・統合結果のレポートをCSVファイルとして出力する.

    Args:
        results: delete_tag() / merge_tag() の戻り値のリスト
        output_dir: 出力ディレクトリ

    Returns:
        出力したCSVのパス（出力対象が無ければ None）
        - "modifications": topic_modifications.csv
        - "skipped": skipped_documents.csv
    """
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    result_paths: dict[str, Path | None] = {}

    modifications = modifications_to_frame(results)
    modifications_path = output_dir / "topic_modifications.csv"
    if len(modifications) > 0:
        modifications.write_csv(modifications_path)
        result_paths["modifications"] = modifications_path
    else:
        result_paths["modifications"] = None

    skipped = skipped_to_frame(results)
    skipped_path = output_dir / "skipped_documents.csv"
    if len(skipped) > 0:
        skipped.write_csv(skipped_path)
        result_paths["skipped"] = skipped_path
    else:
        result_paths["skipped"] = None

    return result_paths
