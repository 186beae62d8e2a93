"""タググラフの整合性チェックを行い、TSVレポートを出力する。"""

from __future__ import annotations

import argparse
import csv
import sqlite3
from collections.abc import Iterable, Sequence
from pathlib import Path

from genai_tag_db_topic_modifier.core.body import extract_tag_ids


def _write_tsv(path: Path, header: Sequence[str], rows: Iterable[Sequence[object]]) -> int:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8", newline="") as f:
        writer = csv.writer(f, delimiter="\t")
        writer.writerow(list(header))
        count = 0
        for r in rows:
            writer.writerow(["" if v is None else v for v in r])
            count += 1
    return count


def _fetchall(con: sqlite3.Connection, sql: str, params: Sequence[object] = ()) -> list[sqlite3.Row]:
    cur = con.execute(sql, params)
    return cur.fetchall()


def _find_markers_without_relationship(con: sqlite3.Connection) -> list[tuple[str, str]]:
    tagged = {
        (r["source_id"], r["target_id"])
        for r in _fetchall(con, "SELECT source_id, target_id FROM RELATIONSHIPS WHERE role = 'tag'")
    }
    missing: list[tuple[str, str]] = []
    for r in _fetchall(con, "SELECT document_id, body FROM DOCUMENTS ORDER BY document_id"):
        for tag_id in dict.fromkeys(extract_tag_ids(r["body"])):
            if (r["document_id"], tag_id) not in tagged:
                missing.append((r["document_id"], tag_id))
    return missing


def run_health_checks(db_path: Path, out_dir: Path) -> Path:
    db_path = Path(db_path)
    out_dir = Path(out_dir)
    out_dir.mkdir(parents=True, exist_ok=True)

    con = sqlite3.connect(db_path)
    try:
        con.row_factory = sqlite3.Row

        totals = {
            "tags": _fetchall(con, "SELECT COUNT(*) AS n FROM TAGS;")[0]["n"],
            "documents": _fetchall(con, "SELECT COUNT(*) AS n FROM DOCUMENTS;")[0]["n"],
            "relationships": _fetchall(con, "SELECT COUNT(*) AS n FROM RELATIONSHIPS;")[0]["n"],
        }

        # ミラー欠落（tag <-> post は常に2レコードで1組）
        unpaired = _fetchall(
            con,
            """
            SELECT r.relationship_id, r.role, r.source_id, r.target_id
            FROM RELATIONSHIPS r
            LEFT JOIN RELATIONSHIPS m
                ON m.role = CASE r.role WHEN 'tag' THEN 'post' ELSE 'tag' END
                AND m.source_id = r.target_id
                AND m.target_id = r.source_id
            WHERE r.role IN ('tag', 'post') AND m.relationship_id IS NULL
            ORDER BY r.role, r.source_id, r.target_id
            """,
        )
        unpaired_out = out_dir / "unpaired_relationships.tsv"
        unpaired_count = _write_tsv(
            unpaired_out,
            ["relationship_id", "role", "source_id", "target_id"],
            [(r["relationship_id"], r["role"], r["source_id"], r["target_id"]) for r in unpaired],
        )

        # 端点が存在しない関連
        dangling = _fetchall(
            con,
            """
            SELECT r.relationship_id, r.role, 'tag' AS missing, r.target_id AS missing_id
            FROM RELATIONSHIPS r
            LEFT JOIN TAGS t ON t.tag_id = r.target_id
            WHERE r.target_kind = 'JTag' AND t.tag_id IS NULL
            UNION ALL
            SELECT r.relationship_id, r.role, 'tag', r.source_id
            FROM RELATIONSHIPS r
            LEFT JOIN TAGS t ON t.tag_id = r.source_id
            WHERE r.source_kind = 'JTag' AND t.tag_id IS NULL
            UNION ALL
            SELECT r.relationship_id, r.role, 'document', r.source_id
            FROM RELATIONSHIPS r
            LEFT JOIN DOCUMENTS d ON d.document_id = r.source_id
            WHERE r.source_kind = 'JNewStatusUpdate' AND d.document_id IS NULL
            UNION ALL
            SELECT r.relationship_id, r.role, 'document', r.target_id
            FROM RELATIONSHIPS r
            LEFT JOIN DOCUMENTS d ON d.document_id = r.target_id
            WHERE r.target_kind = 'JNewStatusUpdate' AND d.document_id IS NULL
            """,
        )
        dangling_out = out_dir / "dangling_relationships.tsv"
        dangling_count = _write_tsv(
            dangling_out,
            ["relationship_id", "role", "missing", "missing_id"],
            [(r["relationship_id"], r["role"], r["missing"], r["missing_id"]) for r in dangling],
        )

        # 本文にマーカーがあるのに ROLE_TAG 関連が無い
        missing_rel = _find_markers_without_relationship(con)
        missing_rel_out = out_dir / "markers_without_relationship.tsv"
        missing_rel_count = _write_tsv(missing_rel_out, ["document_id", "tag_id"], missing_rel)

        # post カウンタと実際の ROLE_POST 関連数のずれ
        post_drift = _fetchall(
            con,
            """
            SELECT t.tag_id, t.title, t.post_count, COUNT(r.relationship_id) AS actual
            FROM TAGS t
            LEFT JOIN RELATIONSHIPS r ON r.source_id = t.tag_id AND r.role = 'post'
            GROUP BY t.tag_id, t.title, t.post_count
            HAVING t.post_count != actual
            ORDER BY t.tag_id
            """,
        )
        post_drift_out = out_dir / "post_count_drift.tsv"
        post_drift_count = _write_tsv(
            post_drift_out,
            ["tag_id", "title", "post_count", "actual"],
            [(r["tag_id"], r["title"], r["post_count"], r["actual"]) for r in post_drift],
        )

        # 負のカウンタ（スキーマの CHECK 制約が無い DB 向け）
        negative = _fetchall(
            con,
            """
            SELECT tag_id, title, post_count, following_count, followers_count, tagged_count
            FROM TAGS
            WHERE post_count < 0 OR following_count < 0 OR followers_count < 0 OR tagged_count < 0
            ORDER BY tag_id
            """,
        )
        negative_out = out_dir / "negative_counters.tsv"
        negative_count = _write_tsv(
            negative_out,
            ["tag_id", "title", "post_count", "following_count", "followers_count", "tagged_count"],
            [
                (
                    r["tag_id"],
                    r["title"],
                    r["post_count"],
                    r["following_count"],
                    r["followers_count"],
                    r["tagged_count"],
                )
                for r in negative
            ],
        )

        summary_out = out_dir / "graph_health_summary.tsv"
        _write_tsv(
            summary_out,
            ["metric", "value"],
            [
                ("db_path", str(db_path)),
                ("total_tags", totals["tags"]),
                ("total_documents", totals["documents"]),
                ("total_relationships", totals["relationships"]),
                ("unpaired_relationships", unpaired_count),
                ("dangling_relationships", dangling_count),
                ("markers_without_relationship", missing_rel_count),
                ("post_count_drift", post_drift_count),
                ("negative_counters", negative_count),
            ],
        )

        return summary_out
    finally:
        con.close()


def main() -> None:
    p = argparse.ArgumentParser(description="Check tag graph consistency and write TSV reports.")
    p.add_argument("--db", type=Path, required=True, help="Path to SQLite DB file")
    p.add_argument("--out-dir", type=Path, required=True, help="Output directory for TSV reports")
    args = p.parse_args()

    summary = run_health_checks(args.db, args.out_dir)
    print(f"Wrote health reports: {summary.parent}")


if __name__ == "__main__":
    main()
