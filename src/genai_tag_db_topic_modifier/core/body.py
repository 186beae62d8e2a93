"""投稿本文に埋め込まれたタグマーカーの操作.

タグマーカーは本文中に `|#:JTag:<tag_id>|` の形で埋め込まれる。
この書式は完全一致で検索・置換する（正規化はしない）。
"""

from __future__ import annotations

import re

from .models import ContentDocument

TAG_MARKER_FORMAT = "|#:JTag:{tag_id}|"

_TAG_MARKER_RE = re.compile(r"\|#:JTag:([^|]+)\|")


def build_tag_marker(tag_id: str) -> str:
    """tag_id のタグマーカー文字列を生成する.

    Examples:
        >>> build_tag_marker("T1")
        '|#:JTag:T1|'
    """
    return TAG_MARKER_FORMAT.format(tag_id=tag_id)


def extract_tag_ids(body: str) -> list[str]:
    """本文に含まれるタグマーカーの tag_id を出現順に返す（重複あり）."""
    return _TAG_MARKER_RE.findall(body)


def is_blank_body(body: str) -> bool:
    return body.strip() == ""


def update_post_body(document: ContentDocument, tag_id: str, new_tag_id: str) -> bool:
    """本文中の tag_id マーカーを new_tag_id マーカーへ置換する.

    new_tag_id のマーカーが既に本文に含まれている場合は、同じタグのマーカーが
    2つ並ばないよう、置換ではなく削除する。new_tag_id が空文字の場合も削除のみ。

    Args:
        document: 対象の投稿（body をその場で書き換える。保存は呼び出し側の責務）
        tag_id: 置換元の tag_id
        new_tag_id: 置換先の tag_id（削除のみの場合は ""）

    Returns:
        new_tag_id のマーカーが元々本文に含まれていた場合 True
    """
    new_marker = ""
    tag_included = False
    if new_tag_id:
        new_marker = build_tag_marker(new_tag_id)
        # 置換先マーカーが既に含まれている
        if new_marker in document.body:
            tag_included = True
            new_marker = ""

    document.body = document.body.replace(build_tag_marker(tag_id), new_marker)
    return tag_included
