# backend/fireguard/watcher/events.py

"""
Realtime Database のストリーミングイベントを「子要素追加」イベントに変換する。

firebase_admin の listen() は SSE の put / patch イベントをそのまま渡してくるので、
user_logs 直下から見た (userId, ログ集合) の組に読み替える。

    put   /               {uid: {key: log}}   初回スナップショット（ユーザーごと）
    put   /{uid}          {key: log}          新規ユーザー
    put   /{uid}/{key}    log                 既存ユーザーへのログ追加
    patch /... {k: v}                         各 k を put として扱う

削除（data=None）、それより深いパスへの書き込み（フィールド更新）は対象外。
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Optional, Tuple

logger = logging.getLogger(__name__)

_INTEGER_KEY = re.compile(r"-?(?:0|[1-9][0-9]*)")
_INT32_MIN = -(2 ** 31)
_INT32_MAX = 2 ** 31 - 1


@dataclass(frozen=True)
class ChildAdded:
    """user_logs 直下の 1 ユーザー分の追加イベント。"""

    user_id: str
    logs: Mapping[str, Any]


def _split_path(path: str) -> List[str]:
    return [segment for segment in (path or "").split("/") if segment]


def _join_path(base: str, key: str) -> str:
    return f"{base.rstrip('/')}/{key}"


def _list_to_mapping(items: list) -> Mapping[str, Any]:
    return {
        str(index): item
        for index, item in enumerate(items)
        if item is not None
    }


def child_events(event_type: str, path: str, data: Any) -> List[ChildAdded]:
    """SSE イベント 1 件を ChildAdded のリストに変換する。"""
    if data is None:
        return []

    if event_type == "patch":
        if not isinstance(data, Mapping):
            return []
        events: List[ChildAdded] = []
        for key, value in data.items():
            events.extend(child_events("put", _join_path(path, key), value))
        return events

    if event_type != "put":
        return []

    segments = _split_path(path)

    # 連番キーだけのノードは SDK から list で届く
    if isinstance(data, list) and len(segments) == 1:
        return [ChildAdded(user_id=segments[0], logs=_list_to_mapping(data))]

    if not isinstance(data, Mapping):
        return []

    if not segments:
        return [
            ChildAdded(
                user_id=user_id,
                logs=_list_to_mapping(logs) if isinstance(logs, list) else logs,
            )
            for user_id, logs in data.items()
            if isinstance(logs, (Mapping, list))
        ]

    if len(segments) == 1:
        return [ChildAdded(user_id=segments[0], logs=data)]

    if len(segments) == 2:
        user_id, log_key = segments
        return [ChildAdded(user_id=user_id, logs={log_key: data})]

    logger.debug("Ignoring nested write at %s", path)
    return []


def firebase_key_order(key: Any) -> Tuple[int, int, str]:
    """
    Realtime Database と同じキーの並び順を返すソートキー。

    32bit 整数として読めるキーが先に数値順で並び、残りは文字列の辞書順。
    """
    text = str(key)
    if _INTEGER_KEY.fullmatch(text):
        value = int(text)
        if _INT32_MIN <= value <= _INT32_MAX:
            return 0, value, ""
    return 1, 0, text


def select_latest_entry(logs: Any) -> Optional[Tuple[str, Mapping[str, Any]]]:
    """
    ログ集合から最新の 1 件を (key, entry) で返す。

    Realtime Database のキー順（firebase_key_order）で最大のキーを最新とみなす。
    push キーは生成時刻が先頭に埋め込まれているので、この順序が時系列になる。
    辞書の反復順には依存しない。
    エントリが dict でないキーは無視する。該当なしは None。
    """
    if not isinstance(logs, Mapping):
        return None

    candidates = [key for key, entry in logs.items() if isinstance(entry, Mapping)]
    if not candidates:
        return None

    latest_key = max(candidates, key=firebase_key_order)
    return latest_key, logs[latest_key]
