# backend/fireguard/notifications/composer.py

"""
分類文字列とログから通知内容を組み立てる純粋関数群。

I/O も副作用も持たないので、単体でテストできる。
"""

from __future__ import annotations

from typing import Dict, Optional

from .schemas import LogEntry, NotificationContent, SensorReading

DEFAULT_TITLE = "default"
DEFAULT_BODY = "A new event has occurred."
MISSING_READING = "-"

NOTIFICATION_BODIES: Dict[str, str] = {
    "FLAME DETECTED": "Check for open flames or fire sources immediately.",
    "SMOKE DETECTED": "Smoke levels are high, please investigate.",
    "EMERGENCY": "Immediate action required: high smoke and temperature detected.",
}


def resolve_title(classification: Optional[str]) -> str:
    """分類文字列が空・欠落なら 'default'。"""
    if classification:
        return classification
    return DEFAULT_TITLE


def notification_body(classification: Optional[str]) -> str:
    """分類文字列の完全一致で本文を選ぶ。該当なしは既定文。"""
    if classification is None:
        return DEFAULT_BODY
    return NOTIFICATION_BODIES.get(classification, DEFAULT_BODY)


def _format_reading(value: Optional[SensorReading]) -> str:
    if value is None:
        return MISSING_READING
    return str(value)


def compose(
    classification: Optional[str],
    log: LogEntry,
    user_id: str,
) -> NotificationContent:
    """
    通知のタイトル・本文・data を組み立てる。

    - title: classification（空・欠落なら 'default'）
    - body: NOTIFICATION_BODIES の完全一致、なければ DEFAULT_BODY
    - data.payload: "type:" + title と同じ値
    - data.smoke / data.temperature: 値の文字列表現、欠落なら "-"
    - data.flame: log.flame が "YES" のときだけ "true"
    """
    title = resolve_title(classification)

    return NotificationContent(
        title=title,
        body=notification_body(title),
        data={
            "userId": user_id,
            "payload": f"type:{title}",
            "smoke": _format_reading(log.smoke),
            "temperature": _format_reading(log.temperature),
            "flame": "true" if log.flame == "YES" else "false",
        },
    )


def compose_for_entry(user_id: str, log: LogEntry) -> NotificationContent:
    """ログ自身の type を分類文字列として compose する。"""
    return compose(log.type, log, user_id)
