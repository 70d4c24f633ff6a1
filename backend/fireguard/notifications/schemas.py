# backend/fireguard/notifications/schemas.py

"""
通知まわりのスキーマ定義。

- LogEntry: センサーログ 1 件（user_logs/{userId}/{logKey}）
- NotificationContent: 通知のタイトル・本文・data ペイロード
- PushNotification: 送信先トークンを含む 1 回分の送信内容

いずれも 1 イベントの処理中だけ存在し、永続化しない。
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from firebase_admin import messaging
from pydantic import BaseModel, ConfigDict, Field

# センサー側が文字列で書くことも数値で書くこともある
SensorReading = Union[str, int, float]


class LogEntry(BaseModel):
    """
    センサーログ 1 件。

    どのフィールドも欠落しうるため、すべて Optional（欠落時は None）。
    未知のキーは無視する。
    """

    model_config = ConfigDict(extra="ignore", frozen=True)

    type: Optional[str] = Field(
        None,
        description="分類文字列（FLAME DETECTED / SMOKE DETECTED / EMERGENCY など）。",
    )
    smoke: Optional[SensorReading] = Field(None, description="煙センサーの値。")
    temperature: Optional[SensorReading] = Field(None, description="温度センサーの値。")
    flame: Optional[SensorReading] = Field(
        None,
        description="炎検知。文字列 'YES' のときのみ検知扱い。",
    )


class NotificationContent(BaseModel):
    """
    通知 1 件分の表示内容と data ペイロード。

    data は FCM の制約上、キー・値ともに文字列のみ。
    """

    title: str = Field(..., description="通知タイトル（分類文字列 or 'default'）。")
    body: str = Field(..., description="通知本文。")
    data: Dict[str, str] = Field(
        default_factory=dict,
        description="userId / payload / smoke / temperature / flame。",
    )


class PushNotification(BaseModel):
    """
    1 回分の送信内容。

    token は機密ではないが、ログにはこのモデルをそのまま出してよい。
    """

    user_id: str = Field(..., description="送信先ユーザー ID。")
    token: str = Field(..., description="FCM デバイストークン。")
    content: NotificationContent

    def to_message(self) -> messaging.Message:
        """FCM の Message（notification ブロック + data + token）に変換する。"""
        return messaging.Message(
            notification=messaging.Notification(
                title=self.content.title,
                body=self.content.body,
            ),
            data=dict(self.content.data),
            token=self.token,
        )
