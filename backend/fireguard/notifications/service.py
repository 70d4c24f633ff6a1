# backend/fireguard/notifications/service.py

"""
プッシュ通知の送信インターフェースと実装。

- PushSender: FCM Message を 1 件送る最小インターフェース
- FirebasePushSender: firebase_admin.messaging 経由で実送信
- LoggingPushSender: 送信せずログ出力のみ（ローカル確認用）
- DeliveryClient: 送信を 1 回だけ試み、結果をログに残す

送信失敗は DeliveryClient の中で握りつぶす。
1 ユーザーの送信失敗が他ユーザーの処理や購読に波及しないようにするため。
リトライはしない。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Optional, Protocol

import firebase_admin
from firebase_admin import messaging

from .schemas import PushNotification

logger = logging.getLogger(__name__)


class PushSender(Protocol):
    """
    プッシュ通知送信の最小インターフェース。

    戻り値はゲートウェイが払い出したメッセージ ID。
    """

    def send(self, message: messaging.Message) -> str:  # pragma: no cover - Protocol
        ...


class FirebasePushSender:
    """
    firebase_admin.messaging.send で FCM に送る Sender。

    dry_run=True の場合、FCM 側で検証だけ行い端末には配信しない。
    """

    def __init__(
        self,
        app: Optional[firebase_admin.App] = None,
        *,
        dry_run: bool = False,
    ) -> None:
        self._app = app
        self._dry_run = dry_run

    def send(self, message: messaging.Message) -> str:
        return messaging.send(message, dry_run=self._dry_run, app=self._app)


class LoggingPushSender:
    """
    Message を logger に記録するだけの Sender。

    - FCM_DRY_RUN_MODE=log のときに使う
    - 実際の外部サービスへの送信は行わない
    """

    def __init__(self, logger_: logging.Logger | None = None) -> None:
        self._logger = logger_ or logger
        self._sent = 0

    def send(self, message: messaging.Message) -> str:
        self._sent += 1
        notification = message.notification
        self._logger.info(
            "[dry-run] push to token=%s title=%s body=%s data=%s",
            message.token,
            notification.title if notification else None,
            notification.body if notification else None,
            message.data,
        )
        return f"dry-run/{self._sent}"


class DeliveryClient:
    """
    PushNotification を 1 回だけ送信し、結果をログに残す。

    Sender は同期 API の想定なので、ワーカースレッドで実行して
    イベントループを塞がないようにする。
    """

    def __init__(self, sender: PushSender) -> None:
        self._sender = sender

    async def deliver(self, notification: PushNotification) -> bool:
        """
        通知を送信する。

        :return: 送信成功なら True。失敗（無効トークン・ネットワークエラー・
                 ゲートウェイ拒否など）はログに出して False を返す。
        """
        message = notification.to_message()
        try:
            message_id = await asyncio.to_thread(self._sender.send, message)
        except Exception:  # noqa: BLE001 - 送信失敗は他ユーザーの処理を止めない
            logger.exception(
                "Error sending notification to user %s", notification.user_id
            )
            return False

        logger.info(
            "Notification sent to user %s (message_id=%s): %s",
            notification.user_id,
            message_id,
            notification.model_dump(),
        )
        return True
