# backend/fireguard/notifications/factory.py

"""
DeliveryClient の簡易ファクトリ。

FCM_DRY_RUN_MODE に応じて Sender を切り替える:
- off: FirebasePushSender（実送信）
- validate: FirebasePushSender(dry_run=True)
- log: LoggingPushSender（FCM を呼ばない）
"""

from __future__ import annotations

from typing import Optional

import firebase_admin

from fireguard.firebase.config import DryRunMode, FirebaseSettings

from .service import DeliveryClient, FirebasePushSender, LoggingPushSender, PushSender


def build_push_sender(
    settings: FirebaseSettings,
    app: Optional[firebase_admin.App] = None,
) -> PushSender:
    """設定に対応する PushSender を生成する。"""
    if settings.dry_run_mode == DryRunMode.LOG:
        return LoggingPushSender()
    return FirebasePushSender(app, dry_run=settings.dry_run_mode == DryRunMode.VALIDATE)


def build_delivery_client(
    settings: FirebaseSettings,
    app: Optional[firebase_admin.App] = None,
) -> DeliveryClient:
    """設定に対応する Sender を持つ DeliveryClient を返す。"""
    return DeliveryClient(build_push_sender(settings, app))
