# backend/fireguard/firebase/store.py

"""
Realtime Database へのアクセス層。

- device_ids/{userId} の 1 回読み取り（送信先トークンの解決）
- user_logs への変更購読の登録

firebase_admin.db は同期 API のため、読み取りは asyncio.to_thread で
ワーカースレッドに逃がす。購読は SDK 側のスレッドでコールバックされる。
"""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Optional

import firebase_admin
from firebase_admin import db

from .config import FirebaseSettings

logger = logging.getLogger(__name__)


class RealtimeStore:
    """
    Realtime Database の読み取り・購読を行うクライアント。

    キャッシュは持たない。トークンはイベントごとに毎回読み直す。
    """

    def __init__(self, app: firebase_admin.App, settings: FirebaseSettings) -> None:
        self._app = app
        self._settings = settings

    @property
    def logs_path(self) -> str:
        return self._settings.logs_path

    def _reference(self, path: str) -> db.Reference:
        return db.reference(path, app=self._app)

    def _read_device_token(self, user_id: str) -> Optional[str]:
        value = self._reference(f"{self._settings.device_ids_path}/{user_id}").get()
        if isinstance(value, str) and value:
            return value
        if value is not None:
            logger.warning(
                "Ignoring non-string device token for user %s: %r", user_id, type(value)
            )
        return None

    async def get_device_token(self, user_id: str) -> Optional[str]:
        """
        ユーザーに登録された FCM デバイストークンを返す。

        未登録（または空文字・文字列以外）の場合は None。
        """
        return await asyncio.to_thread(self._read_device_token, user_id)

    def listen(self, callback: Callable[[db.Event], None]) -> db.ListenerRegistration:
        """
        user_logs 配下の変更購読を登録する。

        callback は SDK のバックグラウンドスレッドから呼ばれる。
        """
        logger.info("Subscribing to changes under '%s'", self.logs_path)
        return self._reference(self.logs_path).listen(callback)
