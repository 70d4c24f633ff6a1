# backend/fireguard/watcher/service.py

"""
user_logs の変更を監視し、新しいログごとにプッシュ通知を送るサービス層。

1 イベントの流れ:
  最新ログの選択 → device_ids/{userId} の読み取り → 通知内容の組み立て → 送信

イベントごとに独立したタスクとして実行し、例外はタスク内でログに出して終わる。
あるユーザーの失敗が他ユーザーの処理や購読そのものを止めることはない。
"""

from __future__ import annotations

import asyncio
import functools
import logging
from typing import Any, Callable, Mapping, Optional, Protocol, Set

from pydantic import ValidationError

from fireguard.notifications.composer import compose_for_entry
from fireguard.notifications.schemas import LogEntry, PushNotification
from fireguard.notifications.service import DeliveryClient

from .events import ChildAdded, child_events, select_latest_entry

logger = logging.getLogger(__name__)


class ListenerRegistration(Protocol):
    def close(self) -> None:  # pragma: no cover - Protocol
        ...


class LogStore(Protocol):
    """
    LogWatcher が必要とするストアの最小インターフェース。

    実装: fireguard.firebase.store.RealtimeStore
    """

    async def get_device_token(self, user_id: str) -> Optional[str]:  # pragma: no cover
        ...

    def listen(self, callback: Callable[[Any], None]) -> ListenerRegistration:  # pragma: no cover
        ...


class LogWatcher:
    """
    変更購読を保持し、ChildAdded ごとに通知パイプラインを走らせる。

    run() がプロセス全体で 1 つの長寿命タスクになる。
    """

    def __init__(self, store: LogStore, delivery: DeliveryClient) -> None:
        self._store = store
        self._delivery = delivery
        self._tasks: Set[asyncio.Task] = set()
        self._registration: Optional[ListenerRegistration] = None

    @property
    def pending(self) -> int:
        """処理中のイベント数。"""
        return len(self._tasks)

    # ---- 1 イベント分の処理 -------------------------------------------

    async def handle_user_logs(self, user_id: str, logs: Mapping[str, Any]) -> bool:
        """
        1 ユーザー分のログ集合から最新ログを選び、通知を送る。

        :return: 通知を送信できた場合のみ True。
                 トークン未登録・送信失敗・想定外のエラーはいずれも False。
        """
        try:
            return await self._process(user_id, logs)
        except Exception:  # noqa: BLE001 - 1 イベントの失敗で購読を止めない
            logger.exception("Failed to process new log for user %s", user_id)
            return False

    async def _process(self, user_id: str, logs: Mapping[str, Any]) -> bool:
        latest = select_latest_entry(logs)
        if latest is None:
            logger.info("No log entries to notify for user %s", user_id)
            return False

        log_key, raw_entry = latest
        try:
            entry = LogEntry.model_validate(raw_entry)
        except ValidationError as exc:
            logger.warning("Malformed log %s for user %s: %s", log_key, user_id, exc)
            return False

        logger.info(
            "New log for user %s (%s): %s",
            user_id,
            log_key,
            entry.model_dump(exclude_none=True),
        )

        token = await self._store.get_device_token(user_id)
        if not token:
            logger.info("No FCM token found for user %s", user_id)
            return False

        notification = PushNotification(
            user_id=user_id,
            token=token,
            content=compose_for_entry(user_id, entry),
        )
        return await self._delivery.deliver(notification)

    # ---- イベントの振り分け -------------------------------------------

    def dispatch(self, event: ChildAdded) -> asyncio.Task:
        """
        ChildAdded を独立したタスクとして実行する。

        イベントループのスレッドから呼ぶこと。
        """
        task = asyncio.get_running_loop().create_task(
            self.handle_user_logs(event.user_id, event.logs),
            name=f"user-log:{event.user_id}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _on_store_event(self, loop: asyncio.AbstractEventLoop, event: Any) -> None:
        # SDK のリスナースレッドから呼ばれる
        try:
            children = child_events(event.event_type, event.path, event.data)
        except Exception:  # noqa: BLE001
            logger.exception("Failed to decode store event at %s", getattr(event, "path", None))
            return

        try:
            for child in children:
                loop.call_soon_threadsafe(self.dispatch, child)
        except RuntimeError:
            # 停止処理中にループが閉じられた
            logger.warning("Event loop closed; dropping store event at %s", event.path)

    # ---- 長寿命タスク -------------------------------------------------

    async def subscribe(self) -> None:
        """
        変更購読を登録する。登録済みなら何もしない。

        権限エラー・DB URL の誤り・初回接続の失敗などはログに出してそのまま送出する。
        起動時に呼べば、購読できない状態のまま動き続けることはない。
        """
        if self._registration is not None:
            return

        loop = asyncio.get_running_loop()
        try:
            self._registration = await asyncio.to_thread(
                self._store.listen,
                functools.partial(self._on_store_event, loop),
            )
        except Exception:
            logger.exception("Failed to subscribe to store changes")
            raise
        logger.info("Log watcher subscribed")

    async def run(self) -> None:
        """
        変更購読を登録し、キャンセルされるまで待ち続ける。

        キャンセル時は購読を解除し、処理中のイベントの完了を待ってから終わる。
        """
        await self.subscribe()

        try:
            await asyncio.Event().wait()
        finally:
            registration, self._registration = self._registration, None
            if registration is not None:
                await asyncio.to_thread(registration.close)
            if self._tasks:
                await asyncio.gather(*self._tasks, return_exceptions=True)
            logger.info("Log watcher stopped")
