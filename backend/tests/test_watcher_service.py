# backend/tests/test_watcher_service.py

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

import pytest
from firebase_admin import messaging

from fireguard.notifications.service import DeliveryClient
from fireguard.watcher.service import LogWatcher


class DummyRegistration:
    def __init__(self) -> None:
        self.closed = False

    def close(self) -> None:
        self.closed = True


class DummyStore:
    """
    RealtimeStore の代わりに使用するテスト用ストア。
    """

    def __init__(self, tokens: Optional[Dict[str, str]] = None) -> None:
        self.tokens = tokens or {}
        self.lookups: List[str] = []
        self.callback = None
        self.registration = DummyRegistration()

    async def get_device_token(self, user_id: str) -> Optional[str]:
        self.lookups.append(user_id)
        return self.tokens.get(user_id)

    def listen(self, callback):
        self.callback = callback
        return self.registration


class DummySender:
    def __init__(self, failing_tokens=()) -> None:
        self.failing_tokens = set(failing_tokens)
        self.messages: List[messaging.Message] = []

    def send(self, message: messaging.Message) -> str:
        if message.token in self.failing_tokens:
            raise RuntimeError("gateway rejected the message")
        self.messages.append(message)
        return "msg-id"


@dataclass
class DummyEvent:
    event_type: str
    path: str
    data: Any


def _build_watcher(tokens, failing_tokens=()):
    store = DummyStore(tokens)
    sender = DummySender(failing_tokens)
    return LogWatcher(store, DeliveryClient(sender)), store, sender


def test_flame_detected_end_to_end() -> None:
    watcher, store, sender = _build_watcher({"u1": "tokABC"})

    ok = asyncio.run(
        watcher.handle_user_logs(
            "u1",
            {"-Na": {"type": "FLAME DETECTED", "flame": "YES", "smoke": "42"}},
        )
    )

    assert ok is True
    assert len(sender.messages) == 1
    message = sender.messages[0]
    assert message.token == "tokABC"
    assert message.notification.title == "FLAME DETECTED"
    assert message.notification.body == "Check for open flames or fire sources immediately."
    assert message.data == {
        "userId": "u1",
        "payload": "type:FLAME DETECTED",
        "smoke": "42",
        "temperature": "-",
        "flame": "true",
    }


def test_unknown_type_end_to_end() -> None:
    watcher, store, sender = _build_watcher({"u2": "tokXYZ"})

    asyncio.run(watcher.handle_user_logs("u2", {"-Na": {"type": "UNKNOWN_X"}}))

    message = sender.messages[0]
    assert message.token == "tokXYZ"
    assert message.notification.title == "UNKNOWN_X"
    assert message.notification.body == "A new event has occurred."
    assert message.data == {
        "userId": "u2",
        "payload": "type:UNKNOWN_X",
        "smoke": "-",
        "temperature": "-",
        "flame": "false",
    }


def test_missing_token_sends_nothing() -> None:
    watcher, store, sender = _build_watcher({})

    ok = asyncio.run(watcher.handle_user_logs("u3", {"-Na": {"type": "EMERGENCY"}}))

    assert ok is False
    assert store.lookups == ["u3"]
    assert sender.messages == []


def test_only_latest_entry_is_used() -> None:
    watcher, store, sender = _build_watcher({"u1": "tokABC"})
    logs = {
        "-Nz3": {"type": "EMERGENCY"},
        "-Nz1": {"type": "FLAME DETECTED"},
        "-Nz2": {"type": "SMOKE DETECTED"},
    }

    asyncio.run(watcher.handle_user_logs("u1", logs))

    assert len(sender.messages) == 1
    assert sender.messages[0].notification.title == "EMERGENCY"


def test_empty_collection_skips_lookup() -> None:
    watcher, store, sender = _build_watcher({"u1": "tokABC"})

    ok = asyncio.run(watcher.handle_user_logs("u1", {}))

    assert ok is False
    assert store.lookups == []


def test_malformed_entry_is_skipped() -> None:
    watcher, store, sender = _build_watcher({"u1": "tokABC"})

    ok = asyncio.run(watcher.handle_user_logs("u1", {"-Na": {"type": ["not", "a", "string"]}}))

    assert ok is False
    assert sender.messages == []


def test_store_failure_does_not_raise() -> None:
    class BrokenStore(DummyStore):
        async def get_device_token(self, user_id: str) -> Optional[str]:
            raise ConnectionError("database unreachable")

    sender = DummySender()
    watcher = LogWatcher(BrokenStore(), DeliveryClient(sender))

    ok = asyncio.run(watcher.handle_user_logs("u1", {"-Na": {"type": "EMERGENCY"}}))

    assert ok is False
    assert sender.messages == []


def test_gateway_failure_does_not_block_other_users() -> None:
    """
    あるユーザーへの送信失敗が、同時に処理される別ユーザーの送信を妨げないことを確認。
    """
    watcher, store, sender = _build_watcher(
        {"bad": "tokBAD", "good": "tokGOOD"},
        failing_tokens={"tokBAD"},
    )

    async def scenario():
        return await asyncio.gather(
            watcher.handle_user_logs("bad", {"-Na": {"type": "EMERGENCY"}}),
            watcher.handle_user_logs("good", {"-Na": {"type": "EMERGENCY"}}),
        )

    results = asyncio.run(scenario())

    assert results == [False, True]
    assert [m.token for m in sender.messages] == ["tokGOOD"]


def test_run_subscribes_dispatches_and_closes() -> None:
    watcher, store, sender = _build_watcher({"u1": "tokABC", "u2": "tokXYZ"})

    async def wait_for(predicate, timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            assert loop.time() < deadline, "condition not reached in time"
            await asyncio.sleep(0.01)

    async def scenario() -> None:
        task = asyncio.create_task(watcher.run())
        await wait_for(lambda: store.callback is not None)

        # SDK と同様に別スレッドからコールバックする
        await asyncio.to_thread(
            store.callback,
            DummyEvent("put", "/", {"u1": {"-Na": {"type": "SMOKE DETECTED"}}}),
        )
        await asyncio.to_thread(
            store.callback,
            DummyEvent("put", "/u2/-Nb", {"type": "EMERGENCY"}),
        )
        await wait_for(lambda: len(sender.messages) == 2)

        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    asyncio.run(scenario())

    assert store.registration.closed is True
    assert sorted(m.token for m in sender.messages) == ["tokABC", "tokXYZ"]
    assert watcher.pending == 0


def test_subscribe_failure_is_logged_and_raised(caplog) -> None:
    class UnreachableStore(DummyStore):
        def listen(self, callback):
            raise ConnectionError("permission denied")

    watcher = LogWatcher(UnreachableStore(), DeliveryClient(DummySender()))

    with caplog.at_level(logging.ERROR, logger="fireguard.watcher.service"):
        with pytest.raises(ConnectionError):
            asyncio.run(watcher.subscribe())

    assert any("Failed to subscribe" in r.getMessage() for r in caplog.records)


def test_store_event_after_loop_closed_is_dropped(caplog) -> None:
    """
    停止処理でループが閉じた後にリスナースレッドからイベントが届いても例外にならないことを確認。
    """
    watcher, store, sender = _build_watcher({"u1": "tokABC"})
    loop = asyncio.new_event_loop()
    loop.close()

    with caplog.at_level(logging.WARNING, logger="fireguard.watcher.service"):
        watcher._on_store_event(
            loop,
            DummyEvent("put", "/u1/-Na", {"type": "EMERGENCY"}),
        )

    assert sender.messages == []
    assert any("Event loop closed" in r.getMessage() for r in caplog.records)
