# backend/fireguard/main.py

"""
通知リレーサービスのエントリーポイント。

主な責務:
- 起動時に Firebase 設定を読み込み、LogWatcher を長寿命タスクとして開始する
- /health エンドポイント（ホスティング側のライブネスプローブ用）を公開する

設定が壊れている場合は購読開始前に起動を失敗させる。
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from typing import AsyncIterator, Callable, Optional

import uvicorn
from fastapi import FastAPI
from fastapi.responses import PlainTextResponse

from fireguard.firebase import RealtimeStore, get_firebase_settings, init_firebase_app
from fireguard.notifications.factory import build_delivery_client
from fireguard.utils.config import get_env, get_env_int
from fireguard.utils.logging_config import setup_logging
from fireguard.watcher import LogWatcher

logger = logging.getLogger(__name__)

WatcherFactory = Callable[[], LogWatcher]


def _log_watcher_exit(task: asyncio.Task) -> None:
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error("Log watcher stopped unexpectedly", exc_info=exc)


def build_log_watcher() -> LogWatcher:
    """
    環境変数の設定から LogWatcher を組み立てる。

    :raises EnvVarMissingError: FIREBASE_SERVICE_ACCOUNT が未設定の場合。
    :raises ServiceAccountError: サービスアカウントが不正な場合。
    """
    settings = get_firebase_settings()
    firebase_app = init_firebase_app(settings)
    store = RealtimeStore(firebase_app, settings)
    delivery = build_delivery_client(settings, firebase_app)
    return LogWatcher(store, delivery)


def create_app(watcher_factory: Optional[WatcherFactory] = None) -> FastAPI:
    """
    FastAPI アプリケーションファクトリ。

    - lifespan: 購読を登録してから LogWatcher.run() をタスクとして開始し、終了時にキャンセルする
    - ヘルスチェックエンドポイント (/health)
    """
    factory = watcher_factory or build_log_watcher

    @contextlib.asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        # run() 経由でない起動（uvicorn fireguard.main:app）でもログを出す
        setup_logging(get_env("LOG_LEVEL", default="INFO", required=False))
        watcher = factory()
        # 購読できなければここで起動を失敗させる
        await watcher.subscribe()
        task = asyncio.create_task(watcher.run(), name="log-watcher")
        task.add_done_callback(_log_watcher_exit)
        app.state.watcher = watcher
        app.state.watcher_task = task
        try:
            yield
        finally:
            task.cancel()
            # 異常終了は _log_watcher_exit で記録済み
            with contextlib.suppress(asyncio.CancelledError, Exception):
                await task

    app = FastAPI(title="Fireguard Notification Relay", lifespan=lifespan)

    @app.get("/health", tags=["health"], response_class=PlainTextResponse)
    def health_check() -> str:
        """
        簡易ヘルスチェックエンドポイント。
        Firebase の到達性には依存しない。
        """
        return "OK"

    return app


# uvicorn 実行時のエントリーポイント
app = create_app()


def run() -> None:
    """
    コマンドラインからの起動。

    任意:
      - PORT      (デフォルト: 3000)
      - HOST      (デフォルト: 0.0.0.0)
      - LOG_LEVEL (デフォルト: INFO)
    """
    log_level = get_env("LOG_LEVEL", default="INFO", required=False)
    app_logger = setup_logging(log_level)

    # uvicorn を起動する前に設定エラーを表面化させる
    get_firebase_settings()

    host = get_env("HOST", default="0.0.0.0", required=False)
    port = get_env_int("PORT", default=3000)
    logger.info("Server running on port %s", port)
    uvicorn.run(
        app,
        host=host,
        port=port,
        log_level=logging.getLevelName(app_logger.level).lower(),
    )


if __name__ == "__main__":
    run()
