# backend/fireguard/firebase/client.py

"""
firebase_admin アプリの初期化。

Realtime Database と Cloud Messaging は同じ App インスタンスを共有する。
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials

from .config import FirebaseSettings, ServiceAccountError

logger = logging.getLogger(__name__)

DEFAULT_APP_NAME = "[DEFAULT]"


def init_firebase_app(
    settings: FirebaseSettings,
    *,
    name: str = DEFAULT_APP_NAME,
) -> firebase_admin.App:
    """
    サービスアカウントで firebase_admin.App を初期化して返す。

    同名の App が既に初期化済みならそれを再利用する（uvicorn の reload 対策）。

    :raises ServiceAccountError: 証明書として読み込めない場合。
    """
    try:
        return firebase_admin.get_app(name)
    except ValueError:
        pass

    try:
        cred = credentials.Certificate(settings.service_account)
    except ValueError as exc:
        raise ServiceAccountError(f"Invalid Firebase service account: {exc}") from exc

    app = firebase_admin.initialize_app(
        cred,
        {
            "databaseURL": settings.database_url,
            "httpTimeout": settings.http_timeout_seconds,
        },
        name=name,
    )
    logger.info(
        "Firebase app initialized: project=%s database=%s",
        settings.service_account.get("project_id"),
        settings.database_url,
    )
    return app
