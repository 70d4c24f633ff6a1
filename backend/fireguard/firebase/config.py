# backend/fireguard/firebase/config.py

"""
Firebase（Realtime Database / Cloud Messaging）連携に必要な設定値をまとめるモジュール。

サービスアカウントは起動時に一度だけ読み込み、壊れていればその場で失敗させる。
最初のイベント受信時まで問題が表面化しないことを避けるため。
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from functools import lru_cache
from typing import Any, Dict

from fireguard.utils.config import get_env, get_env_int

DEFAULT_DATABASE_URL = "https://smart-fireguard-default-rtdb.firebaseio.com/"

# サービスアカウント JSON に最低限必要なキー
_REQUIRED_SERVICE_ACCOUNT_KEYS = ("type", "project_id", "private_key", "client_email")


class ServiceAccountError(RuntimeError):
    """サービスアカウント JSON が不正な場合に投げる例外。"""


class DryRunMode(str, Enum):
    """
    FCM 送信のモード。

    - OFF: 実送信
    - VALIDATE: FCM の dry_run（検証のみ、端末には届かない）
    - LOG: FCM を呼ばずにログ出力のみ
    """

    OFF = "off"
    VALIDATE = "validate"
    LOG = "log"


@dataclass(frozen=True)
class FirebaseSettings:
    """Firebase 用の設定値コンテナ。"""

    service_account: Dict[str, Any] = field(repr=False)
    database_url: str = DEFAULT_DATABASE_URL
    logs_path: str = "user_logs"
    device_ids_path: str = "device_ids"
    http_timeout_seconds: int = 30
    dry_run_mode: DryRunMode = DryRunMode.OFF


def parse_service_account(raw: str) -> Dict[str, Any]:
    """
    サービスアカウント JSON 文字列を辞書に変換し、最低限の形式チェックを行う。

    :raises ServiceAccountError: JSON として読めない / 必須キーが欠けている場合
    """
    try:
        info = json.loads(raw)
    except ValueError as exc:
        raise ServiceAccountError(
            f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {exc}"
        ) from exc

    if not isinstance(info, dict):
        raise ServiceAccountError("FIREBASE_SERVICE_ACCOUNT must be a JSON object.")

    missing = [key for key in _REQUIRED_SERVICE_ACCOUNT_KEYS if not info.get(key)]
    if missing:
        raise ServiceAccountError(
            f"FIREBASE_SERVICE_ACCOUNT is missing keys: {', '.join(missing)}"
        )

    return info


def _parse_dry_run_mode(raw: str) -> DryRunMode:
    try:
        return DryRunMode(raw.strip().lower())
    except ValueError:
        return DryRunMode.OFF


@lru_cache()
def get_firebase_settings() -> FirebaseSettings:
    """
    環境変数から Firebase 設定を読み込む。

    必須:
      - FIREBASE_SERVICE_ACCOUNT（サービスアカウント JSON 文字列）

    任意:
      - FIREBASE_DATABASE_URL          (デフォルト: DEFAULT_DATABASE_URL)
      - FIREGUARD_LOGS_PATH            (デフォルト: user_logs)
      - FIREGUARD_DEVICE_IDS_PATH      (デフォルト: device_ids)
      - FIREBASE_HTTP_TIMEOUT_SECONDS  (デフォルト: 30)
      - FCM_DRY_RUN_MODE               (off / validate / log, デフォルト: off)
    """
    service_account = parse_service_account(get_env("FIREBASE_SERVICE_ACCOUNT"))

    return FirebaseSettings(
        service_account=service_account,
        database_url=get_env(
            "FIREBASE_DATABASE_URL",
            default=DEFAULT_DATABASE_URL,
            required=False,
        ),
        logs_path=get_env("FIREGUARD_LOGS_PATH", default="user_logs", required=False),
        device_ids_path=get_env(
            "FIREGUARD_DEVICE_IDS_PATH",
            default="device_ids",
            required=False,
        ),
        http_timeout_seconds=get_env_int("FIREBASE_HTTP_TIMEOUT_SECONDS", default=30),
        dry_run_mode=_parse_dry_run_mode(
            get_env("FCM_DRY_RUN_MODE", default="off", required=False)
        ),
    )
