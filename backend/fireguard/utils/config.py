# backend/fireguard/utils/config.py

"""
環境変数読み取り用のユーティリティ。
FIREBASE_SERVICE_ACCOUNT などの Firebase 設定、LOG_LEVEL、PORT / HOST の読み取りで共通利用する。
未設定を許さない値は EnvVarMissingError で起動時に落とす。
"""

import os
from typing import Optional


class EnvVarMissingError(RuntimeError):
    """必須環境変数が設定されていない場合に投げる例外。"""

    def __init__(self, name: str) -> None:
        super().__init__(f"Required environment variable '{name}' is not set.")
        self.name = name


def get_env(
    name: str,
    default: Optional[str] = None,
    *,
    required: bool = True,
) -> str:
    """
    環境変数を取得するヘルパー。

    :param name: 環境変数名
    :param default: デフォルト値（required=False の場合のみ使用）
    :param required: True の場合、未設定なら例外を投げる
    :return: 文字列値
    """
    value = os.getenv(name)

    if value is None or value == "":
        if required:
            raise EnvVarMissingError(name)
        return default

    return value


def get_env_int(name: str, default: int) -> int:
    """
    整数の環境変数を取得する。

    - 未設定 or パース不能の場合は default を返す。
    """
    raw = get_env(name, default=str(default), required=False)

    try:
        return int(raw)
    except (TypeError, ValueError):
        return default
