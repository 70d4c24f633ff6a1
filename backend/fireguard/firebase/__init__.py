"""
Firebase 連携モジュール。

- config: サービスアカウント・DB URL 等の設定値
- client: firebase_admin.App の初期化
- store: Realtime Database の読み取り・変更購読
"""

from .client import init_firebase_app  # noqa: F401
from .config import (  # noqa: F401
    DryRunMode,
    FirebaseSettings,
    ServiceAccountError,
    get_firebase_settings,
)
from .store import RealtimeStore  # noqa: F401
