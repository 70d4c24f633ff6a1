"""
user_logs の変更監視。

- events: SSE イベント → ChildAdded の変換、最新ログの選択
- service: LogWatcher（通知パイプラインと長寿命タスク）
"""

from .events import ChildAdded, child_events, select_latest_entry  # noqa: F401
from .service import LogWatcher  # noqa: F401
