# backend/fireguard/utils/logging_config.py

"""
アプリ全体のログ設定。

各モジュールは `logging.getLogger(__name__)` を使うだけでよく、
ハンドラ・フォーマットはここで一度だけ設定する。
"""

import logging
import sys

_LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

# SDK 側の HTTP ログは DEBUG 以外では抑える
_NOISY_LOGGERS = ("urllib3", "google", "httpx", "cachecontrol")


def setup_logging(level: str = "INFO") -> logging.Logger:
    """
    ルートロガーに stdout 向けハンドラを設定し、fireguard ロガーを返す。

    未知のレベル名が渡された場合は INFO として扱う。
    """
    log_level = logging.getLevelName(level.upper())
    if not isinstance(log_level, int):
        log_level = logging.INFO

    logging.basicConfig(
        level=log_level,
        format=_LOG_FORMAT,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(log_level, logging.WARNING))

    logger = logging.getLogger("fireguard")
    logger.setLevel(log_level)
    return logger
