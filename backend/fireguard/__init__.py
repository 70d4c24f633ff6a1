# backend/fireguard/__init__.py
"""
Fireguard notification relay package.

This package contains:
- main: FastAPI application entrypoint (/health + log watcher lifespan)
- firebase: Realtime Database access and app initialization
- watcher: user_logs change subscription
- notifications: notification composition and FCM delivery
"""

__version__ = "0.1.0"
