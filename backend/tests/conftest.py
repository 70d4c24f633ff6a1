# backend/tests/conftest.py
"""
Pytest configuration for Fireguard notification relay tests.

- Ensures that the project root (backend/) is added to sys.path
  so that `import fireguard.*` works correctly in tests.
- Ensures environment variables for tests are set with safe dummy values
  so that nothing accidentally talks to a real Firebase project.
"""

import os
import sys
from pathlib import Path


def _ensure_project_root_in_sys_path() -> None:
    # This file is located at: backend/tests/conftest.py
    # parents[1] -> backend/
    project_root = Path(__file__).resolve().parents[1]
    project_root_str = str(project_root)

    if project_root_str not in sys.path:
        # Insert at the beginning so it has priority over site-packages, etc.
        sys.path.insert(0, project_root_str)


def _ensure_test_env_vars() -> None:
    """
    Set dummy environment variables required for tests.

    These values are only for local testing and do NOT contain real secrets.
    """
    os.environ.setdefault("FIREBASE_DATABASE_URL", "https://fireguard-test.firebaseio.com/")
    os.environ.setdefault("FCM_DRY_RUN_MODE", "log")


_ensure_project_root_in_sys_path()
_ensure_test_env_vars()
