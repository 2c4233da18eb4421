"""
paths.py — Centralized Path Configuration

Single source of truth for directory paths. Every module imports from here
instead of computing its own DATA_DIR.

Priority: QUOTE_DATA_DIR env → Railway volume mount → repo data/
"""

import os

# ── Project Root ──────────────────────────────────────────────────────────────
_THIS_FILE = os.path.abspath(__file__)
PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.dirname(_THIS_FILE)))
_REPO_DATA_DIR = os.path.join(PROJECT_ROOT, "data")


def _resolve_data_dir() -> str:
    """Find the best persistent data directory."""
    env_dir = os.environ.get("QUOTE_DATA_DIR", "")
    if env_dir:
        return env_dir

    vol_mount = os.environ.get("RAILWAY_VOLUME_MOUNT_PATH", "")
    if vol_mount and os.path.isdir(vol_mount):
        return os.path.join(vol_mount, "data") if not vol_mount.endswith("/data") else vol_mount

    return _REPO_DATA_DIR


DATA_DIR = _resolve_data_dir()
OUTPUT_DIR = os.path.join(DATA_DIR, "quotes")
LOG_DIR = os.path.join(DATA_DIR, "logs")
