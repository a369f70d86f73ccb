"""Runtime configuration for HarmonyDesk, resolved from env and settings.json."""

from __future__ import annotations

import os

from services.settings import settings_manager

_manager = settings_manager


def _env_flag(name: str, default: bool = False) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


SECRET_KEY = (
    os.environ.get("HARMONYDESK_SECRET_KEY")
    or _manager.get("flask_secret_key")
    or "dev-local-secret-key"
)

DATABASE_PATH = os.environ.get("HARMONYDESK_DATABASE") or str(
    _manager.paths.config_dir / "harmonydesk.db"
)

# Demo deployments serve canned data through a read-only repository.
DEMO_MODE = _env_flag("HARMONYDESK_DEMO_MODE", bool(_manager.get("demo_mode", False)))

SESSION_TIMEOUT_MINUTES = int(
    os.environ.get("HARMONYDESK_SESSION_TIMEOUT_MINUTES")
    or _manager.get("session_timeout_minutes", 30)
)

LOG_LEVEL = (os.environ.get("HARMONYDESK_LOG_LEVEL") or _manager.get("log_level") or "INFO").upper()

# TrueType font embedded in report PDFs; unset keeps the built-in Helvetica.
PDF_FONT_PATH = os.environ.get("HARMONYDESK_PDF_FONT") or _manager.get("pdf_font_path")
