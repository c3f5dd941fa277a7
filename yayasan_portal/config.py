"""Configuration helpers for the Yayasan portal."""

from __future__ import annotations

import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_SUPER_ADMIN_EMAIL = "super@yayasan.org"


@dataclass(slots=True)
class Settings:
    """Runtime configuration values loaded from environment variables."""

    supabase_url: str
    supabase_anon_key: str
    api_key: str
    upcoming_limit: int = 3
    http_timeout: float = 10.0
    super_admin_email: str = DEFAULT_SUPER_ADMIN_EMAIL
    log_level: str = "info"


def load_settings(env_file: str | None = None) -> Settings:
    """Load settings from the environment, optionally from a specific file."""

    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()

    supabase_url = os.getenv("SUPABASE_URL")
    anon_key = os.getenv("SUPABASE_ANON_KEY")
    api_key = os.getenv("API_KEY")

    if not supabase_url:
        raise RuntimeError("SUPABASE_URL must be configured")
    if not anon_key:
        raise RuntimeError("SUPABASE_ANON_KEY must be configured")
    if not api_key:
        raise RuntimeError("API_KEY must be configured")

    return Settings(
        supabase_url=supabase_url.rstrip("/"),
        supabase_anon_key=anon_key,
        api_key=api_key,
        upcoming_limit=int(os.getenv("UPCOMING_LIMIT", "3")),
        http_timeout=float(os.getenv("HTTP_TIMEOUT", "10.0")),
        super_admin_email=os.getenv("SUPER_ADMIN_EMAIL", DEFAULT_SUPER_ADMIN_EMAIL),
        log_level=os.getenv("LOG_LEVEL", "info"),
    )


__all__ = ["Settings", "load_settings", "DEFAULT_SUPER_ADMIN_EMAIL"]
