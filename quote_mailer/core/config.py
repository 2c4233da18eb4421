"""
config.py — Centralized Settings for Quote Mailer

Single source of truth for every environment variable the service reads.
Secrets are never logged in full (masked to first 8 chars) and the health
endpoint only reports whether sensitive values are set.

Env vars:
  QUOTE_SECRET          — HMAC key for download tokens
  FINGERPRINT_SECRET    — HMAC key for request fingerprints (falls back to QUOTE_SECRET)
  DOWNLOAD_TOKEN_TTL    — Download link lifetime in seconds
  DEDUP_WINDOW          — Duplicate/processed window in seconds
  DEDUP_SWEEP_INTERVAL  — Seconds between cache eviction sweeps
  ADMIN_EMAIL           — Comma-separated admin recipients
  QUOTE_API_KEY         — Shared secret expected in the X-API-Key header
  SMTP_HOST / SMTP_PORT / SMTP_USER / SMTP_PASSWORD
  MAIL_FROM / MAIL_FROM_NAME
  PUBLIC_BASE_URL       — Absolute base for download links (defaults to request host)
  DOWNLOAD_PATH         — URL segment for downloads
"""

import os
import logging
from dataclasses import dataclass, field
from typing import List

log = logging.getLogger("quotes.config")

# ─── Setting Definitions ────────────────────────────────────────────────────

_REGISTRY = {
    "quote_secret": {
        "env": "QUOTE_SECRET",
        "required": True,
        "desc": "Download token signing key",
        "default": "dev-quote-secret-change-me",
        "sensitive": True,
    },
    "fingerprint_secret": {
        "env": "FINGERPRINT_SECRET",
        "fallback": "QUOTE_SECRET",
        "required": False,
        "desc": "Request fingerprint HMAC key",
        "default": "dev-quote-secret-change-me",
        "sensitive": True,
    },
    "download_token_ttl": {
        "env": "DOWNLOAD_TOKEN_TTL",
        "required": False,
        "desc": "Download link lifetime (seconds)",
        "default": "604800",
    },
    "dedup_window": {
        "env": "DEDUP_WINDOW",
        "required": False,
        "desc": "Duplicate request window (seconds)",
        "default": "15",
    },
    "dedup_sweep_interval": {
        "env": "DEDUP_SWEEP_INTERVAL",
        "required": False,
        "desc": "Cache eviction sweep period (seconds)",
        "default": "60",
    },
    "admin_email": {
        "env": "ADMIN_EMAIL",
        "required": True,
        "desc": "Admin recipients, comma-separated",
    },
    "api_key": {
        "env": "QUOTE_API_KEY",
        "required": False,
        "desc": "Shared secret for the X-API-Key header",
        "sensitive": True,
    },
    "smtp_host": {
        "env": "SMTP_HOST",
        "required": False,
        "desc": "SMTP server host",
        "default": "smtp.gmail.com",
    },
    "smtp_port": {
        "env": "SMTP_PORT",
        "required": False,
        "desc": "SMTP server port",
        "default": "587",
    },
    "smtp_user": {
        "env": "SMTP_USER",
        "required": False,
        "desc": "SMTP login user",
    },
    "smtp_password": {
        "env": "SMTP_PASSWORD",
        "required": False,
        "desc": "SMTP login password",
        "sensitive": True,
    },
    "mail_from": {
        "env": "MAIL_FROM",
        "fallback": "SMTP_USER",
        "required": False,
        "desc": "Sender address",
    },
    "mail_from_name": {
        "env": "MAIL_FROM_NAME",
        "required": False,
        "desc": "Sender display name",
        "default": "Quotes",
    },
    "public_base_url": {
        "env": "PUBLIC_BASE_URL",
        "required": False,
        "desc": "Absolute base URL for download links",
    },
    "download_path": {
        "env": "DOWNLOAD_PATH",
        "required": False,
        "desc": "URL segment for PDF downloads",
        "default": "downloads",
    },
}


# ─── Public API ──────────────────────────────────────────────────────────────

def get_key(name: str) -> str:
    """Get a setting by registry name. Returns empty string if not set."""
    entry = _REGISTRY.get(name)
    if not entry:
        log.warning("Unknown setting requested: %s", name)
        return ""

    val = os.environ.get(entry["env"], "")
    if not val and "fallback" in entry:
        val = os.environ.get(entry["fallback"], "")
    if not val and "default" in entry:
        val = entry["default"]
    return val


def mask(value: str) -> str:
    """Mask a secret for safe logging. Shows first 8 chars."""
    if not value:
        return "(not set)"
    if len(value) <= 12:
        return value[:4] + "****"
    return value[:8] + "****" + f"({len(value)} chars)"


def validate_all() -> dict:
    """Validate all settings. Returns status report."""
    results = {}
    warnings = []
    for name, entry in _REGISTRY.items():
        val = get_key(name)
        is_set = bool(val)
        results[name] = {
            "set": is_set,
            "env": entry["env"],
            "desc": entry["desc"],
            "masked": mask(val) if not entry.get("sensitive") else ("set" if is_set else "not set"),
            "required": entry.get("required", False),
        }
        if entry.get("required") and not is_set:
            warnings.append(f"REQUIRED setting missing: {entry['env']} ({entry['desc']})")
        if entry.get("sensitive") and val and val == entry.get("default"):
            warnings.append(f"{entry['env']} is using the development default")

    return {
        "settings": results,
        "total": len(results),
        "set": sum(1 for r in results.values() if r["set"]),
        "missing": sum(1 for r in results.values() if not r["set"]),
        "warnings": warnings,
    }


def startup_check() -> dict:
    """Run on startup. Logs warnings for missing critical settings."""
    report = validate_all()
    log.info("Settings: %d/%d configured", report["set"], report["total"])
    for w in report["warnings"]:
        log.warning("CONFIG: %s", w)
    return report


def _int_setting(name: str) -> int:
    raw = get_key(name)
    try:
        return int(raw)
    except (TypeError, ValueError):
        default = int(_REGISTRY[name]["default"])
        log.warning("Invalid %s=%r, using %d", _REGISTRY[name]["env"], raw, default)
        return default


def parse_address_list(raw: str) -> List[str]:
    """Split a comma/semicolon separated address list, dropping blanks."""
    parts = raw.replace(";", ",").split(",") if raw else []
    return [p.strip() for p in parts if p.strip()]


@dataclass
class Config:
    quote_secret: str = "dev-quote-secret-change-me"
    fingerprint_secret: str = "dev-quote-secret-change-me"
    download_token_ttl: int = 604800
    dedup_window: int = 15
    dedup_sweep_interval: int = 60
    admin_emails: List[str] = field(default_factory=list)
    api_key: str = ""
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""
    mail_from: str = ""
    mail_from_name: str = "Quotes"
    public_base_url: str = ""
    download_path: str = "downloads"


def load_config() -> Config:
    """Build a Config snapshot from the current environment."""
    return Config(
        quote_secret=get_key("quote_secret"),
        fingerprint_secret=get_key("fingerprint_secret"),
        download_token_ttl=_int_setting("download_token_ttl"),
        dedup_window=_int_setting("dedup_window"),
        dedup_sweep_interval=_int_setting("dedup_sweep_interval"),
        admin_emails=parse_address_list(get_key("admin_email")),
        api_key=get_key("api_key"),
        smtp_host=get_key("smtp_host"),
        smtp_port=_int_setting("smtp_port"),
        smtp_user=get_key("smtp_user"),
        smtp_password=get_key("smtp_password"),
        mail_from=get_key("mail_from"),
        mail_from_name=get_key("mail_from_name"),
        public_base_url=get_key("public_base_url").rstrip("/"),
        download_path=get_key("download_path").strip("/") or "downloads",
    )
