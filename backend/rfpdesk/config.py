# config.py
# Environment-driven settings. Values come from the process env after .env is loaded.

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

load_dotenv()

BASE_DIR = Path(__file__).resolve().parent.parent
DEFAULT_DATA_DIR = BASE_DIR / "data"
DEFAULT_POLL_INTERVAL_MS = 300000


def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    value = os.getenv(key)
    if value in (None, ""):
        return default
    return value


def _env_int(key: str, default: int) -> int:
    raw = _env(key)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(key: str, default: float) -> float:
    raw = _env(key)
    if raw is None:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


@dataclass(frozen=True)
class MailboxConfig:
    host: Optional[str]
    port: int = 993
    user: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = True
    mailbox: str = "INBOX"
    timeout: float = 30.0

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.user and self.password)

    @classmethod
    def from_env(cls) -> "MailboxConfig":
        return cls(
            host=_env("IMAP_HOST"),
            port=_env_int("IMAP_PORT", 993),
            user=_env("IMAP_USER"),
            password=_env("IMAP_PASSWORD"),
            # TLS stays on unless explicitly disabled
            use_tls=(_env("IMAP_TLS", "true") or "").lower() != "false",
            mailbox=_env("IMAP_MAILBOX", "INBOX"),
            timeout=_env_float("IMAP_TIMEOUT", 30.0),
        )


@dataclass(frozen=True)
class PollerConfig:
    enabled: bool = False
    interval_ms: int = DEFAULT_POLL_INTERVAL_MS

    @property
    def interval_seconds(self) -> float:
        return self.interval_ms / 1000.0

    @classmethod
    def from_env(cls) -> "PollerConfig":
        interval = _env_int("EMAIL_POLL_INTERVAL", DEFAULT_POLL_INTERVAL_MS)
        if interval <= 0:
            interval = DEFAULT_POLL_INTERVAL_MS
        return cls(
            enabled=(_env("ENABLE_EMAIL_POLLING", "false") or "").lower() == "true",
            interval_ms=interval,
        )


@dataclass(frozen=True)
class SmtpConfig:
    host: Optional[str]
    port: int = 587
    secure: bool = False
    user: Optional[str] = None
    password: Optional[str] = None
    from_address: Optional[str] = None
    timeout: float = 30.0

    @property
    def sender(self) -> str:
        return self.from_address or self.user or ""

    @classmethod
    def from_env(cls) -> "SmtpConfig":
        return cls(
            host=_env("SMTP_HOST"),
            port=_env_int("SMTP_PORT", 587),
            secure=(_env("SMTP_SECURE", "false") or "").lower() == "true",
            user=_env("SMTP_USER"),
            password=_env("SMTP_PASSWORD"),
            from_address=_env("SMTP_FROM"),
            timeout=_env_float("SMTP_TIMEOUT", 30.0),
        )


@dataclass(frozen=True)
class OpenAIConfig:
    api_key: Optional[str]
    model: str = "gpt-4o-mini"
    timeout: float = 60.0

    @classmethod
    def from_env(cls) -> "OpenAIConfig":
        return cls(
            api_key=_env("OPENAI_API_KEY"),
            model=_env("OPENAI_MODEL", "gpt-4o-mini"),
            timeout=_env_float("OPENAI_TIMEOUT", 60.0),
        )


@dataclass(frozen=True)
class ServerConfig:
    host: str = "0.0.0.0"
    port: int = 8000

    @classmethod
    def from_env(cls) -> "ServerConfig":
        return cls(host=_env("HOST", "0.0.0.0"), port=_env_int("PORT", 8000))


def data_dir() -> Path:
    return Path(_env("RFPDESK_DATA_DIR", str(DEFAULT_DATA_DIR)))
