from __future__ import annotations

import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional

from dotenv import load_dotenv

from models.mailbox import ProvisionedMailbox


PROJECT_ROOT = Path(__file__).resolve().parent.parent

DEFAULT_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
DEFAULT_SCOPE = "https://graph.microsoft.com/.default"
DEFAULT_GRAPH_BASE_URL = "https://graph.microsoft.com/v1.0"


@dataclass(slots=True)
class OAuthConfig:
    token_url: str = DEFAULT_TOKEN_URL
    scope: str = DEFAULT_SCOPE
    timeout: float = 10.0


@dataclass(slots=True)
class MailConfig:
    graph_base_url: str = DEFAULT_GRAPH_BASE_URL
    timeout: float = 10.0
    scan_folder_limit: int = 30
    list_limit: int = 15


@dataclass(slots=True)
class MonitorConfig:
    max_attempts: int = 60
    base_delay_ms: int = 2000


@dataclass(slots=True)
class AppConfig:
    oauth: OAuthConfig
    mail: MailConfig
    monitor: MonitorConfig
    log_dir: Path
    log_level: str
    locale: str
    mailboxes: Dict[str, ProvisionedMailbox]
    default_mailbox: Optional[ProvisionedMailbox]
    mailboxes_file: Path

    def get_mailbox(self, mailbox_name: Optional[str]) -> ProvisionedMailbox:
        if not mailbox_name:
            if self.default_mailbox is None:
                raise KeyError(
                    "No default mailbox configured. Set MAILBOX_REFRESH_TOKEN and MAILBOX_CLIENT_ID "
                    f"or pass --mailbox with a name from {self.mailboxes_file.name}"
                )
            return self.default_mailbox
        if mailbox_name not in self.mailboxes:
            available = ", ".join(sorted(self.mailboxes)) or "none"
            raise KeyError(f"Unknown mailbox '{mailbox_name}'. Available mailboxes: {available}")
        return self.mailboxes[mailbox_name]


def _resolve_path(value: str | None, fallback: str) -> Path:
    candidate = Path(value or fallback)
    if not candidate.is_absolute():
        candidate = PROJECT_ROOT / candidate
    return candidate


def _int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer, got {raw!r}") from exc


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {raw!r}") from exc


def _mailbox_from_item(item: dict, fallback_name: str) -> Optional[ProvisionedMailbox]:
    # Accept both the provisioning response keys and camelCase variants.
    refresh_token = item.get("refresh_token") or item.get("refreshToken")
    client_id = item.get("client_id") or item.get("clientId")
    if not refresh_token or not client_id:
        return None
    return ProvisionedMailbox(
        name=item.get("name") or fallback_name,
        email=item.get("email", ""),
        refresh_token=refresh_token,
        client_id=client_id,
        password=item.get("password", ""),
    )


def load_mailboxes(mailboxes_file: Path) -> Dict[str, ProvisionedMailbox]:
    if not mailboxes_file.exists():
        return {}
    data = json.loads(mailboxes_file.read_text(encoding="utf-8"))
    mailboxes: Dict[str, ProvisionedMailbox] = {}
    for item in data.get("mailboxes", []):
        name = item.get("name") or item.get("email")
        if not name:
            continue
        mailbox = _mailbox_from_item(item, name)
        if mailbox is not None:
            mailboxes[mailbox.name] = mailbox
    return mailboxes


def load_config(env_file: str | os.PathLike[str] | None = None) -> AppConfig:
    """Load configuration values from a .env file and environment variables."""

    if env_file:
        load_dotenv(env_file, override=False)
    else:
        load_dotenv(override=False)

    log_dir = _resolve_path(os.getenv("LOG_DIR"), "logs")
    mailboxes_file = _resolve_path(os.getenv("MAILBOXES_FILE"), "mailboxes.json")
    request_timeout = _float_env("REQUEST_TIMEOUT_SECONDS", 10.0)

    oauth = OAuthConfig(
        token_url=os.getenv("OAUTH_TOKEN_URL", DEFAULT_TOKEN_URL),
        scope=os.getenv("OAUTH_SCOPE", DEFAULT_SCOPE),
        timeout=request_timeout,
    )
    mail = MailConfig(
        graph_base_url=os.getenv("GRAPH_BASE_URL", DEFAULT_GRAPH_BASE_URL).rstrip("/"),
        timeout=request_timeout,
        scan_folder_limit=_int_env("SCAN_FOLDER_LIMIT", 30),
        list_limit=_int_env("LIST_LIMIT", 15),
    )
    monitor = MonitorConfig(
        max_attempts=_int_env("MONITOR_MAX_ATTEMPTS", 60),
        base_delay_ms=_int_env("MONITOR_BASE_DELAY_MS", 2000),
    )

    default_mailbox = _mailbox_from_item(
        {
            "name": "default",
            "email": os.getenv("MAILBOX_EMAIL", ""),
            "password": os.getenv("MAILBOX_PASSWORD", ""),
            "refresh_token": os.getenv("MAILBOX_REFRESH_TOKEN"),
            "client_id": os.getenv("MAILBOX_CLIENT_ID"),
        },
        "default",
    )
    mailboxes = load_mailboxes(mailboxes_file)
    if default_mailbox is not None:
        mailboxes.setdefault(default_mailbox.name, default_mailbox)

    return AppConfig(
        oauth=oauth,
        mail=mail,
        monitor=monitor,
        log_dir=log_dir,
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        locale=os.getenv("MESSAGE_LOCALE", "en"),
        mailboxes=mailboxes,
        default_mailbox=default_mailbox,
        mailboxes_file=mailboxes_file,
    )
