from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum


class Folder(Enum):
    """Mail folders checked for verification mail, in scan order."""

    INBOX = "inbox"
    DELETED_ITEMS = "deleteditems"
    JUNK = "junkemail"

    @property
    def key(self) -> str:
        return self.value

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]


_DISPLAY_NAMES = {
    Folder.INBOX: "Inbox",
    Folder.DELETED_ITEMS: "Deleted Items",
    Folder.JUNK: "Junk Email",
}

SCAN_ORDER: tuple[Folder, ...] = (Folder.INBOX, Folder.DELETED_ITEMS, Folder.JUNK)


@dataclass(frozen=True, slots=True)
class AccessCredential:
    """Bearer token obtained for a client id. The token never shows up in repr."""

    token: str = field(repr=False)
    issued_for: str

    @property
    def authorization_header(self) -> str:
        return f"Bearer {self.token}"


@dataclass(frozen=True, slots=True)
class Message:
    """Normalized mail message as returned by the mail API."""

    id: str
    subject: str
    sender: str
    received_at: datetime | None
    preview: str = ""
    body: str = ""


@dataclass(frozen=True, slots=True)
class ProvisionedMailbox:
    """Mailbox tuple handed over by the provisioning service."""

    name: str
    email: str
    refresh_token: str = field(repr=False)
    client_id: str
    password: str = field(default="", repr=False)
