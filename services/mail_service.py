from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List

import requests

from models.mailbox import AccessCredential, Folder, Message
from models.results import FolderFetch
from services.errors import FetchError, FetchErrorKind
from utils.config import MailConfig

LOGGER = logging.getLogger(__name__)

SELECT_FIELDS = "id,subject,from,receivedDateTime,bodyPreview,body"
NO_SUBJECT = "(no subject)"
UNKNOWN_SENDER = "(unknown)"
_FRACTION = re.compile(r"\.\d+")


class MailFolderReader:
    """Read the newest messages of a single mail folder through Microsoft Graph."""

    def __init__(self, session: requests.Session, config: MailConfig | None = None):
        self._session = session
        self._config = config or MailConfig()

    def folder_url(self, folder: Folder) -> str:
        return f"{self._config.graph_base_url}/me/mailFolders/{folder.key}/messages"

    def list_messages(self, credential: AccessCredential, folder: Folder, limit: int) -> List[Message]:
        params = {
            "$top": limit,
            "$orderby": "receivedDateTime desc",
            "$select": SELECT_FIELDS,
        }
        try:
            response = self._session.get(
                self.folder_url(folder),
                headers={"Authorization": credential.authorization_header},
                params=params,
                timeout=self._config.timeout,
            )
        except requests.RequestException as exc:
            raise FetchError(FetchErrorKind.NETWORK, message=f"{folder.display_name}: {exc.__class__.__name__}") from exc

        if not response.ok:
            raise FetchError.from_status(
                response.status_code,
                message=f"{folder.display_name} returned HTTP {response.status_code}",
            )

        try:
            payload = response.json()
        except ValueError as exc:
            raise FetchError(
                FetchErrorKind.PROVIDER_ERROR,
                status=response.status_code,
                message=f"{folder.display_name} returned a non-JSON body",
            ) from exc

        records = (payload.get("value") or []) if isinstance(payload, dict) else []
        messages = []
        for record in records:
            if not isinstance(record, dict):
                LOGGER.warning("Skipping malformed message record in %s", folder.display_name)
                continue
            messages.append(normalize_message(record))
        LOGGER.info("Found %s messages in %s", len(messages), folder.display_name)
        return messages

    def fetch(self, credential: AccessCredential, folder: Folder, limit: int) -> FolderFetch:
        """Same as ``list_messages`` but returns failures as a value."""

        try:
            messages = self.list_messages(credential, folder, limit)
        except FetchError as exc:
            return FolderFetch(folder=folder, error=exc)
        return FolderFetch(folder=folder, messages=messages)


def _nested(record: Any, *keys: str) -> Any:
    for key in keys:
        if not isinstance(record, dict):
            return None
        record = record.get(key)
    return record


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


def normalize_message(record: Dict[str, Any]) -> Message:
    """Build a ``Message`` from a Graph record, tolerating missing or mistyped fields."""

    sender = _text(_nested(record, "from", "emailAddress", "address"))
    preview = _text(record.get("bodyPreview"))
    body = _text(_nested(record, "body", "content")) or preview
    return Message(
        id=str(record.get("id") or ""),
        subject=_text(record.get("subject")) or NO_SUBJECT,
        sender=sender or UNKNOWN_SENDER,
        received_at=parse_received_at(_text(record.get("receivedDateTime"))),
        preview=preview,
        body=body,
    )


def parse_received_at(value: str | None) -> datetime | None:
    if not value:
        return None
    # Graph may send up to 7 fractional digits; datetime accepts at most 6.
    value = _FRACTION.sub(lambda match: match.group(0)[:7], value.replace("Z", "+00:00"))
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        LOGGER.debug("Unable to parse receivedDateTime: %s", value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
