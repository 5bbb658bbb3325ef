from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Sequence

from models.mailbox import SCAN_ORDER, AccessCredential, Folder, Message
from services.mail_service import MailFolderReader

LOGGER = logging.getLogger(__name__)
DEFAULT_LIST_LIMIT = 15

_OLDEST = datetime.min.replace(tzinfo=timezone.utc)


class MailboxLister:
    """Newest messages across several folders, for display only."""

    def __init__(self, reader: MailFolderReader):
        self._reader = reader

    def list_messages(
        self,
        credential: AccessCredential,
        folders: Sequence[Folder] = SCAN_ORDER,
        limit: int = DEFAULT_LIST_LIMIT,
    ) -> List[Message]:
        if limit < 1:
            return []
        LOGGER.info("Fetching emails from folders: %s", ", ".join(f.key for f in folders))

        combined: List[Message] = []
        for folder in folders:
            fetched = self._reader.fetch(credential, folder, limit)
            if not fetched.ok:
                LOGGER.warning("Leaving out %s: %s", folder.display_name, fetched.error)
                continue
            combined.extend(fetched.messages)

        combined.sort(key=lambda message: message.received_at or _OLDEST, reverse=True)
        newest = combined[:limit]
        LOGGER.info("Found %s emails (combined from %s folders)", len(newest), len(folders))
        return newest
