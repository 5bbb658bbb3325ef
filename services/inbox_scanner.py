from __future__ import annotations

import dataclasses
import logging
import threading
from typing import Optional, Sequence

from models.mailbox import SCAN_ORDER, AccessCredential, Folder
from models.results import ExtractionResult, FolderFetch, ScanAttempt, ScanOutcome
from services.code_extractor import CodeExtractor
from services.errors import FetchError
from services.mail_service import MailFolderReader

LOGGER = logging.getLogger(__name__)
DEFAULT_SCAN_LIMIT = 30


class InboxScanner:
    """Check each folder once, in order, for the newest message carrying a code."""

    def __init__(
        self,
        reader: MailFolderReader,
        extractor: Optional[CodeExtractor] = None,
        folders: Sequence[Folder] = SCAN_ORDER,
        limit: int = DEFAULT_SCAN_LIMIT,
    ):
        self._reader = reader
        self._extractor = extractor or CodeExtractor()
        self._folders = tuple(folders)
        self._limit = limit

    def scan_once(self, credential: AccessCredential) -> ExtractionResult:
        return self.scan(credential).result

    def scan(
        self,
        credential: AccessCredential,
        attempt_number: int = 1,
        cancel: Optional[threading.Event] = None,
    ) -> ScanAttempt:
        """Scan every folder once.

        Raises ``AuthError`` as soon as a folder answers 401 or 403; any other
        folder failure is logged and the scan moves on to the next folder.
        """

        attempt = ScanAttempt(
            attempt_number=attempt_number,
            outcome=ScanOutcome.NOT_FOUND,
            result=ExtractionResult.not_found(),
        )
        for folder in self._folders:
            if cancel is not None and cancel.is_set():
                attempt.outcome = ScanOutcome.CANCELLED
                return attempt

            LOGGER.info("Searching in %s...", folder.display_name)
            fetched = self._reader.fetch(credential, folder, self._limit)
            if not self._accept(fetched, attempt):
                continue

            result = self._search(fetched)
            if result.found:
                LOGGER.info("Verification code found in %s", folder.display_name)
                attempt.outcome = ScanOutcome.FOUND
                attempt.result = result
                return attempt
        return attempt

    def _accept(self, fetched: FolderFetch, attempt: ScanAttempt) -> bool:
        if fetched.ok:
            attempt.folders_checked.append(fetched.folder)
            return True

        error = fetched.error
        if isinstance(error, FetchError) and error.is_fatal:
            LOGGER.error("Authorization failure while reading %s: %s", fetched.folder.display_name, error)
            raise error.to_auth_error() from error

        LOGGER.warning("Skipping %s: %s", fetched.folder.display_name, error)
        attempt.folders_failed.append(fetched.folder)
        return False

    def _search(self, fetched: FolderFetch) -> ExtractionResult:
        for message in fetched.messages:
            if not message.body:
                continue
            LOGGER.debug("Checking message in %s: %r", fetched.folder.display_name, message.subject)
            result = self._extractor.extract(message.body)
            if result.found:
                return dataclasses.replace(result, folder=fetched.folder, message_id=message.id)
        return ExtractionResult.not_found()
