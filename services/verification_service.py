from __future__ import annotations

import logging
import threading
from typing import List, Optional, Union

import requests

from models.mailbox import AccessCredential, Message, ProvisionedMailbox
from models.results import MonitorResult, MonitorStatus, OperationResult
from services.errors import MailboxError, ValidationError
from services.inbox_monitor import InboxMonitor, MonitorCoordinator
from services.inbox_scanner import InboxScanner
from services.mail_service import MailFolderReader
from services.mailbox_lister import MailboxLister
from services.token_service import TokenExchangeClient, validate_credential_input
from utils.config import AppConfig
from utils.messages import Messages

LOGGER = logging.getLogger(__name__)


class VerificationService:
    """Entry points for the UI layer. Every call returns an ``OperationResult``; nothing raises."""

    def __init__(
        self,
        token_client: TokenExchangeClient,
        monitor: Union[InboxMonitor, MonitorCoordinator],
        lister: MailboxLister,
        messages: Optional[Messages] = None,
        list_limit: int = 15,
    ):
        self._token_client = token_client
        self._monitor = monitor
        self._lister = lister
        self._messages = messages or Messages()
        self._list_limit = list_limit

    @classmethod
    def from_config(cls, config: AppConfig, session: requests.Session) -> "VerificationService":
        reader = MailFolderReader(session, config.mail)
        scanner = InboxScanner(reader, limit=config.mail.scan_folder_limit)
        monitor = InboxMonitor(
            scanner,
            max_attempts=config.monitor.max_attempts,
            base_delay_ms=config.monitor.base_delay_ms,
        )
        return cls(
            token_client=TokenExchangeClient(session, config.oauth),
            monitor=MonitorCoordinator(monitor),
            lister=MailboxLister(reader),
            messages=Messages(config.locale),
            list_limit=config.mail.list_limit,
        )

    def get_access_token(self, refresh_token: str, client_id: str) -> OperationResult[AccessCredential]:
        try:
            credential = self._token_client.exchange(refresh_token, client_id)
        except MailboxError as exc:
            LOGGER.error("Access token request failed: %s", exc.__class__.__name__)
            return OperationResult(success=False, message=self._messages.for_error(exc))
        return OperationResult(success=True, message=self._messages.get("token_ok"), payload=credential)

    def monitor_inbox(
        self,
        access_token: str,
        client_id: str = "",
        cancel: Optional[threading.Event] = None,
        **monitor_options,
    ) -> OperationResult[str]:
        return self._run_monitor(access_token, client_id, cancel, "code_not_found", monitor_options)

    def retry_monitor_inbox(
        self,
        access_token: str,
        client_id: str = "",
        cancel: Optional[threading.Event] = None,
        **monitor_options,
    ) -> OperationResult[str]:
        LOGGER.info("Retrying inbox monitoring")
        return self._run_monitor(access_token, client_id, cancel, "code_not_found_retry", monitor_options)

    def monitor_mailbox(
        self,
        mailbox: ProvisionedMailbox,
        cancel: Optional[threading.Event] = None,
        **monitor_options,
    ) -> OperationResult[str]:
        """Authenticate a provisioned mailbox and wait for its verification code."""

        token = self.get_access_token(mailbox.refresh_token, mailbox.client_id)
        if not token.success or token.payload is None:
            return OperationResult(success=False, message=token.message)
        return self.monitor_inbox(token.payload.token, mailbox.client_id, cancel, **monitor_options)

    def list_emails(self, access_token: str, client_id: str = "", limit: Optional[int] = None) -> OperationResult[List[Message]]:
        try:
            credential = _credential(access_token, client_id)
        except ValidationError as exc:
            return OperationResult(success=False, message=self._messages.for_error(exc), payload=[])
        emails = self._lister.list_messages(credential, limit=self._list_limit if limit is None else limit)
        return OperationResult(
            success=True,
            message=self._messages.get("emails_found", count=len(emails)),
            payload=emails,
        )

    def _run_monitor(
        self,
        access_token: str,
        client_id: str,
        cancel: Optional[threading.Event],
        not_found_key: str,
        monitor_options: dict,
    ) -> OperationResult[str]:
        try:
            credential = _credential(access_token, client_id)
            LOGGER.info("Starting inbox monitoring")
            result = self._monitor.monitor(credential, cancel=cancel, **monitor_options)
        except MailboxError as exc:
            LOGGER.error("Monitoring failed: %s", exc.__class__.__name__)
            return OperationResult(success=False, message=self._messages.for_error(exc))
        return self._from_monitor_result(result, not_found_key)

    def _from_monitor_result(self, result: MonitorResult, not_found_key: str) -> OperationResult[str]:
        if result.status is MonitorStatus.FOUND:
            LOGGER.info("Verification code extracted after %s attempts", result.attempts)
            return OperationResult(success=True, message=self._messages.get("code_found"), payload=result.code)
        if result.status is MonitorStatus.CANCELLED:
            return OperationResult(success=False, message=self._messages.get("monitor_cancelled"))
        if result.status is MonitorStatus.UNAVAILABLE:
            return OperationResult(success=False, message=self._messages.get("mailbox_unavailable"))
        return OperationResult(success=False, message=self._messages.get(not_found_key))


def _credential(access_token: str, client_id: str) -> AccessCredential:
    validate_credential_input("access_token", access_token)
    return AccessCredential(token=access_token, issued_for=client_id)
