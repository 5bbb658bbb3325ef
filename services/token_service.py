from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import requests

from models.mailbox import AccessCredential
from services.errors import AuthError, AuthErrorKind, ValidationError
from utils.config import OAuthConfig

LOGGER = logging.getLogger(__name__)
MIN_CREDENTIAL_LENGTH = 10


def validate_credential_input(field: str, value: Optional[str]) -> str:
    if not value or len(value) < MIN_CREDENTIAL_LENGTH:
        raise ValidationError(field, f"{field} is missing or shorter than {MIN_CREDENTIAL_LENGTH} characters")
    return value


class TokenExchangeClient:
    """Exchange a refresh token for a short-lived Graph access token.

    One POST per call. Nothing is cached or retried; callers obtain a new
    credential when the mail API answers 401.
    """

    def __init__(self, session: requests.Session, config: OAuthConfig | None = None):
        self._session = session
        self._config = config or OAuthConfig()

    def exchange(self, refresh_token: str, client_id: str) -> AccessCredential:
        validate_credential_input("refresh_token", refresh_token)
        validate_credential_input("client_id", client_id)

        LOGGER.info("Requesting access token for client %s", client_id)
        form = {
            "client_id": client_id,
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "scope": self._config.scope,
        }
        try:
            response = self._session.post(
                self._config.token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self._config.timeout,
            )
        except (requests.Timeout, requests.ConnectionError) as exc:
            LOGGER.error("Token endpoint unreachable: %s", exc.__class__.__name__)
            raise AuthError(AuthErrorKind.NETWORK_TIMEOUT, str(exc)) from exc
        except requests.RequestException as exc:
            LOGGER.error("Token request failed: %s", exc.__class__.__name__)
            raise AuthError(AuthErrorKind.PROVIDER_REJECTED) from exc

        payload = _json_or_empty(response)
        if response.ok and payload.get("access_token"):
            LOGGER.info("Access token obtained for client %s", client_id)
            return AccessCredential(token=payload["access_token"], issued_for=client_id)

        error = _map_token_error(payload)
        LOGGER.error(
            "Token exchange rejected: status=%s error=%s description=%s",
            response.status_code,
            payload.get("error"),
            payload.get("error_description"),
        )
        raise error


def _json_or_empty(response: requests.Response) -> Dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


def _map_token_error(payload: Dict[str, Any]) -> AuthError:
    code = payload.get("error")
    description = payload.get("error_description")
    if code == "invalid_grant":
        return AuthError(AuthErrorKind.INVALID_GRANT, description)
    if code == "invalid_client":
        return AuthError(AuthErrorKind.INVALID_CLIENT, description)
    if description:
        return AuthError(AuthErrorKind.PROVIDER_REJECTED, f"OAuth error: {description}")
    return AuthError(AuthErrorKind.PROVIDER_REJECTED, "Failed to obtain an access token")
