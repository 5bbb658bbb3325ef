"""User-facing messages for each error kind and monitor outcome."""

from __future__ import annotations

from typing import Dict, Optional

from services.errors import AuthError, AuthErrorKind, FetchError, MailboxError, ValidationError

DEFAULT_LOCALE = "en"

CATALOG: Dict[str, Dict[str, str]] = {
    "en": {
        "invalid_grant": "Refresh token is invalid or expired. Generate a new mailbox.",
        "invalid_client": "Client id is invalid. Check the generated mailbox data.",
        "provider_rejected": "The mail provider rejected the sign-in. Generate a new mailbox.",
        "network_timeout": "Could not reach the mail provider. Try again in a moment.",
        "unauthorized": "Session expired. Generate a new mailbox.",
        "forbidden": "Permission denied. Check the mailbox credentials.",
        "fetch_failed": "Could not read the mailbox.",
        "invalid_refresh_token": "Refresh token is invalid or incomplete.",
        "invalid_client_id": "Client id is invalid or incomplete.",
        "invalid_access_token": "Access token is invalid or incomplete.",
        "invalid_max_attempts": "The number of attempts must be at least 1.",
        "invalid_base_delay_ms": "The delay between attempts must not be negative.",
        "token_ok": "Access token obtained.",
        "code_found": "Verification code found.",
        "code_not_found": "Verification code not found. Check that the email arrived and contains a 6-digit code.",
        "code_not_found_retry": "Verification code not found. Try again in a few moments.",
        "monitor_cancelled": "Monitoring cancelled.",
        "mailbox_unavailable": "The mailbox could not be read. Try again in a moment.",
        "emails_found": "{count} emails found.",
    },
    "pt": {
        "invalid_grant": "Refresh token inválido ou expirado. Tente gerar um novo e-mail.",
        "invalid_client": "ID do cliente inválido. Verifique os dados do e-mail gerado.",
        "provider_rejected": "O provedor recusou o acesso. Tente gerar um novo e-mail.",
        "network_timeout": "Falha ao conectar ao provedor. Tente novamente em instantes.",
        "unauthorized": "Sessão expirada. Tente gerar um novo e-mail.",
        "forbidden": "Permissão negada. Verifique suas credenciais do Outlook.",
        "fetch_failed": "Erro ao ler a caixa de entrada.",
        "invalid_refresh_token": "Refresh token inválido ou incompleto.",
        "invalid_client_id": "Client ID inválido ou incompleto.",
        "invalid_access_token": "Access token inválido ou incompleto.",
        "invalid_max_attempts": "O número de tentativas deve ser pelo menos 1.",
        "invalid_base_delay_ms": "O intervalo entre tentativas não pode ser negativo.",
        "token_ok": "Access token obtido.",
        "code_found": "Código de verificação encontrado com sucesso!",
        "code_not_found": "Código de verificação não encontrado. Verifique se o e-mail chegou e contém um código de 6 dígitos.",
        "code_not_found_retry": "Código de verificação não encontrado. Tente novamente em alguns momentos.",
        "monitor_cancelled": "Monitoramento cancelado.",
        "mailbox_unavailable": "Não foi possível ler a caixa de entrada. Tente novamente em instantes.",
        "emails_found": "{count} e-mails encontrados.",
    },
}


class Messages:
    """Look up localized text, falling back to English for unknown locales or keys."""

    def __init__(self, locale: Optional[str] = None):
        self.locale = (locale or DEFAULT_LOCALE).split("_")[0].split("-")[0].lower()
        if self.locale not in CATALOG:
            self.locale = DEFAULT_LOCALE

    def get(self, key: str, **kwargs) -> str:
        template = CATALOG[self.locale].get(key) or CATALOG[DEFAULT_LOCALE][key]
        return template.format(**kwargs) if kwargs else template

    def for_error(self, error: MailboxError) -> str:
        if isinstance(error, ValidationError):
            return self.get(f"invalid_{error.field}")
        if isinstance(error, AuthError):
            return self.get(error.kind.value)
        if isinstance(error, FetchError):
            if error.is_fatal:
                return self.get(error.to_auth_error().kind.value)
            return self.get("fetch_failed")
        return self.get(AuthErrorKind.PROVIDER_REJECTED.value)
