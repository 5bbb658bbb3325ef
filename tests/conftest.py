from __future__ import annotations

import pytest

from models.mailbox import AccessCredential


@pytest.fixture
def credential() -> AccessCredential:
    return AccessCredential(token="access-token-0123456789", issued_for="client-id-0123456789")
