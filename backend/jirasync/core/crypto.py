"""Symmetric encryption for Jira site API tokens stored at rest."""

from __future__ import annotations

import base64
import hashlib

from cryptography.fernet import Fernet, InvalidToken

from jirasync.core.config import settings
from jirasync.core.exceptions import CredentialDecryptionError


def _fernet(secret: str | None = None) -> Fernet:
    material = (secret if secret is not None else settings.ENCRYPTION_SECRET).encode("utf-8")
    key = base64.urlsafe_b64encode(hashlib.sha256(material).digest())
    return Fernet(key)


def encrypt_secret(value: str, *, secret: str | None = None) -> str:
    token = _fernet(secret).encrypt(value.encode("utf-8"))
    return token.decode("utf-8")


def decrypt_secret(cipher: str, *, secret: str | None = None) -> str:
    try:
        value = _fernet(secret).decrypt((cipher or "").encode("utf-8"))
    except InvalidToken as exc:
        raise CredentialDecryptionError() from exc
    return value.decode("utf-8")
