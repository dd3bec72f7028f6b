from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import lru_cache
from typing import Protocol

from .auth_security import hash_password, verify_password
from .config import settings

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class Principal:
    username: str
    role: str = "admin"


class CredentialVerifier(Protocol):
    """Politica di autenticazione: ritorna il Principal o None se le credenziali non valgono."""

    def verify(self, username: str, password: str) -> Principal | None:
        ...


class StaticCredentialVerifier:
    """
    Un'unica credenziale configurata (banco accettazione).
    La password è tenuta solo come hash passlib.
    """

    def __init__(
        self,
        username: str,
        password: str | None = None,
        password_hash: str | None = None,
        role: str = "admin",
    ) -> None:
        if not username or not (password or password_hash):
            raise ValueError("Username e password sono obbligatori.")
        self.username = username.strip().lower()
        self.role = role
        self._password_hash = password_hash or hash_password(password)

    def verify(self, username: str, password: str) -> Principal | None:
        username = (username or "").strip().lower()
        if username != self.username or not password:
            return None
        if not verify_password(password, self._password_hash):
            return None
        return Principal(username=self.username, role=self.role)


@lru_cache(maxsize=1)
def get_verifier() -> CredentialVerifier:
    return StaticCredentialVerifier(settings.admin_username, settings.admin_password)


def authenticate(verifier: CredentialVerifier, username: str, password: str) -> Principal | None:
    principal = verifier.verify(username, password)
    if principal is None:
        log.warning("Login fallito per l'utente '%s'", (username or "").strip().lower())
    else:
        log.info("Login effettuato: %s", principal.username)
    return principal
