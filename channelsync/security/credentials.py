"""Channel API key encryption at rest.

Keys are Fernet-encrypted before they reach the channel table and
decrypted only when a run hands them to the sync pipeline. Set
CREDENTIAL_ENCRYPTION_KEY to enable encryption; generate one with:
    python -c "from cryptography.fernet import Fernet; print(Fernet.generate_key().decode())"
"""

from __future__ import annotations

import base64
import logging
import os

from cryptography.fernet import Fernet, InvalidToken

logger = logging.getLogger(__name__)


class CredentialManager:
    """Seals and unseals channel API keys.

    Without a valid key the manager is disabled and keys pass through
    unchanged, flagged as plain text so they can be read back later.
    """

    def __init__(self, encryption_key: str | None = None) -> None:
        """Initialize the credential manager.

        Args:
            encryption_key: Fernet key (defaults to CREDENTIAL_ENCRYPTION_KEY)
        """
        key = encryption_key or os.getenv("CREDENTIAL_ENCRYPTION_KEY")
        self._fernet: Fernet | None = None

        if key:
            try:
                self._fernet = Fernet(key.encode())
            except ValueError as e:
                logger.error(f"Invalid encryption key, storing API keys unencrypted: {e}")

    @property
    def encryption_enabled(self) -> bool:
        return self._fernet is not None

    def encrypt(self, value: str) -> str:
        """Encrypt a value into a URL-safe token.

        Raises:
            ValueError: If encryption is not configured
        """
        if not self._fernet:
            raise ValueError(
                "Encryption not configured. Set CREDENTIAL_ENCRYPTION_KEY env var."
            )
        token = self._fernet.encrypt(value.encode())
        return base64.urlsafe_b64encode(token).decode()

    def decrypt(self, token: str) -> str:
        """Decrypt a token produced by ``encrypt``.

        Raises:
            ValueError: If encryption is not configured, or the token is
                corrupt or was sealed with another key
        """
        if not self._fernet:
            raise ValueError("Encryption not configured")
        try:
            return self._fernet.decrypt(base64.urlsafe_b64decode(token.encode())).decode()
        except InvalidToken:
            raise ValueError("Invalid encrypted value or wrong key")

    def seal(self, api_key: str | None) -> tuple[str | None, bool]:
        """Prepare an API key for storage.

        Returns:
            Tuple of (stored value, whether it is encrypted)
        """
        if api_key is None or not self.encryption_enabled:
            return api_key, False
        return self.encrypt(api_key), True

    def unseal(self, stored: str | None, encrypted: bool) -> str | None:
        """Recover an API key written by ``seal``."""
        if stored is None or not encrypted:
            return stored
        return self.decrypt(stored)
