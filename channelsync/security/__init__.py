"""Security utilities for credential handling."""

from .credentials import CredentialManager

__all__ = ["CredentialManager"]
