"""
Encryption helpers for the secret vault.

Handles cross-database encryption (PostgreSQL pgcrypto, SQLite plaintext for
development and tests).
"""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session


def _encryption_key(namespace: str, key_suffix: str) -> str:
    return f"{namespace}_{key_suffix}" if key_suffix else namespace


def encrypt_value(session: Session, value: str, namespace: str, key_suffix: str = "") -> bytes:
    """
    Encrypt a value using database-specific encryption.

    Args:
        session: Database session of the secret vault
        value: Value to encrypt
        namespace: Service name the secret belongs to
        key_suffix: Additional key suffix (usually the account identifier)

    Returns:
        Encrypted bytes
    """
    if session.bind.dialect.name == "postgresql":
        return session.execute(
            text("SELECT pgp_sym_encrypt(:data, :key)"),
            {"data": value, "key": _encryption_key(namespace, key_suffix)},
        ).scalar()
    else:
        # SQLite - stored as-is
        return value.encode() if isinstance(value, str) else value


def decrypt_value(
    session: Session, encrypted_value, namespace: str, key_suffix: str = ""
) -> Optional[str]:
    """
    Decrypt a value using database-specific decryption.

    Returns:
        Decrypted string or None
    """
    if not encrypted_value:
        return None

    if session.bind.dialect.name == "postgresql":
        return session.execute(
            text("SELECT pgp_sym_decrypt(:data, :key)"),
            {"data": encrypted_value, "key": _encryption_key(namespace, key_suffix)},
        ).scalar()
    else:
        if isinstance(encrypted_value, bytes):
            return encrypted_value.decode()
        return encrypted_value
