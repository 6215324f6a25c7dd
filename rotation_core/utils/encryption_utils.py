"""
Simple encryption utilities for stored administrator passwords.

Handles cross-database encryption (PostgreSQL pgcrypto, SQLite plaintext for testing).
"""

from typing import Optional

from sqlalchemy import text
from sqlalchemy.orm import Session


def encrypt_value(session: Session, value: str, key: str) -> bytes:
    """
    Encrypt a value using database-specific encryption.

    Args:
        session: Database session
        value: Value to encrypt
        key: Symmetric key name; scoped per managed resource by the callers

    Returns:
        Encrypted bytes
    """
    if session.bind.dialect.name == "postgresql":
        return session.execute(
            text("SELECT pgp_sym_encrypt(:data, :key)"), {"data": value, "key": key}
        ).scalar()

    # SQLite for testing - return as-is
    return value.encode() if isinstance(value, str) else value


def decrypt_value(session: Session, encrypted_value: bytes, key: str) -> Optional[str]:
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
            {"data": encrypted_value, "key": key},
        ).scalar()

    if isinstance(encrypted_value, bytes):
        return encrypted_value.decode()
    return encrypted_value


def secret_key_for(spec_id: str, encryption_key: str) -> str:
    """Derive the per-resource symmetric key name."""
    return f"{encryption_key}_pwd_{spec_id}"


def encrypt_password(session: Session, password: str, spec_id: str, encryption_key: str) -> bytes:
    """Encrypt an administrator password with per-resource key isolation."""
    return encrypt_value(session, password, secret_key_for(spec_id, encryption_key))


def decrypt_password(
    session: Session, encrypted: bytes, spec_id: str, encryption_key: str
) -> Optional[str]:
    """Decrypt an administrator password."""
    return decrypt_value(session, encrypted, secret_key_for(spec_id, encryption_key))
