# app/utils/security.py

import secrets

from passlib.context import CryptContext

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


def verify_password(password: str, hashed_password: str) -> bool:
    """
    Verify a password against its bcrypt hash
    Args:
        password: str
        hashed_password: str
    Returns:
        bool
    """
    if not hashed_password:
        return False
    return pwd_context.verify(password, hashed_password)


def get_password_hash(password: str) -> str:
    """
    Get a password hash
    Args:
        password: str
    Returns:
        str
    """
    return pwd_context.hash(password)


def generate_password() -> str:
    """Random password for accounts provisioned without one."""
    return secrets.token_urlsafe(16)
