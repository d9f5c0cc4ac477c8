from cobrafacil.core.config import Settings, settings
from cobrafacil.core.security import (
    hash_password,
    verify_password,
    create_access_token,
    decode_token,
    is_valid_password,
    MIN_PASSWORD_LENGTH,
)
from cobrafacil.core.exceptions import NotFoundError, PermissionDeniedError, ConflictError, http_error

__all__ = [
    "Settings",
    "settings",
    "hash_password",
    "verify_password",
    "create_access_token",
    "decode_token",
    "is_valid_password",
    "MIN_PASSWORD_LENGTH",
    "NotFoundError",
    "PermissionDeniedError",
    "ConflictError",
    "http_error",
]
