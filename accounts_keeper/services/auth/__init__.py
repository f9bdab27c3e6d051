"""Authentication services package."""

from accounts_keeper.services.auth.service import (
    AuthError,
    AuthService,
    DeletionNotConfirmedError,
    EmailAlreadyRegisteredError,
    InvalidCredentialsError,
    InvalidEmailError,
    NotSignedInError,
    WeakPasswordError,
    is_valid_email,
    password_strength,
    strength_label,
)

__all__ = [
    "AuthError",
    "AuthService",
    "DeletionNotConfirmedError",
    "EmailAlreadyRegisteredError",
    "InvalidCredentialsError",
    "InvalidEmailError",
    "NotSignedInError",
    "WeakPasswordError",
    "is_valid_email",
    "password_strength",
    "strength_label",
]
