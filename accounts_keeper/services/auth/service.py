"""
Authentication Service

Email + password accounts stored in the `users` collection of the
configured document store, with bcrypt password hashes.

DESIGN DECISION: One AuthService instance per browser session.
It holds the signed-in user for that session and nothing else; ledger
data is always reached through the repository with an explicit user ID.

Listeners registered with on_auth_state_changed are called immediately
with the current user and again on every sign-in, sign-out, profile
change and deletion.
"""

import re
from datetime import datetime
from typing import Callable, Optional

import bcrypt
import structlog

from accounts_keeper.config import get_settings
from accounts_keeper.ledger.repository import LedgerRepository
from accounts_keeper.models.session import UserProfile
from accounts_keeper.services.storage.interface import USERS, DocumentStore, new_document_id


logger = structlog.get_logger(__name__)

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

AuthListener = Callable[[Optional[UserProfile]], None]


class AuthError(Exception):
    """Base exception for authentication."""
    pass


class InvalidEmailError(AuthError):
    """Email address is not well formed."""
    pass


class WeakPasswordError(AuthError):
    """Password doesn't meet the minimum length."""
    pass


class EmailAlreadyRegisteredError(AuthError):
    """An account with this email already exists."""
    pass


class InvalidCredentialsError(AuthError):
    """Unknown email or wrong password."""
    pass


class NotSignedInError(AuthError):
    """The operation needs a signed-in user."""
    pass


class DeletionNotConfirmedError(AuthError):
    """Account deletion was requested without the confirmation word."""
    pass


def is_valid_email(email: str) -> bool:
    return bool(EMAIL_PATTERN.match(email or ""))


def password_strength(password: str) -> int:
    """
    Score a password from 0 to 4.

    One point each for: length >= 8, an uppercase letter, a digit,
    a character that is neither letter nor digit.
    """
    password = password or ""
    score = 0
    if len(password) >= 8:
        score += 1
    if re.search(r"[A-Z]", password):
        score += 1
    if re.search(r"[0-9]", password):
        score += 1
    if re.search(r"[^A-Za-z0-9]", password):
        score += 1
    return score


def strength_label(score: int) -> str:
    """Label shown under the password field."""
    if score <= 0:
        return ""
    if score <= 2:
        return "weak"
    if score == 3:
        return "medium"
    return "strong"


class AuthService:
    """
    Sign-up, sign-in and profile management for one session.
    """

    def __init__(
        self,
        store: DocumentStore,
        repository: Optional[LedgerRepository] = None,
    ):
        self._store = store
        self._repository = repository or LedgerRepository(store)
        self._settings = get_settings().auth
        self._current_user: Optional[UserProfile] = None
        self._listeners: list[AuthListener] = []

    @property
    def current_user(self) -> Optional[UserProfile]:
        return self._current_user

    def on_auth_state_changed(self, listener: AuthListener) -> Callable[[], None]:
        """
        Register a listener.

        Returns:
            A function that unregisters the listener
        """
        self._listeners.append(listener)
        listener(self._current_user)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _set_current_user(self, user: Optional[UserProfile]) -> None:
        self._current_user = user
        for listener in list(self._listeners):
            listener(user)

    def _require_user(self) -> UserProfile:
        if self._current_user is None:
            raise NotSignedInError("No user is signed in")
        return self._current_user

    async def _find_by_email(self, email: str):
        matches = await self._store.query(USERS, {"email": email})
        return matches[0] if matches else None

    def _hash_password(self, password: str) -> str:
        salt = bcrypt.gensalt(rounds=self._settings.bcrypt_rounds)
        return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")

    async def sign_up(
        self,
        email: str,
        password: str,
        display_name: Optional[str] = None,
    ) -> UserProfile:
        """
        Create an account and sign it in.

        The user record and the default categories are written in
        one batch.

        Raises:
            InvalidEmailError: Malformed email
            WeakPasswordError: Password shorter than the minimum
            EmailAlreadyRegisteredError: Email already in use
        """
        email = (email or "").strip().lower()
        if not is_valid_email(email):
            raise InvalidEmailError("Please enter a valid email")
        if len(password or "") < self._settings.min_password_length:
            raise WeakPasswordError(
                f"Password must be at least {self._settings.min_password_length} characters"
            )
        if await self._find_by_email(email) is not None:
            raise EmailAlreadyRegisteredError("An account with this email already exists")

        display_name = (display_name or "").strip() or None
        uid = new_document_id()

        batch = self._store.batch()
        batch.set(USERS, {
            "email": email,
            "displayName": display_name,
            "passwordHash": self._hash_password(password),
            "createdAt": datetime.utcnow().isoformat(),
        }, doc_id=uid)
        self._repository.stage_default_categories(uid, batch)
        await self._store.commit(batch)

        user = UserProfile(uid=uid, email=email, display_name=display_name)
        logger.info("user_signed_up", user_id=uid)
        self._set_current_user(user)
        return user

    async def sign_in(self, email: str, password: str) -> UserProfile:
        """
        Raises:
            InvalidEmailError: Malformed email
            InvalidCredentialsError: Unknown email or wrong password
        """
        email = (email or "").strip().lower()
        if not is_valid_email(email):
            raise InvalidEmailError("Please enter a valid email")

        record = await self._find_by_email(email)
        if record is None:
            raise InvalidCredentialsError("Invalid email or password")

        stored_hash = record.data.get("passwordHash", "")
        try:
            matches = bcrypt.checkpw(password.encode("utf-8"), stored_hash.encode("utf-8"))
        except ValueError:
            # Corrupt hash in the store
            logger.warning("invalid_password_hash", user_id=record.id)
            matches = False
        if not matches:
            raise InvalidCredentialsError("Invalid email or password")

        user = UserProfile(
            uid=record.id,
            email=record.data.get("email", email),
            display_name=record.data.get("displayName"),
        )
        self._set_current_user(user)
        return user

    async def sign_out(self) -> None:
        self._set_current_user(None)

    async def update_display_name(self, display_name: str) -> UserProfile:
        """
        Raises:
            NotSignedInError: No user signed in
            AuthError: Display name is blank
        """
        user = self._require_user()
        display_name = (display_name or "").strip()
        if not display_name:
            raise AuthError("Display name is required")

        await self._store.update(USERS, user.uid, {"displayName": display_name})
        updated = user.model_copy(update={"display_name": display_name})
        self._set_current_user(updated)
        return updated

    async def delete_user(self, confirmation: str, confirmed: bool = False) -> int:
        """
        Delete the signed-in user and everything they own.

        The user record, settings and all ledger documents go in a
        single batch, then the session is signed out.

        Args:
            confirmation: Must equal the configured confirmation word
            confirmed: The second, explicit confirmation

        Returns:
            Number of ledger documents deleted (user record excluded)

        Raises:
            NotSignedInError: No user signed in
            DeletionNotConfirmedError: Either confirmation is missing
        """
        user = self._require_user()
        if confirmation != self._settings.delete_confirmation_word or not confirmed:
            raise DeletionNotConfirmedError(
                f'Type "{self._settings.delete_confirmation_word}" and confirm to delete your account'
            )

        batch = self._store.batch()
        count = await self._repository.stage_user_data_deletion(user.uid, batch)
        batch.delete(USERS, user.uid)
        await self._store.commit(batch)

        logger.info("user_deleted", user_id=user.uid, documents=count)
        self._set_current_user(None)
        return count
