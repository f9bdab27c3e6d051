"""Form validation package."""

from accounts_keeper.validation.validator import FormValidator

__all__ = ["FormValidator"]
