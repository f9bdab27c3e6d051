"""
Session Models

A UserContext is passed explicitly into every loader and flow.
Nothing about the signed-in user lives in module state.
"""

import json
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field

from accounts_keeper.models.ledger import UserSettings


class UserProfile(BaseModel):
    """The identity issued by the authentication provider."""

    uid: str
    email: str
    display_name: Optional[str] = None

    @property
    def label(self) -> str:
        """Name shown in the header."""
        return self.display_name or self.email


class UserContext(BaseModel):
    """Everything a page needs to know about who is asking."""

    user: UserProfile
    settings: UserSettings = Field(default_factory=UserSettings)

    @property
    def user_id(self) -> str:
        return self.user.uid

    @property
    def currency_symbol(self) -> str:
        return self.settings.currency_symbol


class DeepLink(BaseModel):
    """
    Page-level query parameters.

    `account_id` alone opens the account detail page; `action` plus
    `account_id` opens a modal on the accounts page.
    """

    action: Optional[str] = Field(
        default=None,
        pattern="^(edit|receipt|payment)$",
    )
    account_id: Optional[str] = None

    @classmethod
    def from_query_params(cls, params: dict[str, Any]) -> "DeepLink":
        """
        Parse query parameters.

        Unknown actions are dropped rather than rejected.
        """
        def first(key: str) -> Optional[str]:
            value = params.get(key)
            if isinstance(value, (list, tuple)):
                value = value[0] if value else None
            if value is None:
                return None
            return str(value).strip() or None

        action = first("action")
        if action not in ("edit", "receipt", "payment"):
            action = None
        account_id = first("account") or first("id")
        return cls(action=action if account_id else None, account_id=account_id)

    @property
    def opens_modal(self) -> bool:
        return self.action is not None and self.account_id is not None


class ExportBundle(BaseModel):
    """
    The JSON document produced by 'Export data'.

    Transactions and categories are the stored documents as they are,
    with their IDs, so nothing the models would reject or drop is lost.
    """

    user: dict[str, Optional[str]]
    settings: UserSettings
    transactions: list[dict[str, Any]] = Field(default_factory=list)
    categories: list[dict[str, Any]] = Field(default_factory=list)
    export_date: datetime = Field(
        default_factory=datetime.utcnow,
        alias="exportDate",
    )

    model_config = {"populate_by_name": True}

    def to_json(self) -> str:
        """Serialize with the stored field names, document IDs included."""
        payload = {
            "user": self.user,
            "settings": self.settings.to_document(),
            "transactions": self.transactions,
            "categories": self.categories,
            "exportDate": self.export_date.isoformat(),
        }
        return json.dumps(payload, indent=2, ensure_ascii=False, default=str)
