"""Account directory: create-on-first-contact and activity tracking."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

from sqlalchemy.orm import Session

from wabridge.models.account import Account
from wabridge.models.account_settings import AccountSettings


def dialect_insert(db: Session):
    """Return the dialect-specific insert() that supports ON CONFLICT."""
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        raise NotImplementedError(f"Atomic upsert not supported on {dialect}")
    return insert


class AccountService:
    """
    Reads and writes Account rows.

    Creation goes through INSERT ... ON CONFLICT so concurrent webhook
    deliveries for the same counterpart never race into a duplicate key.
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_account(self, account_id: str) -> Optional[Account]:
        return self.db.get(Account, account_id)

    def get_accounts(self, skip: int = 0, limit: int = 100) -> List[Account]:
        return (
            self.db.query(Account)
            .order_by(Account.created_at.asc())
            .offset(skip)
            .limit(limit)
            .all()
        )

    def upsert_contact(
        self,
        account_id: str,
        name: Optional[str] = None,
        last_active: Optional[datetime] = None,
        whatsapp_name: Optional[str] = None,
    ) -> Account:
        """
        Create the account with `name`, or refresh last_active if it exists.

        An existing account keeps its name; a provided whatsapp_name replaces
        the stored one.
        """
        now = datetime.now(timezone.utc)
        last_active = last_active or now
        insert = dialect_insert(self.db)
        stmt = insert(Account).values(
            id=account_id,
            name=name or account_id,
            whatsapp_name=whatsapp_name,
            last_active=last_active,
            created_at=now,
            updated_at=now,
        )
        update_values = {
            "last_active": stmt.excluded.last_active,
            "updated_at": stmt.excluded.updated_at,
        }
        if whatsapp_name:
            update_values["whatsapp_name"] = stmt.excluded.whatsapp_name
        stmt = stmt.on_conflict_do_update(
            index_elements=[Account.id], set_=update_values
        )
        self.db.execute(stmt)
        self.db.commit()
        return self.db.get(Account, account_id, populate_existing=True)

    def ensure_accounts(self, account_ids: Iterable[str]) -> None:
        """Create any missing accounts (named after their id); existing rows untouched."""
        ids = list(dict.fromkeys(account_ids))
        if not ids:
            return
        now = datetime.now(timezone.utc)
        insert = dialect_insert(self.db)
        for account_id in ids:
            stmt = (
                insert(Account)
                .values(
                    id=account_id,
                    name=account_id,
                    last_active=now,
                    created_at=now,
                    updated_at=now,
                )
                .on_conflict_do_nothing(index_elements=[Account.id])
            )
            self.db.execute(stmt)
        self.db.commit()

    def set_custom_name(self, account_id: str, custom_name: Optional[str]) -> Optional[Account]:
        """Set or clear (empty or None) the display override; None when the account is unknown."""
        account = self.get_account(account_id)
        if account is None:
            return None
        account.custom_name = (custom_name or "").strip() or None
        self.db.commit()
        self.db.refresh(account)
        return account

    def touch_last_active(self, account_id: str, when: Optional[datetime] = None) -> bool:
        """Set last_active; returns False when the account does not exist."""
        account = self.get_account(account_id)
        if account is None:
            return False
        account.last_active = when or datetime.now(timezone.utc)
        self.db.commit()
        return True

    def first_local_account(self, exclude_id: Optional[str] = None) -> Optional[Account]:
        """
        Oldest local account (one with provider settings) other than `exclude_id`.

        Plain counterparts are never candidates, otherwise one customer's
        message could be threaded under another customer.
        """
        query = self.db.query(Account).join(
            AccountSettings, AccountSettings.id == Account.id
        )
        if exclude_id is not None:
            query = query.filter(Account.id != exclude_id)
        return query.order_by(Account.created_at.asc(), Account.id.asc()).first()

    def get_or_create_placeholder(self, account_id: str, name: str) -> Account:
        """Create the placeholder system account on first use."""
        insert = dialect_insert(self.db)
        now = datetime.now(timezone.utc)
        stmt = (
            insert(Account)
            .values(
                id=account_id,
                name=name,
                last_active=now,
                created_at=now,
                updated_at=now,
            )
            .on_conflict_do_nothing(index_elements=[Account.id])
        )
        self.db.execute(stmt)
        self.db.commit()
        return self.db.get(Account, account_id, populate_existing=True)
