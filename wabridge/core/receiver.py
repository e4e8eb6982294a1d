"""
Receiver resolution for inbound messages.

An inbound webhook names the counterpart but not which local account it was
sent to. The policy for picking that account is a strategy so multi-account
deployments can swap it without touching the webhook command.
"""

from __future__ import annotations

from typing import Optional, Protocol

from wabridge.infra.logging_config import get_logger

logger = get_logger("receiver")

SYSTEM_ACCOUNT_NAME = "System"


class ReceiverResolver(Protocol):
    def resolve(self, counterpart_id: str) -> str:
        """Return the local account id that received a message from counterpart_id."""
        ...


class AccountDirectory(Protocol):
    def first_local_account(self, exclude_id: Optional[str] = None): ...

    def get_or_create_placeholder(self, account_id: str, name: str): ...


class DefaultReceiverResolver:
    """
    Precedence: configured business owner, then the oldest other local
    account, then a placeholder system account created on demand.
    """

    def __init__(
        self,
        directory: AccountDirectory,
        business_owner_id: Optional[str] = None,
        system_account_id: str = "system",
    ) -> None:
        self._directory = directory
        self._business_owner_id = business_owner_id
        self._system_account_id = system_account_id

    def resolve(self, counterpart_id: str) -> str:
        if self._business_owner_id:
            return self._business_owner_id
        account = self._directory.first_local_account(exclude_id=counterpart_id)
        if account is not None:
            return account.id
        logger.warning(
            "No local account found for message from %s; using placeholder %s",
            counterpart_id,
            self._system_account_id,
        )
        placeholder = self._directory.get_or_create_placeholder(
            self._system_account_id, SYSTEM_ACCOUNT_NAME
        )
        return placeholder.id
