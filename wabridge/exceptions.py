"""Domain errors raised by services and commands.

Routers translate these into HTTP responses; adapters never raise them and
report failures through result objects instead.
"""

from __future__ import annotations


class WabridgeError(Exception):
    """Base class for application errors."""


class RecipientValidationError(WabridgeError, ValueError):
    """Recipient address failed normalization or the 10-15 digit check."""


class CredentialsNotConfiguredError(WabridgeError):
    """The account has no usable provider credentials."""


class GroupNotFoundError(WabridgeError):
    """Group does not exist or is not owned by the caller."""


class EmptyGroupError(WabridgeError):
    """Broadcast target group has no members."""


class MessageNotFoundError(WabridgeError):
    """Referenced message does not exist or is not visible to the caller."""


class DuplicateMessageError(WabridgeError):
    """A message with this id is already stored (provider redelivery)."""
