from wabridge.models.account import Account
from wabridge.models.account_settings import AccountSettings
from wabridge.models.group import ChatGroup, GroupMember
from wabridge.models.message import Message

__all__ = [
    "Account",
    "AccountSettings",
    "ChatGroup",
    "GroupMember",
    "Message",
]
