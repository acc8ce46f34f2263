from .base import CommandBase
from .catalog import CatalogCommands
from .contacts import ContactCommands
from .groups import GroupCommands
from .labels import LabelCommands
from .messaging import MessagingCommands, message_key
from .newsletter import NewsletterCommands
from .profile import ProfileCommands

__all__ = [
    "CatalogCommands",
    "CommandBase",
    "ContactCommands",
    "GroupCommands",
    "LabelCommands",
    "MessagingCommands",
    "NewsletterCommands",
    "ProfileCommands",
    "message_key",
]
