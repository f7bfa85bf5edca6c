from .user import User
from .journal_entry import JournalEntry

__all__ = [
    "User",
    "JournalEntry",
]
