from .entry_store import EntryStore
from .events import ChangeNotifier, EntryChange
from .journal import JournalService
from .search import SearchPage, search_entries

__all__ = ["EntryStore", "ChangeNotifier", "EntryChange", "JournalService", "SearchPage", "search_entries"]
