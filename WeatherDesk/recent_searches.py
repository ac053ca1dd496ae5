"""Bounded most-recent-first list of successful searches."""
from typing import List
from weather_data import RecentSearchEntry


class RecentSearches:
    """
    Keeps the last few distinct cities searched.

    Entries are deduplicated by city name (case-insensitive): searching a
    city again moves it to the front instead of adding a second entry.
    """

    def __init__(self, max_entries: int = 4):
        if max_entries < 1:
            raise ValueError("max_entries must be at least 1")
        self.max_entries = max_entries
        self._entries: List[RecentSearchEntry] = []

    def add(self, entry: RecentSearchEntry) -> None:
        key = entry.city.casefold()
        self._entries = [e for e in self._entries if e.city.casefold() != key]
        self._entries.insert(0, entry)
        del self._entries[self.max_entries:]

    def entries(self) -> List[RecentSearchEntry]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
