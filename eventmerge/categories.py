"""
Category -> subcategory whitelist.

Merged records only keep subcategories that are valid for their resolved
category. The default table can be replaced by a [categories] section in
config.toml, e.g.

    [categories]
    music = ["Jazz & Blues", "World Music"]
"""

from collections.abc import Mapping
from typing import Iterable, Iterator

DEFAULT_CATEGORIES: dict[str, list[str]] = {
    "music": [
        "Rock & Alternative",
        "Pop & Electronic",
        "Hip Hop & R&B",
        "Jazz & Blues",
        "Classical & Orchestra",
        "Country & Folk",
        "Metal & Punk",
        "World Music",
    ],
    "theatre": [
        "Musicals",
        "Drama",
        "Comedy Shows",
        "Ballet & Dance",
        "Opera",
        "Cabaret",
        "Shakespeare",
        "Experimental",
    ],
    "sports": [
        "AFL",
        "Cricket",
        "Soccer",
        "Basketball",
        "Tennis",
        "Rugby",
        "Motorsports",
        "Other Sports",
    ],
    "arts": [
        "Comedy Festival",
        "Film & Cinema",
        "Art Exhibitions",
        "Literary Events",
        "Cultural Festivals",
        "Markets & Fairs",
    ],
    "family": [
        "Kids Shows",
        "Family Entertainment",
        "Educational",
        "Circus & Magic",
    ],
    "other": [
        "Workshops",
        "Networking",
        "Wellness",
        "Community Events",
    ],
}


class CategoryWhitelist(Mapping):
    """Read-only mapping of category value to its allowed subcategories."""

    def __init__(self, table: Mapping[str, Iterable[str]]):
        self._table = {key: tuple(subs) for key, subs in table.items()}

    def __getitem__(self, category: str) -> tuple[str, ...]:
        return self._table[category]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def subcategories(self, category: str) -> tuple[str, ...]:
        return self._table.get(category, ())

    def is_valid(self, category: str, subcategory: str) -> bool:
        return subcategory in self.subcategories(category)


DEFAULT_WHITELIST = CategoryWhitelist(DEFAULT_CATEGORIES)
