"""
Per-set duplicate detection.

Historical card data is inconsistent: some rows carry the full product label
as their name, some have no number, some share numbers with variants. The
index therefore answers "already present?" permissively, on any of several
candidate keys, preferring a skipped card over a duplicated one.
"""

from collections.abc import Iterable

from catalogsync.models.catalog import Card
from catalogsync.parsers.product_label import Matched, parse_product_label


def _name_key(name: str) -> str:
    return name.strip().lower()


def _number_key(number: str) -> str:
    return number.strip().lower()


def candidate_keys(name: str, number: str) -> set[str]:
    """
    Keys a (name, number) pair is indexed and looked up under.

    "<name>::<number>", "<name>" and "<number>"; empty parts contribute
    nothing, so two unnumbered cards never collide on the number.
    """
    name_key = _name_key(name)
    number_key = _number_key(number)

    keys: set[str] = set()
    if name_key and number_key:
        keys.add(f"{name_key}::{number_key}")
    if name_key:
        keys.add(name_key)
    if number_key:
        keys.add(number_key)
    return keys


class DedupIndex:
    """O(1) membership over the candidate keys of one set's cards."""

    def __init__(self) -> None:
        self._keys: set[str] = set()

    @classmethod
    def from_cards(cls, cards: Iterable[Card]) -> "DedupIndex":
        """
        Build the index from every stored card of a set.

        Cards whose name is itself a product label (e.g. "Colossus #64")
        are also indexed under the parsed name and number.
        """
        index = cls()
        for card in cards:
            index.add(card.name, card.card_number)
            parsed = parse_product_label(card.name)
            if isinstance(parsed, Matched):
                index.add(parsed.name, parsed.number)
        return index

    def contains(self, name: str, number: str) -> bool:
        """True if ANY candidate key of (name, number) is indexed."""
        return not self._keys.isdisjoint(candidate_keys(name, number))

    def add(self, name: str, number: str) -> None:
        """Index a card just inserted so later products in the batch see it."""
        self._keys.update(candidate_keys(name, number))

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys
