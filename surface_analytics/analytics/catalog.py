"""
Product Catalog Index

Search results reference products by catalog SKU while click tokens carry
the public id. The index maps every known identifier of a product onto one
canonical key so impressions and clicks for the same product merge.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional


@dataclass(frozen=True)
class CatalogEntry:
    """Product attributes used by the product performance view"""
    sku: Optional[str] = None
    product_id: Optional[str] = None
    public_id: Optional[str] = None
    name: Optional[str] = None
    category: Optional[str] = None

    @property
    def key(self) -> Optional[str]:
        """Canonical key: public id, else SKU, else internal id"""
        return self.public_id or self.sku or self.product_id

    @property
    def identifiers(self) -> List[str]:
        return [i for i in (self.sku, self.product_id, self.public_id) if i]


class CatalogIndex:
    """
    Identifier resolution over a set of catalog entries.

    Unknown identifiers resolve to themselves.
    """

    def __init__(self, entries: Iterable[CatalogEntry] = ()):
        self._by_identifier: Dict[str, CatalogEntry] = {}
        self._by_key: Dict[str, CatalogEntry] = {}
        for entry in entries:
            self.add(entry)

    def add(self, entry: CatalogEntry) -> None:
        if entry.key is None:
            return
        self._by_key[entry.key] = entry
        for identifier in entry.identifiers:
            self._by_identifier.setdefault(identifier, entry)

    def resolve(self, identifier: str) -> str:
        entry = self._by_identifier.get(identifier)
        return entry.key if entry is not None else identifier

    def describe(self, key: str) -> Optional[CatalogEntry]:
        return self._by_key.get(key)

    def __len__(self) -> int:
        return len(self._by_key)

    def __contains__(self, identifier: str) -> bool:
        return identifier in self._by_identifier
