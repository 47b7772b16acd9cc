# ==============================================================================
# SOLD PRODUCT REPOSITORY
# ==============================================================================
# Access to the SoldProducts rollups (one document per product id).
# Rollups are written by the checkout transaction; this repository only
# reads and deletes them.
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional

from noble_pos.models.entities import SOLD_PRODUCTS
from noble_pos.repositories.interfaces import IDocumentStore


class SoldProductRepository:

    def __init__(self, store: IDocumentStore):
        self.store = store

    def list(self) -> List[Dict[str, Any]]:
        return self.store.query(SOLD_PRODUCTS)

    def get(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(SOLD_PRODUCTS, product_id)

    def delete(self, product_id: str) -> None:
        self.store.delete(SOLD_PRODUCTS, product_id)

    def watch(self, callback: Callable[[List[Dict[str, Any]]], None]) -> Callable[[], None]:
        return self.store.subscribe(SOLD_PRODUCTS, callback)
