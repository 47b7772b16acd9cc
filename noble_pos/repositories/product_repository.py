# ==============================================================================
# PRODUCT REPOSITORY
# ==============================================================================
# Access to the ProductsRegistered collection.
# Document id: "<barcode>_<name>"
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional

from noble_pos.models.entities import PRODUCTS
from noble_pos.repositories.interfaces import IDocumentStore


class ProductRepository:
    """
    Repository for registered products.

    Stored shape:
    {
        "barcode": "8901234567890",
        "name": "Runner",
        "size": "9",
        "price": 1499.0,
        "stock": 12,
        "createdAt": "2024-05-01T10:00:00+00:00",
        ...
    }
    """

    ORDER_FIELD = 'createdAt'

    def __init__(self, store: IDocumentStore):
        self.store = store

    def list(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.store.query(PRODUCTS, order_by=self.ORDER_FIELD, descending=True, limit=limit)

    def get(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(PRODUCTS, product_id)

    def find_by_barcode(self, barcode: str) -> Optional[Dict[str, Any]]:
        """
        Finds a product by barcode.

        Barcodes may have been stored as numbers by older clients, so both
        sides are compared as trimmed strings.
        """
        code = str(barcode).strip()
        if not code:
            return None
        for product in self.store.query(PRODUCTS):
            if str(product.get('barcode', '')).strip() == code:
                return product
        return None

    def create(self, product_id: str, data: Dict[str, Any]) -> None:
        self.store.set(PRODUCTS, product_id, data)

    def update(self, product_id: str, fields: Dict[str, Any]) -> None:
        self.store.update(PRODUCTS, product_id, fields)

    def delete(self, product_id: str) -> None:
        self.store.delete(PRODUCTS, product_id)

    def watch(self, callback: Callable[[List[Dict[str, Any]]], None]) -> Callable[[], None]:
        """Live query over all products, newest first."""
        return self.store.subscribe(PRODUCTS, callback, order_by=self.ORDER_FIELD, descending=True)
