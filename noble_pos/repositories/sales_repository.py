# ==============================================================================
# SALES REPOSITORY
# ==============================================================================
# Access to the Sales collection. Document id == sale_id ("SALE-<epoch ms>").
# New sales are only written by the checkout transaction.
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional

from noble_pos.models.entities import SALES
from noble_pos.repositories.interfaces import IDocumentStore


class SalesRepository:
    """
    Repository for completed sales.

    Stored shape:
    {
        "sale_id": "SALE-1714557600000",
        "created_at": "2024-05-01T10:00:00+00:00",
        "customer": {"name": "...", "phone": "..."},
        "items": [{"id": "...", "name": "...", "price": 999.0, "qty": 1}],
        "subtotal": 999.0, "discount": 0, "total": 999.0,
        "payment": {"method": "Cash", "amount_received": 1000.0, "change": 1.0, ...}
    }
    """

    ORDER_FIELD = 'created_at'

    def __init__(self, store: IDocumentStore):
        self.store = store

    def list(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        return self.store.query(SALES, order_by=self.ORDER_FIELD, descending=True, limit=limit)

    def get(self, sale_id: str) -> Optional[Dict[str, Any]]:
        return self.store.get(SALES, sale_id)

    def update(self, sale_id: str, fields: Dict[str, Any]) -> None:
        self.store.update(SALES, sale_id, fields)

    def delete(self, sale_id: str) -> None:
        self.store.delete(SALES, sale_id)

    def watch(self, callback: Callable[[List[Dict[str, Any]]], None]) -> Callable[[], None]:
        return self.store.subscribe(SALES, callback, order_by=self.ORDER_FIELD, descending=True)
