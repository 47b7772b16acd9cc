# ==============================================================================
# DASHBOARD SERVICE
# ==============================================================================
# Live stock figures. Subscribes to the products collection once and keeps
# the totals current after every committed change, so the dashboard route
# never scans the collection itself.
# ==============================================================================

import threading
from typing import Any, Callable, Dict, List, Optional

from noble_pos.logging_config import get_logger
from noble_pos.models.entities import to_int
from noble_pos.repositories.interfaces import IProductRepository

logger = get_logger(__name__)

LOW_STOCK_THRESHOLD = 5


class DashboardService:
    """
    Live view over ProductsRegistered.

    Figures:
        total_stock: Units on hand across all products
        product_count: Registered products
        out_of_stock: Products with stock 0
        low_stock: Products with 1..LOW_STOCK_THRESHOLD units
    """

    def __init__(self, product_repo: IProductRepository):
        self.product_repo = product_repo
        self._lock = threading.Lock()
        self._start_lock = threading.Lock()
        self._figures: Dict[str, Any] = self._compute([])
        self._unsubscribe: Optional[Callable[[], None]] = None

    @staticmethod
    def _compute(products: List[Dict[str, Any]]) -> Dict[str, Any]:
        stocks = [max(0, to_int(p.get('stock'))) for p in products]
        return {
            'total_stock': sum(stocks),
            'product_count': len(stocks),
            'out_of_stock': sum(1 for s in stocks if s == 0),
            'low_stock': sum(1 for s in stocks if 0 < s <= LOW_STOCK_THRESHOLD),
        }

    def _on_snapshot(self, products: List[Dict[str, Any]]) -> None:
        figures = self._compute(products)
        with self._lock:
            self._figures = figures

    def start(self) -> None:
        """Subscribes to product changes (idempotent)."""
        with self._start_lock:
            if self._unsubscribe is None:
                self._unsubscribe = self.product_repo.watch(self._on_snapshot)
                logger.debug("Dashboard subscribed to products")

    def stop(self) -> None:
        with self._start_lock:
            if self._unsubscribe is not None:
                self._unsubscribe()
                self._unsubscribe = None

    @property
    def is_live(self) -> bool:
        return self._unsubscribe is not None

    def figures(self) -> Dict[str, Any]:
        """Current figures; starts the subscription on first use."""
        self.start()
        with self._lock:
            return dict(self._figures)
