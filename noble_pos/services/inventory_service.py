# ==============================================================================
# INVENTORY SERVICE
# ==============================================================================
# Product registration, editing, deletion and the single unit "mark as sold"
# shortcut. All stock decrements go through store transactions.
# ==============================================================================

import math
import threading
from typing import Any, Dict, List, Optional

from noble_pos.errors import CheckoutError, DocumentNotFound, StoreError
from noble_pos.logging_config import get_logger
from noble_pos.models.entities import PRODUCTS, SOLD_PRODUCTS, Product, to_int, to_number
from noble_pos.repositories.document_store import SERVER_TIMESTAMP
from noble_pos.repositories.interfaces import (
    IDocumentStore,
    IProductRepository,
    ISoldProductRepository,
)

logger = get_logger(__name__)

# Fields accepted from the registration / edit forms
EDITABLE_FIELDS = ('barcode', 'name', 'description', 'size', 'gender', 'category', 'price', 'stock')


def product_doc_id(barcode: str, name: str) -> str:
    """Document id for a product; '/' is not allowed in store ids."""
    return f"{barcode}_{name}".replace('/', '-')


def rollup_after_sale(product: Dict[str, Any], previous: Optional[Dict[str, Any]], qty: int) -> Dict[str, Any]:
    """
    Sold product rollup after selling qty units of product.

    Revenue accumulates at the price of each sale, so a price change does
    not rewrite the revenue of earlier sales.
    """
    price = to_number(product.get('price'))
    units = to_int((previous or {}).get('units_sold')) + qty
    revenue = to_number((previous or {}).get('total_revenue')) + qty * price
    return {
        'barcode': product.get('barcode', ''),
        'name': product.get('name', ''),
        'category': product.get('category', ''),
        'size': product.get('size', ''),
        'gender': product.get('gender', ''),
        'price': price,
        'units_sold': units,
        'total_revenue': round(revenue, 2),
        'last_sold_at': SERVER_TIMESTAMP,
    }


class InventoryService:
    """
    Service for the product catalogue.

    Responsibilities:
    - Validate and coerce product form input
    - Enforce barcode uniqueness
    - Keep the SoldProducts rollup in step with deletions and single sales
    """

    # Held from a barcode uniqueness check until the write it guards
    _catalogue_lock = threading.Lock()

    def __init__(
        self,
        store: IDocumentStore,
        product_repo: IProductRepository,
        sold_repo: ISoldProductRepository,
    ):
        self.store = store
        self.product_repo = product_repo
        self.sold_repo = sold_repo

    # =========================================================================
    # QUERIES
    # =========================================================================

    def list_products(self, search: Optional[str] = None) -> List[Dict[str, Any]]:
        """
        Products newest first, optionally filtered.

        Args:
            search: Case-insensitive text matched against name, barcode,
                    category and gender
        """
        products = self.product_repo.list()
        term = (search or '').strip().lower()
        if not term:
            return products
        return [
            p for p in products
            if any(term in str(p.get(f) or '').lower() for f in ('name', 'barcode', 'category', 'gender'))
        ]

    def get_product(self, product_id: str) -> Optional[Dict[str, Any]]:
        return self.product_repo.get(product_id)

    def find_by_barcode(self, code: str) -> Optional[Dict[str, Any]]:
        return self.product_repo.find_by_barcode(code)

    def total_stock(self) -> int:
        return sum(max(0, to_int(p.get('stock'))) for p in self.product_repo.list())

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def _validate(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Validates and coerces form input.

        Returns:
            {'ok': True, 'data': {...}} or {'ok': False, 'error'}
        """
        data = {k: fields.get(k) for k in EDITABLE_FIELDS}
        for key in ('barcode', 'name', 'description', 'size', 'gender', 'category'):
            data[key] = str(data[key] if data[key] is not None else '').strip()

        if not data['barcode'] or not data['name'] or not data['size']:
            return {'ok': False, 'error': 'Barcode, name and size are required.'}

        try:
            price = float(str(data['price']).replace(',', ''))
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Price must be a number.'}
        if not math.isfinite(price) or price < 0:
            return {'ok': False, 'error': 'Price must be a number.'}

        try:
            stock_value = float(str(data['stock']).replace(',', ''))
        except (TypeError, ValueError):
            return {'ok': False, 'error': 'Stock must be a whole number of 0 or more.'}
        if not math.isfinite(stock_value) or stock_value < 0 or stock_value != int(stock_value):
            return {'ok': False, 'error': 'Stock must be a whole number of 0 or more.'}

        data['price'] = price
        data['stock'] = int(stock_value)
        return {'ok': True, 'data': data}

    # =========================================================================
    # MUTATIONS
    # =========================================================================

    def register_product(self, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Registers a new product.

        Returns:
            {'ok': True, 'product'} or {'ok': False, 'error'}
        """
        result = self._validate(fields)
        if not result['ok']:
            return result
        data = result['data']

        product_id = product_doc_id(data['barcode'], data['name'])
        data['createdAt'] = SERVER_TIMESTAMP
        data['sold'] = False

        with self._catalogue_lock:
            if self.product_repo.find_by_barcode(data['barcode']) or self.product_repo.get(product_id):
                return {'ok': False, 'error': 'Product already registered.'}
            self.product_repo.create(product_id, data)
        logger.info("Product registered", extra={'product_id': product_id, 'stock': data['stock']})
        return {'ok': True, 'product': self.product_repo.get(product_id)}

    def update_product(self, product_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        """
        Updates a product in place (the document id does not change).

        Returns:
            {'ok': True, 'product'} or {'ok': False, 'error'}
        """
        existing = self.product_repo.get(product_id)
        if not existing:
            return {'ok': False, 'error': 'Product not found'}

        merged = {k: fields.get(k, existing.get(k)) for k in EDITABLE_FIELDS}
        result = self._validate(merged)
        if not result['ok']:
            return result
        data = result['data']

        if data['stock'] > 0:
            data['sold'] = False

        with self._catalogue_lock:
            clash = self.product_repo.find_by_barcode(data['barcode'])
            if clash and clash['id'] != product_id:
                return {'ok': False, 'error': 'Another product already uses this barcode.'}
            try:
                self.product_repo.update(product_id, data)
            except DocumentNotFound:
                return {'ok': False, 'error': 'Product not found'}
        logger.info("Product updated", extra={'product_id': product_id})
        return {'ok': True, 'product': self.product_repo.get(product_id)}

    def delete_product(self, product_id: str) -> Dict[str, Any]:
        """Deletes a product together with its sales rollup."""
        if not self.product_repo.get(product_id):
            return {'ok': False, 'error': 'Product not found'}
        self.product_repo.delete(product_id)
        self.sold_repo.delete(product_id)
        logger.info("Product deleted", extra={'product_id': product_id})
        return {'ok': True}

    def mark_as_sold(self, product_id: str) -> Dict[str, Any]:
        """
        Sells exactly one unit outside the POS cart.

        Stock, the 'sold' flag and the rollup change in one transaction.

        Returns:
            {'ok': True, 'stock': new_stock} or {'ok': False, 'error'}
        """
        def sell_one(tx):
            product = tx.get(PRODUCTS, product_id)
            previous = tx.get(SOLD_PRODUCTS, product_id)
            if product is None:
                raise CheckoutError('Product not found')
            stock = to_int(product.get('stock'))
            if stock <= 0:
                raise CheckoutError('Product is out of stock.')
            new_stock = stock - 1
            tx.update(PRODUCTS, product_id, {'stock': new_stock, 'sold': new_stock == 0})
            tx.set(SOLD_PRODUCTS, product_id, rollup_after_sale(product, previous, 1))
            return new_stock

        try:
            new_stock = self.store.run_transaction(sell_one)
        except CheckoutError as e:
            return {'ok': False, 'error': str(e)}
        except StoreError as e:
            logger.error("Mark as sold failed", extra={'product_id': product_id, 'error': str(e)})
            return {'ok': False, 'error': 'Failed to mark product as sold'}

        logger.info("Product marked as sold", extra={'product_id': product_id, 'stock': new_stock})
        return {'ok': True, 'stock': new_stock}
