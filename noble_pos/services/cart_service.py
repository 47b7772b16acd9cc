# ==============================================================================
# CART SERVICE
# ==============================================================================
# Point of sale cart, stored in the Flask session under session['cart'].
# One line per product; quantities are always kept within [1, stock].
# ==============================================================================

from typing import Any, Dict, List

from flask import session

from noble_pos.models.entities import CartLine, Product
from noble_pos.services.inventory_service import InventoryService


class CartService:
    """
    Service for the session cart.

    Responsibilities:
    - Add products (merging with an existing line)
    - Clamp quantities to the stock seen when the product was added
    - Barcode scanning
    - Totals
    """

    SESSION_KEY = 'cart'

    def __init__(self, inventory_service: InventoryService):
        self.inventory_service = inventory_service

    def _get_cart(self) -> List[Dict[str, Any]]:
        return session.get(self.SESSION_KEY, [])

    def _save_cart(self, cart: List[Dict[str, Any]]) -> None:
        session[self.SESSION_KEY] = cart
        session.modified = True

    def lines(self) -> List[CartLine]:
        return [CartLine.from_dict(item) for item in self._get_cart()]

    def summary(self) -> Dict[str, Any]:
        """
        Returns:
            Dict with items, item_count (units) and total
        """
        lines = self.lines()
        return {
            'items': [line.to_dict() for line in lines],
            'item_count': sum(line.qty for line in lines),
            'total': round(sum(line.amount for line in lines), 2),
        }

    def add(self, product: Dict[str, Any], qty: int = 1) -> Dict[str, Any]:
        """
        Adds qty units of a product.

        The resulting line quantity never exceeds the product stock; products
        without stock are ignored.

        Args:
            product: Product snapshot (with 'id')
            qty: Units to add

        Returns:
            {'ok': True, 'cart'} (also when nothing was added)
        """
        item = Product.from_dict(product)
        cart = self._get_cart()

        existing = next((line for line in cart if line.get('id') == item.id), None)
        current = existing['qty'] if existing else 0
        wanted = max(0, min(item.stock, current + int(qty)))
        if wanted <= 0:
            return {'ok': True, 'cart': self.summary()}

        if existing:
            existing['qty'] = wanted
            existing['stock'] = item.stock
        else:
            cart.append(CartLine.from_product(item, wanted).to_dict())

        self._save_cart(cart)
        return {'ok': True, 'cart': self.summary()}

    def add_by_id(self, product_id: str, qty: int = 1) -> Dict[str, Any]:
        product = self.inventory_service.get_product(product_id)
        if not product:
            return {'ok': False, 'error': 'Product not found'}
        return self.add(product, qty)

    def update_qty(self, product_id: str, qty: int) -> Dict[str, Any]:
        """Sets a line quantity, clamped to [0, stock]; 0 removes the line."""
        cart = []
        for line in self._get_cart():
            if line.get('id') == product_id:
                line = dict(line, qty=max(0, min(int(line.get('stock', 0)), int(qty))))
            if line['qty'] > 0:
                cart.append(line)
        self._save_cart(cart)
        return {'ok': True, 'cart': self.summary()}

    def remove(self, product_id: str) -> Dict[str, Any]:
        self._save_cart([line for line in self._get_cart() if line.get('id') != product_id])
        return {'ok': True, 'cart': self.summary()}

    def clear(self) -> None:
        self._save_cart([])

    def scan(self, code: str) -> Dict[str, Any]:
        """Adds one unit of the product with this barcode."""
        code = str(code or '').strip()
        product = self.inventory_service.find_by_barcode(code)
        if not product:
            return {'ok': False, 'error': f'No product found for barcode {code}'}
        return self.add(product, 1)
