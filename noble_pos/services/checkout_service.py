# ==============================================================================
# CHECKOUT SERVICE
# ==============================================================================
# Turns a cart into a sale in ONE store transaction:
#
#   read   every product and its SoldProducts rollup
#   check  stock >= qty for every line (else abort, nothing written)
#   write  new stock, updated rollups, the Sale document
#
# Concurrent checkouts of the same product are serialised by the store's
# optimistic transactions: the loser re-reads the new stock and either
# succeeds against it or fails with "Insufficient stock".
# ==============================================================================

import time
from collections import OrderedDict
from dataclasses import replace
from typing import Any, Dict, List, Optional

from noble_pos.errors import CheckoutError, StoreError, TransactionConflict
from noble_pos.logging_config import get_logger
from noble_pos.models.entities import (
    PRODUCTS,
    SALES,
    SOLD_PRODUCTS,
    CartLine,
    Customer,
    Sale,
    SaleItem,
    to_int,
    to_number,
    to_text,
)
from noble_pos.performance_logger import profile_function
from noble_pos.repositories.document_store import SERVER_TIMESTAMP
from noble_pos.repositories.interfaces import IDocumentStore
from noble_pos.services.inventory_service import rollup_after_sale
from noble_pos.services.payment_service import PaymentService

logger = get_logger(__name__)


def compute_totals(lines: List[CartLine], discount_percent: float = 0) -> Dict[str, float]:
    """
    Subtotal, discount and total of a cart.

    Args:
        lines: Cart lines
        discount_percent: Percentage in [0, 100] taken off the subtotal
    """
    subtotal = round(sum(line.price * line.qty for line in lines), 2)
    discount = round(subtotal * discount_percent / 100, 2)
    return {'subtotal': subtotal, 'discount': discount, 'total': round(subtotal - discount, 2)}


def _merge_lines(cart_lines: List[Any]) -> List[CartLine]:
    """Normalises cart input and folds repeated products into one line."""
    merged: 'OrderedDict[str, CartLine]' = OrderedDict()
    for raw in cart_lines:
        line = raw if isinstance(raw, CartLine) else CartLine.from_dict(raw)
        if line.qty <= 0:
            continue
        if line.id in merged:
            merged[line.id].qty += line.qty
        else:
            merged[line.id] = replace(line)
    return list(merged.values())


class CheckoutService:
    """
    Service for completing sales.

    Returns result dicts; the caller clears the session cart on success.
    """

    def __init__(self, store: IDocumentStore, payment_service: PaymentService):
        self.store = store
        self.payment_service = payment_service

    @profile_function(name='checkout')
    def checkout(
        self,
        cart_lines: List[Any],
        customer: Optional[Dict[str, Any]] = None,
        note: str = '',
        payment_input: Optional[Dict[str, Any]] = None,
        discount_percent: Any = 0,
    ) -> Dict[str, Any]:
        """
        Completes a sale.

        Args:
            cart_lines: CartLine objects or their dicts
            customer: {'name', 'phone', 'email'} (all optional)
            note: Free text stored on the sale
            payment_input: {'method', 'reference', 'cash_received'}
            discount_percent: Percentage taken off the subtotal

        Returns:
            {'ok': True, 'sale_id', 'total', 'change'} or {'ok': False, 'error'}
        """
        lines = _merge_lines(cart_lines or [])
        if not lines:
            return {'ok': False, 'error': 'Cart is empty'}

        pct = to_number(discount_percent, default=-1.0) if discount_percent not in (None, '') else 0.0
        if pct != pct or pct < 0 or pct > 100:
            return {'ok': False, 'error': 'Discount must be between 0 and 100 percent.'}

        if customer is not None and not isinstance(customer, dict):
            return {'ok': False, 'error': 'Invalid customer details.'}
        if payment_input is not None and not isinstance(payment_input, dict):
            return {'ok': False, 'error': 'Invalid payment details.'}

        totals = compute_totals(lines, pct)
        payment_input = payment_input or {}
        method = payment_input.get('method') or 'Cash'
        reference = payment_input.get('reference')
        cash_received = payment_input.get('cash_received')

        check = self.payment_service.validate(method, totals['total'], reference, cash_received)
        if not check['ok']:
            return check
        payment = self.payment_service.build_payment(method, totals['total'], reference, cash_received)

        customer_obj = Customer.from_dict(customer)
        note = to_text(note)

        def commit(tx):
            products = [tx.get(PRODUCTS, line.id) for line in lines]
            rollups = [tx.get(SOLD_PRODUCTS, line.id) for line in lines]

            # Sale ids are millisecond timestamps; step past any id already taken
            ms = int(time.time() * 1000)
            while tx.get(SALES, f"SALE-{ms}") is not None:
                ms += 1
            sale_id = f"SALE-{ms}"

            new_stock = []
            for line, product in zip(lines, products):
                if product is None:
                    raise CheckoutError(f"Item missing: {line.name}")
                current = to_int(product.get('stock'))
                if current < line.qty:
                    raise CheckoutError(f"Insufficient stock for {line.name}")
                new_stock.append(current - line.qty)

            for line, product, previous, stock in zip(lines, products, rollups, new_stock):
                tx.update(PRODUCTS, line.id, {'stock': stock})
                tx.set(SOLD_PRODUCTS, line.id, rollup_after_sale(dict(product, price=line.price), previous, line.qty))

            sale = Sale(
                sale_id=sale_id,
                created_at=SERVER_TIMESTAMP,
                customer=customer_obj,
                note=note,
                items=[SaleItem(id=l.id, name=l.name, barcode=l.barcode, price=l.price, qty=l.qty) for l in lines],
                subtotal=totals['subtotal'],
                discount=totals['discount'],
                discount_percent=pct,
                total=totals['total'],
                payment=payment,
            )
            tx.set(SALES, sale_id, sale.to_dict())
            return sale_id

        try:
            sale_id = self.store.run_transaction(commit)
        except CheckoutError as e:
            logger.info("Checkout rejected", extra={'reason': str(e)})
            return {'ok': False, 'error': str(e)}
        except TransactionConflict:
            logger.warning("Checkout gave up after repeated conflicts", extra={'lines': len(lines)})
            return {'ok': False, 'error': 'Checkout failed, please try again.'}
        except StoreError as e:
            logger.error("Checkout failed", extra={'error': str(e)})
            return {'ok': False, 'error': 'Checkout failed'}

        logger.info(
            "Sale completed",
            extra={'sale_id': sale_id, 'total': totals['total'], 'method': payment.method,
                   'items': sum(l.qty for l in lines)},
        )
        return {'ok': True, 'sale_id': sale_id, 'total': totals['total'], 'change': payment.change}
