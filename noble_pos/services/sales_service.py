# ==============================================================================
# SALES SERVICE
# ==============================================================================
# Administration of completed sales: listing, correcting and deleting.
# Deleting a sale does not put its units back into stock.
# ==============================================================================

from typing import Any, Dict, List, Optional

from noble_pos.errors import DocumentNotFound
from noble_pos.logging_config import get_logger
from noble_pos.models.entities import to_number, to_text
from noble_pos.repositories.interfaces import ISalesRepository

logger = get_logger(__name__)


class SalesService:

    def __init__(self, sales_repo: ISalesRepository):
        self.sales_repo = sales_repo

    def list_sales(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Sales newest first."""
        return self.sales_repo.list(limit=limit)

    def get_sale(self, sale_id: str) -> Optional[Dict[str, Any]]:
        return self.sales_repo.get(sale_id)

    def edit_sale(
        self,
        sale_id: str,
        customer_name: str = '',
        customer_phone: str = '',
        total: Any = 0,
        payment_method: str = '',
        payment_reference: str = '',
    ) -> Dict[str, Any]:
        """
        Corrects the customer, total and payment details of a sale.

        Items and stock are untouched. Payment fields other than method and
        reference (amount received, change, paid_at) are kept.

        Returns:
            {'ok': True, 'sale'} or {'ok': False, 'error'}
        """
        sale = self.sales_repo.get(sale_id)
        if not sale:
            return {'ok': False, 'error': 'Sale not found'}

        customer = dict(sale.get('customer') or {})
        customer['name'] = to_text(customer_name)
        customer['phone'] = to_text(customer_phone)

        payment = dict(sale.get('payment') or {})
        payment['method'] = to_text(payment_method)
        payment['reference'] = to_text(payment_reference) or None

        try:
            self.sales_repo.update(sale_id, {
                'customer': customer,
                'total': to_number(total),
                'payment': payment,
            })
        except DocumentNotFound:
            return {'ok': False, 'error': 'Sale not found'}

        logger.info("Sale edited", extra={'sale_id': sale_id, 'total': to_number(total)})
        return {'ok': True, 'sale': self.sales_repo.get(sale_id)}

    def delete_sale(self, sale_id: str) -> Dict[str, Any]:
        if not self.sales_repo.get(sale_id):
            return {'ok': False, 'error': 'Sale not found'}
        self.sales_repo.delete(sale_id)
        logger.info("Sale deleted", extra={'sale_id': sale_id})
        return {'ok': True}
