# ==============================================================================
# SERVICE LAYER - Business logic
# ==============================================================================
# Routes only orchestrate request -> service -> response; every rule lives
# here. Services depend on repository interfaces, never on storage details.
# ==============================================================================

from .auth_service import AuthService
from .inventory_service import InventoryService
from .cart_service import CartService
from .payment_service import PaymentService
from .checkout_service import CheckoutService
from .sales_service import SalesService
from .report_service import ReportService
from .invoice_service import InvoiceService
from .dashboard_service import DashboardService

__all__ = [
    'AuthService',
    'InventoryService',
    'CartService',
    'PaymentService',
    'CheckoutService',
    'SalesService',
    'ReportService',
    'InvoiceService',
    'DashboardService',
]
