# ==============================================================================
# REPORT SERVICE
# ==============================================================================
# Reducers over sales, rollups and products for the report screen:
# range filter, totals, analytics, CSV export and the paginated detail views
# (orders, revenue, sold products, stock).
# ==============================================================================

import csv
import io
import math
from collections import OrderedDict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Dict, List, Optional

from noble_pos.logging_config import get_logger
from noble_pos.models.entities import to_int, to_number
from noble_pos.performance_logger import profile_function
from noble_pos.repositories.interfaces import (
    IProductRepository,
    ISalesRepository,
    ISoldProductRepository,
)

logger = get_logger(__name__)

PAGE_SIZE = 10
RANGES = (7, 30, 90)
MAX_RANGE_DAYS = 3650
STOCK_FIELDS = ('stock', 'qty', 'quantity', 'units', 'stock_qty', 'total_stock', 'available', 'stocks')
CSV_COLUMNS = ['sale_id', 'date', 'customer_name', 'phone', 'items', 'total', 'payment_method', 'payment_reference']


# ==============================================================================
# HELPERS
# ==============================================================================

def range_days(value: Any, default: int = 30) -> int:
    """Report range in days, within 1..MAX_RANGE_DAYS; default when missing or invalid."""
    days = to_int(value, default)
    if days <= 0:
        return default
    return min(days, MAX_RANGE_DAYS)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Stored timestamp (ISO-8601 text) to an aware UTC datetime, or None."""
    if not value:
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
        except ValueError:
            return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _parse_day(value: Any) -> Optional[date]:
    if not value:
        return None
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def sale_time(sale: Dict[str, Any], now: Optional[datetime] = None) -> datetime:
    """Commit time of a sale; sales still awaiting their timestamp count as now."""
    return parse_timestamp(sale.get('created_at')) or now or datetime.now(timezone.utc)


def parse_stock(product: Dict[str, Any]) -> float:
    """
    Stock of a product document.

    Older documents used other field names; the first one present wins.
    Commas are ignored, anything non-numeric counts as 0, negatives as 0.
    """
    value = None
    for key in STOCK_FIELDS:
        if product.get(key) is not None:
            value = product[key]
            break
    if value is None:
        return 0
    try:
        number = float(str(value).replace(',', ''))
    except ValueError:
        return 0
    if not math.isfinite(number):
        return 0
    number = max(0.0, number)
    return int(number) if number == int(number) else number


def paginate(rows: List[Any], page: Any = 1, page_size: int = PAGE_SIZE) -> Dict[str, Any]:
    """
    Slices rows into a page.

    Returns:
        Dict with items, page, total_pages and count; a page outside
        [1, total_pages] falls back to 1
    """
    total_pages = max(1, math.ceil(len(rows) / page_size))
    page = to_int(page, 1)
    if page < 1 or page > total_pages:
        page = 1
    start = (page - 1) * page_size
    return {
        'items': rows[start:start + page_size],
        'page': page,
        'total_pages': total_pages,
        'count': len(rows),
    }


def _matches(term: str, values: List[Any]) -> bool:
    return any(term in str(v).lower() for v in values if v)


# ==============================================================================
# SERVICE
# ==============================================================================

class ReportService:
    """
    Service for sales reporting.

    The pure reducers (filter_by_range, totals, analytics, export_csv) take
    sales lists; the detail views read the repositories themselves.
    """

    def __init__(
        self,
        sales_repo: ISalesRepository,
        sold_repo: ISoldProductRepository,
        product_repo: IProductRepository,
    ):
        self.sales_repo = sales_repo
        self.sold_repo = sold_repo
        self.product_repo = product_repo

    # =========================================================================
    # REDUCERS
    # =========================================================================

    @staticmethod
    def filter_by_range(sales: List[Dict[str, Any]], days: int, now: Optional[datetime] = None) -> List[Dict[str, Any]]:
        """Sales committed within the last `days` days."""
        now = now or datetime.now(timezone.utc)
        since = now - timedelta(days=range_days(days))
        return [s for s in sales if sale_time(s, now) >= since]

    @staticmethod
    def totals(sales: List[Dict[str, Any]]) -> Dict[str, Any]:
        return {
            'orders': len(sales),
            'revenue': round(sum(to_number(s.get('total')) for s in sales), 2),
            'items': sum(to_int(i.get('qty')) for s in sales for i in (s.get('items') or [])),
        }

    @staticmethod
    def analytics(sales: List[Dict[str, Any]], now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Per-day series, best sellers and payment method breakdown.

        Returns:
            Dict with orders_by_day, revenue_by_day, top_products,
            payment_methods, average_order_value, total_savings
        """
        if not sales:
            return {
                'orders_by_day': [],
                'revenue_by_day': [],
                'top_products': [],
                'payment_methods': [],
                'average_order_value': 0,
                'total_savings': 0,
            }

        orders_by_day: Dict[str, int] = OrderedDict()
        revenue_by_day: Dict[str, float] = OrderedDict()
        products: Dict[str, Dict[str, float]] = {}
        methods: Dict[str, Dict[str, float]] = OrderedDict()
        savings = 0.0

        for sale in sales:
            day = sale_time(sale, now).date().isoformat()
            total = to_number(sale.get('total'))
            orders_by_day[day] = orders_by_day.get(day, 0) + 1
            revenue_by_day[day] = revenue_by_day.get(day, 0.0) + total

            for item in sale.get('items') or []:
                entry = products.setdefault(item.get('name', ''), {'qty': 0, 'revenue': 0.0})
                qty = to_int(item.get('qty'))
                entry['qty'] += qty
                entry['revenue'] += to_number(item.get('price')) * qty

            method = (sale.get('payment') or {}).get('method') or 'Unknown'
            stats = methods.setdefault(method, {'count': 0, 'amount': 0.0})
            stats['count'] += 1
            stats['amount'] += total

            savings += to_number(sale.get('discount'))

        top = sorted(
            ({'name': name, 'qty': v['qty'], 'revenue': round(v['revenue'], 2)} for name, v in products.items()),
            key=lambda p: p['qty'],
            reverse=True,
        )[:10]
        revenue = sum(revenue_by_day.values())

        return {
            'orders_by_day': [{'date': d, 'count': c} for d, c in sorted(orders_by_day.items())],
            'revenue_by_day': [{'date': d, 'amount': round(a, 2)} for d, a in sorted(revenue_by_day.items())],
            'top_products': top,
            'payment_methods': [
                {'method': m, 'count': v['count'], 'amount': round(v['amount'], 2)} for m, v in methods.items()
            ],
            'average_order_value': round(revenue / len(sales), 2),
            'total_savings': round(savings, 2),
        }

    @profile_function(name='report_summary')
    def summary(self, days: int = 30) -> Dict[str, Any]:
        """Totals and analytics over the last `days` days."""
        days = range_days(days)
        sales = self.filter_by_range(self.sales_repo.list(), days)
        return {'days': days, 'totals': self.totals(sales), 'analytics': self.analytics(sales)}

    # =========================================================================
    # CSV EXPORT
    # =========================================================================

    @staticmethod
    def export_filename(days: int, today: Optional[date] = None) -> str:
        today = today or datetime.now(timezone.utc).date()
        return f"sales_report_{range_days(days)}days_{today.isoformat()}.csv"

    @staticmethod
    def export_csv(sales: List[Dict[str, Any]]) -> str:
        """
        Renders sales as CSV text.

        Returns:
            CSV with a header row and one row per sale
        """
        output = io.StringIO()
        writer = csv.writer(output, lineterminator='\n')
        writer.writerow(CSV_COLUMNS)
        for sale in sales:
            customer = sale.get('customer') or {}
            payment = sale.get('payment') or {}
            created = parse_timestamp(sale.get('created_at'))
            writer.writerow([
                sale.get('sale_id') or sale.get('id', ''),
                created.isoformat() if created else '',
                customer.get('name') or '',
                customer.get('phone') or '',
                '; '.join(f"{i.get('name', '')} x{to_int(i.get('qty'))}" for i in sale.get('items') or []),
                sale.get('total', 0),
                payment.get('method') or '',
                payment.get('reference') or '',
            ])
        return output.getvalue()

    # =========================================================================
    # DETAIL VIEWS
    # =========================================================================

    @profile_function(name='report_orders')
    def orders_view(self, search: str = '', page: Any = 1) -> Dict[str, Any]:
        """Every order, newest first, searchable by id and customer details."""
        term = (search or '').strip().lower()
        rows = []
        for sale in self.sales_repo.list():
            customer = sale.get('customer') or {}
            row = dict(sale, customer_name=customer.get('name') or 'Walk-in Customer')
            if term and not _matches(term, [
                sale.get('sale_id'), sale.get('id'), customer.get('name'),
                customer.get('email'), customer.get('phone'),
            ]):
                continue
            rows.append(row)

        result = paginate(rows, page)
        result['total_revenue'] = round(sum(to_number(r.get('total')) for r in rows), 2)
        return result

    @profile_function(name='report_revenue')
    def revenue_view(self, date_from: Any = None, date_to: Any = None, page: Any = 1) -> Dict[str, Any]:
        """
        Orders between two calendar dates (inclusive, UTC).

        Args:
            date_from: 'YYYY-MM-DD' or None
            date_to: 'YYYY-MM-DD' or None; includes that whole day
        """
        start_day = _parse_day(date_from)
        end_day = _parse_day(date_to)
        start = datetime.combine(start_day, time.min, tzinfo=timezone.utc) if start_day else None
        end = datetime.combine(end_day, time.max, tzinfo=timezone.utc) if end_day else None

        now = datetime.now(timezone.utc)
        rows = []
        for sale in self.sales_repo.list():
            ts = sale_time(sale, now)
            if start and ts < start:
                continue
            if end and ts > end:
                continue
            customer = sale.get('customer') or {}
            rows.append(dict(sale, customer_name=customer.get('name') or 'Walk-in Customer'))

        revenue = round(sum(to_number(r.get('total')) for r in rows), 2)
        result = paginate(rows, page)
        result.update({
            'total_revenue': revenue,
            'orders': len(rows),
            'average_order_value': round(revenue / len(rows), 2) if rows else 0,
        })
        return result

    @profile_function(name='report_products')
    def sold_products_view(self, search: str = '', page: Any = 1) -> Dict[str, Any]:
        """SoldProducts rollups, best sellers first."""
        term = (search or '').strip().lower()
        rows = []
        for doc in self.sold_repo.list():
            row = dict(
                doc,
                units=to_int(doc.get('units_sold')),
                revenue=to_number(doc.get('total_revenue')),
                display_name=doc.get('name') or doc.get('product_name') or 'Unnamed',
                code=doc.get('barcode') or doc.get('code') or '-',
            )
            if term and not _matches(term, [row['display_name'], row['code']]):
                continue
            rows.append(row)
        rows.sort(key=lambda r: r['units'], reverse=True)

        result = paginate(rows, page)
        result['total_units'] = sum(r['units'] for r in rows)
        result['total_revenue'] = round(sum(r['revenue'] for r in rows), 2)
        return result

    @profile_function(name='report_stock')
    def stock_view(self, search: str = '', page: Any = 1) -> Dict[str, Any]:
        """Products by stock on hand, largest first."""
        term = (search or '').strip().lower()
        rows = []
        for doc in self.product_repo.list():
            row = dict(
                doc,
                stock_on_hand=parse_stock(doc),
                display_name=doc.get('name') or doc.get('product_name') or 'Unnamed',
                code=doc.get('barcode') or doc.get('code') or '-',
            )
            if term and not _matches(term, [row['display_name'], row['code']]):
                continue
            rows.append(row)
        rows.sort(key=lambda r: r['stock_on_hand'], reverse=True)

        total = sum(r['stock_on_hand'] for r in rows)
        result = paginate(rows, page)
        result['total_stock'] = total
        result['average_stock'] = round(total / len(rows)) if rows else 0
        return result
