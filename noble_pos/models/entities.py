# ==============================================================================
# DOMAIN ENTITIES - Dataclass definitions
# ==============================================================================
# Each entity mirrors one kind of document in the store.
# to_dict() produces the stored shape; from_dict() tolerates missing fields
# and values typed as strings (older documents stored form input verbatim).
# ==============================================================================

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional


# ==============================================================================
# ENUMERATIONS
# ==============================================================================

class UserRole(str, Enum):
    """Roles available to signed in users."""
    ADMIN = "admin"
    STAFF = "staff"


class PaymentMethod(str, Enum):
    """Accepted payment methods."""
    CASH = "Cash"
    UPI = "UPI"
    CARD = "Card"
    OTHER = "Other"


# Collection names in the document store
PRODUCTS = "ProductsRegistered"
SOLD_PRODUCTS = "SoldProducts"
SALES = "Sales"
USERS = "Users"


def to_number(value: Any, default: float = 0.0) -> float:
    """Lenient float conversion for values that may have been stored as text."""
    if value is None or value == "":
        return default
    try:
        number = float(str(value).replace(",", ""))
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def to_int(value: Any, default: int = 0) -> int:
    return int(to_number(value, default))


def to_text(value: Any) -> str:
    """Trimmed string for free text that clients may send as a number."""
    return str(value if value is not None else '').strip()


# ==============================================================================
# USERS
# ==============================================================================

@dataclass
class User:
    """
    A signed in account.

    Attributes:
        uid: Document id in the Users collection
        email: Sign in email (stored lower case)
        password_hash: werkzeug password hash
        role: Used for display and gating only
    """
    uid: str
    email: str
    password_hash: str = ''
    role: UserRole = UserRole.STAFF

    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN

    def to_dict(self) -> Dict[str, Any]:
        return {
            'email': self.email,
            'password_hash': self.password_hash,
            'role': self.role.value if isinstance(self.role, Enum) else self.role,
        }

    @classmethod
    def from_dict(cls, uid: str, data: Dict[str, Any]) -> 'User':
        try:
            role = UserRole(data.get('role', 'staff'))
        except ValueError:
            role = UserRole.STAFF
        return cls(
            uid=uid,
            email=data.get('email', ''),
            password_hash=data.get('password_hash', ''),
            role=role,
        )


# ==============================================================================
# INVENTORY
# ==============================================================================

@dataclass
class Product:
    """
    A registered product.

    Attributes:
        id: Document id, "<barcode>_<name>"
        barcode: Code printed on the box
        size: Shoe size
        gender: Men / Women / Unisex / Kids
        price: Selling price
        stock: Units on hand, never negative
        sold: True once "mark as sold" took the last unit
    """
    id: str
    barcode: str
    name: str
    description: str = ''
    size: str = ''
    gender: str = ''
    category: str = ''
    price: float = 0.0
    stock: int = 0
    created_at: Optional[str] = None
    sold: bool = False

    @property
    def in_stock(self) -> bool:
        return self.stock > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'barcode': self.barcode,
            'name': self.name,
            'description': self.description,
            'size': self.size,
            'gender': self.gender,
            'category': self.category,
            'price': self.price,
            'stock': self.stock,
            'createdAt': self.created_at,
            'sold': self.sold,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Product':
        return cls(
            id=data.get('id', ''),
            barcode=str(data.get('barcode', '') or ''),
            name=data.get('name', '') or '',
            description=data.get('description', '') or '',
            size=str(data.get('size', '') or ''),
            gender=data.get('gender', '') or '',
            category=data.get('category', '') or '',
            price=to_number(data.get('price')),
            stock=to_int(data.get('stock')),
            created_at=data.get('createdAt'),
            sold=bool(data.get('sold', False)),
        )


@dataclass
class SoldProduct:
    """
    Sales rollup for one product, keyed by the product id.
    Updated incrementally by every sale of that product.
    """
    id: str
    barcode: str = ''
    name: str = ''
    category: str = ''
    size: str = ''
    gender: str = ''
    price: float = 0.0
    units_sold: int = 0
    total_revenue: float = 0.0
    last_sold_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'barcode': self.barcode,
            'name': self.name,
            'category': self.category,
            'size': self.size,
            'gender': self.gender,
            'price': self.price,
            'units_sold': self.units_sold,
            'total_revenue': self.total_revenue,
            'last_sold_at': self.last_sold_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SoldProduct':
        return cls(
            id=data.get('id', ''),
            barcode=str(data.get('barcode') or data.get('code') or ''),
            name=data.get('name') or data.get('product_name') or '',
            category=data.get('category', '') or '',
            size=str(data.get('size', '') or ''),
            gender=data.get('gender', '') or '',
            price=to_number(data.get('price')),
            units_sold=to_int(data.get('units_sold')),
            total_revenue=to_number(data.get('total_revenue')),
            last_sold_at=data.get('last_sold_at'),
        )


# ==============================================================================
# CART
# ==============================================================================

@dataclass
class CartLine:
    """
    One line of the point of sale cart.
    stock is the product stock when the line was added; it bounds qty.
    """
    id: str
    name: str
    barcode: str
    price: float
    qty: int
    stock: int
    category: str = ''
    size: str = ''
    gender: str = ''

    @property
    def amount(self) -> float:
        return self.price * self.qty

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'barcode': self.barcode,
            'price': self.price,
            'qty': self.qty,
            'stock': self.stock,
            'category': self.category,
            'size': self.size,
            'gender': self.gender,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'CartLine':
        return cls(
            id=data['id'],
            name=data.get('name', ''),
            barcode=str(data.get('barcode', '') or ''),
            price=to_number(data.get('price')),
            qty=to_int(data.get('qty')),
            stock=to_int(data.get('stock')),
            category=data.get('category', '') or '',
            size=str(data.get('size', '') or ''),
            gender=data.get('gender', '') or '',
        )

    @classmethod
    def from_product(cls, product: Product, qty: int) -> 'CartLine':
        return cls(
            id=product.id,
            name=product.name,
            barcode=product.barcode,
            price=product.price,
            qty=qty,
            stock=product.stock,
            category=product.category,
            size=product.size,
            gender=product.gender,
        )


# ==============================================================================
# SALES
# ==============================================================================

@dataclass
class Customer:
    name: str = ''
    phone: str = ''
    email: str = ''

    @property
    def display_name(self) -> str:
        return self.name or 'Walk-in Customer'

    def to_dict(self) -> Dict[str, Any]:
        d = {'name': self.name, 'phone': self.phone}
        if self.email:
            d['email'] = self.email
        return d

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Customer':
        if not isinstance(data, dict):
            data = {}
        return cls(
            name=to_text(data.get('name')),
            phone=to_text(data.get('phone')),
            email=to_text(data.get('email')),
        )


@dataclass
class SaleItem:
    """A line of a completed sale."""
    id: str
    name: str
    barcode: str
    price: float
    qty: int

    @property
    def amount(self) -> float:
        return self.price * self.qty

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'name': self.name,
            'barcode': self.barcode,
            'price': self.price,
            'qty': self.qty,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SaleItem':
        return cls(
            id=data.get('id', ''),
            name=data.get('name', '') or '',
            barcode=str(data.get('barcode', '') or ''),
            price=to_number(data.get('price')),
            qty=to_int(data.get('qty')),
        )


@dataclass
class Payment:
    """
    Payment attached to a sale.

    Attributes:
        method: PaymentMethod value (free text on edited sales)
        reference: UPI id / transaction ref / card last 4 / approval code
        amount_received: Cash handed over, or the sale total for other methods
        change: Cash returned to the customer
    """
    method: str = ''
    reference: Optional[str] = None
    status: str = 'paid'
    paid_at: Optional[Any] = None
    amount_received: float = 0.0
    change: float = 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method,
            'reference': self.reference,
            'status': self.status,
            'paid_at': self.paid_at,
            'amount_received': self.amount_received,
            'change': self.change,
        }

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'Payment':
        data = data or {}
        return cls(
            method=data.get('method', '') or '',
            reference=data.get('reference') or None,
            status=data.get('status', 'paid') or 'paid',
            paid_at=data.get('paid_at'),
            amount_received=to_number(data.get('amount_received')),
            change=to_number(data.get('change')),
        )


@dataclass
class Sale:
    """
    A completed checkout.

    Attributes:
        sale_id: "SALE-<epoch ms>" (drafts use "TEMP-<epoch ms>")
        created_at: Commit time, UTC ISO-8601
        subtotal: Sum of price * qty over the items
        discount: Amount taken off the subtotal
        discount_percent: Percentage the discount was computed from
        total: subtotal - discount
    """
    sale_id: str
    created_at: Optional[Any] = None
    customer: Customer = field(default_factory=Customer)
    note: str = ''
    items: List[SaleItem] = field(default_factory=list)
    subtotal: float = 0.0
    discount: float = 0.0
    discount_percent: float = 0.0
    total: float = 0.0
    payment: Payment = field(default_factory=Payment)

    @property
    def item_count(self) -> int:
        return sum(item.qty for item in self.items)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sale_id': self.sale_id,
            'created_at': self.created_at,
            'customer': self.customer.to_dict(),
            'note': self.note,
            'items': [item.to_dict() for item in self.items],
            'subtotal': self.subtotal,
            'discount': self.discount,
            'discount_percent': self.discount_percent,
            'total': self.total,
            'payment': self.payment.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Sale':
        return cls(
            sale_id=data.get('sale_id') or data.get('id', ''),
            created_at=data.get('created_at'),
            customer=Customer.from_dict(data.get('customer')),
            note=data.get('note', '') or '',
            items=[SaleItem.from_dict(i) for i in data.get('items') or []],
            subtotal=to_number(data.get('subtotal'), to_number(data.get('total'))),
            discount=to_number(data.get('discount')),
            discount_percent=to_number(data.get('discount_percent')),
            total=to_number(data.get('total', data.get('amount'))),
            payment=Payment.from_dict(data.get('payment')),
        )
