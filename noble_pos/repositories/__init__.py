# ==============================================================================
# REPOSITORY LAYER - Data access
# ==============================================================================
# ├── interfaces.py              → Protocols the services depend on
# ├── document_store.py          → JSON document store (transactions, live queries)
# ├── product_repository.py      → ProductsRegistered
# ├── sold_product_repository.py → SoldProducts rollups
# ├── sales_repository.py        → Sales
# └── user_repository.py         → Users
# ==============================================================================

from .interfaces import (
    IDocumentStore,
    ITransaction,
    IProductRepository,
    ISoldProductRepository,
    ISalesRepository,
    IUserRepository,
)

from .document_store import DocumentStore, Transaction, SERVER_TIMESTAMP
from .product_repository import ProductRepository
from .sold_product_repository import SoldProductRepository
from .sales_repository import SalesRepository
from .user_repository import UserRepository

__all__ = [
    # Interfaces
    'IDocumentStore',
    'ITransaction',
    'IProductRepository',
    'ISoldProductRepository',
    'ISalesRepository',
    'IUserRepository',

    # Store
    'DocumentStore',
    'Transaction',
    'SERVER_TIMESTAMP',

    # Repositories
    'ProductRepository',
    'SoldProductRepository',
    'SalesRepository',
    'UserRepository',
]
