# ==============================================================================
# DEPENDENCY CONTAINER - Service wiring
# ==============================================================================
# Single place where repositories and services are built. Facilitates:
#   - Dependency injection
#   - Testing (each app built by create_app gets a fresh container)
#   - Swapping the storage (change the store here, services stay as they are)
#
# ═══════════════════════════════════════════════════════════════════════════════
# MOVING TO A HOSTED DOCUMENT DATABASE
# ═══════════════════════════════════════════════════════════════════════════════
#
# 1. Write a store class implementing IDocumentStore on the hosted client
# 2. Build it in the `store` property below instead of DocumentStore
# 3. Repositories and services need no change
# ==============================================================================

from typing import Optional

from noble_pos.config import Config
from noble_pos.repositories import (
    DocumentStore,
    ProductRepository,
    SalesRepository,
    SoldProductRepository,
    UserRepository,
)
from noble_pos.services import (
    AuthService,
    CartService,
    CheckoutService,
    DashboardService,
    InventoryService,
    InvoiceService,
    PaymentService,
    ReportService,
    SalesService,
)


class AppContainer:
    """
    Application dependency container.

    Singleton: one store (one file lock) per process.

    Usage:
        container = AppContainer(config)
        inventory_service = container.inventory_service
    """

    _instance: Optional['AppContainer'] = None

    def __new__(cls, config: Config = None):
        """Singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._initialized = False
        return cls._instance

    def __init__(self, config: Config = None):
        """
        Args:
            config: Application settings (first call only)
        """
        if self._initialized:
            return

        self.config = config or Config.from_env()

        # Lazy loading
        self._store: Optional[DocumentStore] = None
        self._product_repo: Optional[ProductRepository] = None
        self._sold_repo: Optional[SoldProductRepository] = None
        self._sales_repo: Optional[SalesRepository] = None
        self._user_repo: Optional[UserRepository] = None

        self._auth_service: Optional[AuthService] = None
        self._inventory_service: Optional[InventoryService] = None
        self._cart_service: Optional[CartService] = None
        self._payment_service: Optional[PaymentService] = None
        self._checkout_service: Optional[CheckoutService] = None
        self._sales_service: Optional[SalesService] = None
        self._report_service: Optional[ReportService] = None
        self._invoice_service: Optional[InvoiceService] = None
        self._dashboard_service: Optional[DashboardService] = None

        self._initialized = True

    # =========================================================================
    # STORAGE
    # =========================================================================

    @property
    def store(self) -> DocumentStore:
        """Document store (singleton)."""
        if self._store is None:
            self._store = DocumentStore(self.config.store_path)
        return self._store

    @property
    def product_repo(self) -> ProductRepository:
        if self._product_repo is None:
            self._product_repo = ProductRepository(self.store)
        return self._product_repo

    @property
    def sold_repo(self) -> SoldProductRepository:
        if self._sold_repo is None:
            self._sold_repo = SoldProductRepository(self.store)
        return self._sold_repo

    @property
    def sales_repo(self) -> SalesRepository:
        if self._sales_repo is None:
            self._sales_repo = SalesRepository(self.store)
        return self._sales_repo

    @property
    def user_repo(self) -> UserRepository:
        if self._user_repo is None:
            self._user_repo = UserRepository(self.store)
        return self._user_repo

    # =========================================================================
    # SERVICES
    # =========================================================================

    @property
    def auth_service(self) -> AuthService:
        if self._auth_service is None:
            self._auth_service = AuthService(self.user_repo)
        return self._auth_service

    @property
    def inventory_service(self) -> InventoryService:
        if self._inventory_service is None:
            self._inventory_service = InventoryService(self.store, self.product_repo, self.sold_repo)
        return self._inventory_service

    @property
    def cart_service(self) -> CartService:
        if self._cart_service is None:
            self._cart_service = CartService(self.inventory_service)
        return self._cart_service

    @property
    def payment_service(self) -> PaymentService:
        if self._payment_service is None:
            self._payment_service = PaymentService()
        return self._payment_service

    @property
    def checkout_service(self) -> CheckoutService:
        if self._checkout_service is None:
            self._checkout_service = CheckoutService(self.store, self.payment_service)
        return self._checkout_service

    @property
    def sales_service(self) -> SalesService:
        if self._sales_service is None:
            self._sales_service = SalesService(self.sales_repo)
        return self._sales_service

    @property
    def report_service(self) -> ReportService:
        if self._report_service is None:
            self._report_service = ReportService(self.sales_repo, self.sold_repo, self.product_repo)
        return self._report_service

    @property
    def invoice_service(self) -> InvoiceService:
        if self._invoice_service is None:
            self._invoice_service = InvoiceService(self.config.shop)
        return self._invoice_service

    @property
    def dashboard_service(self) -> DashboardService:
        if self._dashboard_service is None:
            self._dashboard_service = DashboardService(self.product_repo)
        return self._dashboard_service

    # =========================================================================
    # UTILITIES
    # =========================================================================

    def reset(self) -> None:
        """Drops every instance (live subscriptions are closed first)."""
        if self._dashboard_service is not None:
            self._dashboard_service.stop()
        self._store = None
        self._product_repo = None
        self._sold_repo = None
        self._sales_repo = None
        self._user_repo = None

        self._auth_service = None
        self._inventory_service = None
        self._cart_service = None
        self._payment_service = None
        self._checkout_service = None
        self._sales_service = None
        self._report_service = None
        self._invoice_service = None
        self._dashboard_service = None

    @classmethod
    def get_instance(cls, config: Config = None) -> 'AppContainer':
        if cls._instance is None:
            return cls(config)
        return cls._instance

    @classmethod
    def reset_instance(cls) -> None:
        """Removes the singleton (used by create_app and tests)."""
        if cls._instance is not None:
            cls._instance.reset()
            cls._instance = None


def get_container(config: Config = None) -> AppContainer:
    """
    Returns the global dependency container.

    Args:
        config: Settings, only used when the container is first built
    """
    return AppContainer.get_instance(config)
