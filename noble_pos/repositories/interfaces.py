# ==============================================================================
# REPOSITORY INTERFACES
# ==============================================================================
#
# Services depend on these protocols, not on the JSON document store, so a
# hosted document database client can replace DocumentStore without touching
# the service layer:
#
# 1. Implement IDocumentStore on top of the hosted client
# 2. Build it in app_container.py instead of DocumentStore
# 3. Services and repositories stay as they are
#
# ==============================================================================

from typing import Any, Callable, Dict, List, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class ITransaction(Protocol):
    """Handle given to a transaction callback."""

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        ...

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        ...

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        ...


@runtime_checkable
class IDocumentStore(Protocol):
    """
    CRUD + ordered queries + live queries + multi-document transactions.
    """

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        """Returns a document snapshot (with 'id') or None."""
        ...

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        """Creates or replaces a document."""
        ...

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> None:
        """Merges fields into an existing document."""
        ...

    def delete(self, collection: str, doc_id: str) -> None:
        """Deletes a document."""
        ...

    def query(
        self,
        collection: str,
        order_by: Optional[str] = None,
        descending: bool = False,
        limit: Optional[int] = None,
        where: Optional[List[Tuple[str, str, Any]]] = None,
    ) -> List[Dict[str, Any]]:
        """Filtered, ordered, limited listing."""
        ...

    def subscribe(
        self,
        collection: str,
        callback: Callable[[List[Dict[str, Any]]], None],
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> Callable[[], None]:
        """Live query; returns the unsubscribe function."""
        ...

    def run_transaction(self, fn: Callable[[ITransaction], Any], max_attempts: int = 5) -> Any:
        """Optimistic transaction, retried on conflicting reads."""
        ...


@runtime_checkable
class IProductRepository(Protocol):

    def list(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Products, newest first."""
        ...

    def get(self, product_id: str) -> Optional[Dict[str, Any]]:
        ...

    def find_by_barcode(self, barcode: str) -> Optional[Dict[str, Any]]:
        ...

    def create(self, product_id: str, data: Dict[str, Any]) -> None:
        ...

    def update(self, product_id: str, fields: Dict[str, Any]) -> None:
        ...

    def delete(self, product_id: str) -> None:
        ...

    def watch(self, callback: Callable[[List[Dict[str, Any]]], None]) -> Callable[[], None]:
        ...


@runtime_checkable
class ISoldProductRepository(Protocol):

    def list(self) -> List[Dict[str, Any]]:
        ...

    def get(self, product_id: str) -> Optional[Dict[str, Any]]:
        ...

    def delete(self, product_id: str) -> None:
        ...


@runtime_checkable
class ISalesRepository(Protocol):

    def list(self, limit: Optional[int] = None) -> List[Dict[str, Any]]:
        """Sales, newest first."""
        ...

    def get(self, sale_id: str) -> Optional[Dict[str, Any]]:
        ...

    def update(self, sale_id: str, fields: Dict[str, Any]) -> None:
        ...

    def delete(self, sale_id: str) -> None:
        ...


@runtime_checkable
class IUserRepository(Protocol):

    def get(self, uid: str) -> Optional[Dict[str, Any]]:
        ...

    def find_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        ...

    def create(self, uid: str, data: Dict[str, Any]) -> None:
        ...

    def set_role(self, uid: str, role: str) -> None:
        ...
