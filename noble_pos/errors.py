"""Shared exceptions."""


class StoreError(Exception):
    """Base error raised by the document store."""


class DocumentNotFound(StoreError):
    """An update targeted a document that does not exist."""

    def __init__(self, collection: str, doc_id: str):
        super().__init__(f"{collection}/{doc_id} not found")
        self.collection = collection
        self.doc_id = doc_id


class TransactionConflict(StoreError):
    """A transaction kept losing against concurrent writers."""


class CheckoutError(Exception):
    """Raised inside a transaction callback to abort it with a user message."""
