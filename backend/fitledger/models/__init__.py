from fitledger.models.document import StoredDocument

__all__ = [
    "StoredDocument",
]
