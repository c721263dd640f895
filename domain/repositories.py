"""Domain Repository Interfaces"""
from abc import ABC, abstractmethod
from typing import Any, AsyncContextManager, Dict, List, Optional

Document = Dict[str, Any]


class Transaction(ABC):
    """Unit of work over the document store.

    Reads see the transaction's own buffered writes. Writes are buffered and
    applied together when the transaction commits.
    """

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Read a document, or None when absent"""
        pass

    @abstractmethod
    async def query(self, collection: str, **equals: Any) -> List[Document]:
        """Documents whose fields equal every given value"""
        pass

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Document) -> None:
        """Create or replace a document"""
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, changes: Document) -> None:
        """Merge fields into an existing document"""
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> None:
        """Remove a document"""
        pass


class WriteBatch(ABC):
    """All-or-nothing group of writes without reads"""

    @abstractmethod
    def set(self, collection: str, doc_id: str, data: Document) -> "WriteBatch":
        """Queue a create/replace"""
        pass

    @abstractmethod
    def update(self, collection: str, doc_id: str, changes: Document) -> "WriteBatch":
        """Queue a merge into an existing document"""
        pass

    @abstractmethod
    def delete(self, collection: str, doc_id: str) -> "WriteBatch":
        """Queue a removal"""
        pass

    @abstractmethod
    async def commit(self) -> None:
        """Apply every queued write, or none of them"""
        pass


class DocumentStore(ABC):
    """Repository interface for the document database backing every aggregate"""

    @abstractmethod
    async def get(self, collection: str, doc_id: str) -> Optional[Document]:
        """Find document by ID"""
        pass

    @abstractmethod
    async def set(self, collection: str, doc_id: str, data: Document) -> None:
        """Create or replace document"""
        pass

    @abstractmethod
    async def update(self, collection: str, doc_id: str, changes: Document) -> None:
        """Merge fields into document; NotFoundError when absent"""
        pass

    @abstractmethod
    async def delete(self, collection: str, doc_id: str) -> bool:
        """Delete document"""
        pass

    @abstractmethod
    async def query(self, collection: str, **equals: Any) -> List[Document]:
        """Find documents by field equality"""
        pass

    @abstractmethod
    def transaction(self) -> AsyncContextManager[Transaction]:
        """Open a transaction; commits on clean exit, discards on exception"""
        pass

    @abstractmethod
    def batch(self) -> WriteBatch:
        """Start an atomic multi-document write"""
        pass
